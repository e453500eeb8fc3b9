"""Example Reflex app driving a list view through ``ListToolbarMixin``.

A 20-row employee table with a debounced search box, a department
filter with removable chips, grouping by department, page-independent
row selection and a pager -- all state lives in the toolbar controller,
the page only renders the ``lt_*`` vars.
"""

from typing import Any

import polars as pl
import reflex as rx

from reflex_list_toolbar import ListToolbarMixin

DEPARTMENTS: list[str] = ["Engineering", "Marketing", "Sales"]


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

def _build_employee_lazyframe() -> pl.LazyFrame:
    """Create a sample LazyFrame with employee data."""
    return pl.LazyFrame(
        {
            "first_name": [
                "Alice", "Bob", "Charlie", "Diana", "Eve",
                "Frank", "Grace", "Hank", "Ivy", "Jack",
                "Karen", "Leo", "Mona", "Nick", "Olivia",
                "Paul", "Quinn", "Rita", "Sam", "Tina",
            ],
            "department": [
                "Engineering", "Marketing", "Engineering", "Sales", "Engineering",
                "Marketing", "Sales", "Engineering", "Marketing", "Sales",
                "Engineering", "Marketing", "Sales", "Engineering", "Marketing",
                "Sales", "Engineering", "Marketing", "Sales", "Engineering",
            ],
            "salary": [
                95000, 72000, 110000, 68000, 125000,
                71000, 82000, 98000, 67000, 78000,
                105000, 69000, 74000, 115000, 73000,
                80000, 99000, 70000, 76000, 108000,
            ],
        }
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class EmployeeState(ListToolbarMixin, rx.State):
    """Employee list backed by a local-mode toolbar controller."""

    def load_data(self):
        yield from self.set_toolbar_frame(
            _build_employee_lazyframe(),
            "employees",
            descriptions={"salary": "Yearly gross salary in USD"},
            page_size=8,
        )


# ---------------------------------------------------------------------------
# UI
# ---------------------------------------------------------------------------

def _toolbar() -> rx.Component:
    return rx.hstack(
        rx.debounce_input(
            rx.input(
                placeholder="Search...",
                value=EmployeeState.lt_search,
                on_change=EmployeeState.handle_lt_search,
                width="240px",
            ),
            debounce_timeout=300,
        ),
        rx.select(
            DEPARTMENTS,
            placeholder="Department",
            on_change=lambda value: EmployeeState.handle_lt_select_filter("department", value),
        ),
        rx.button("Group by department", on_click=EmployeeState.handle_lt_group("department")),
        rx.cond(
            EmployeeState.lt_grouping != "",
            rx.button("Clear grouping", variant="soft", on_click=EmployeeState.clear_lt_grouping),
        ),
        rx.button("Clear filters", variant="soft", on_click=EmployeeState.clear_lt_filters),
        spacing="3",
        align="center",
    )


def _filter_chip(chip: dict[str, Any]) -> rx.Component:
    return rx.badge(
        chip["label"],
        rx.icon(
            "x",
            size=12,
            cursor="pointer",
            on_click=EmployeeState.remove_lt_filter_chip(chip["name"], chip["value"]),
        ),
        variant="surface",
    )


def _row(row: dict[str, Any]) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.checkbox(
                checked=EmployeeState.lt_selected_ids.contains(row["__row_id__"]),  # type: ignore[attr-defined]
                on_change=lambda _checked: EmployeeState.toggle_lt_row(row["__row_id__"]),
            )
        ),
        rx.table.cell(row["first_name"]),
        rx.table.cell(row["department"]),
        rx.table.cell(row["salary"]),
        rx.cond(EmployeeState.lt_grouping != "", rx.table.cell(row["__group__"])),
    )


def _table() -> rx.Component:
    return rx.table.root(
        rx.table.header(
            rx.table.row(
                rx.table.column_header_cell(
                    rx.checkbox(
                        checked=EmployeeState.lt_all_selected,
                        on_change=lambda _checked: EmployeeState.toggle_lt_page_selection(),
                    )
                ),
                rx.table.column_header_cell("First Name"),
                rx.table.column_header_cell("Department"),
                rx.table.column_header_cell("Salary"),
                rx.cond(EmployeeState.lt_grouping != "", rx.table.column_header_cell("Group")),
            )
        ),
        rx.table.body(rx.foreach(EmployeeState.lt_rows, _row)),
        width="100%",
    )


def _pager() -> rx.Component:
    return rx.hstack(
        rx.button("Previous", on_click=EmployeeState.handle_lt_previous_page),
        rx.button("Next", on_click=EmployeeState.handle_lt_next_page),
        rx.text(EmployeeState.lt_summary, color="var(--gray-11)"),
        rx.spacer(),
        rx.text(EmployeeState.lt_num_selected, " selected"),
        rx.button("Clear selection", variant="soft", on_click=EmployeeState.clear_lt_selection),
        align="center",
        width="100%",
    )


def index() -> rx.Component:
    """Render the employee list."""
    return rx.box(
        rx.heading("List Toolbar -- Reflex Demo", size="6", margin_bottom="1em"),
        rx.cond(
            EmployeeState.lt_loaded,
            rx.vstack(
                rx.cond(EmployeeState.lt_show_toolbar, _toolbar()),
                rx.hstack(rx.foreach(EmployeeState.lt_filter_chips, _filter_chip), spacing="2"),
                _table(),
                _pager(),
                spacing="4",
                width="100%",
            ),
            rx.text("Loading...", color="var(--gray-9)"),
        ),
        padding="2em",
        max_width="1000px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=EmployeeState.load_data)
