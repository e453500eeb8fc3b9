"""Reflex state mixin that hosts a :class:`ListToolbarController`.

Users inherit from :class:`ListToolbarMixin` **and** ``rx.State``, call
:meth:`ListToolbarMixin.set_toolbar_frame` with any LazyFrame, and bind
their components to the ``lt_*`` vars and ``handle_lt_*`` handlers.

Typical usage::

    from reflex_list_toolbar import ListToolbarMixin, scan_file

    class PeopleState(ListToolbarMixin, rx.State):
        def load_data(self):
            yield from self.set_toolbar_frame(scan_file(Path("people.csv")), "people")

The controller is not JSON-serialisable, so it lives in a module-level
registry keyed by the state class name and the client token.  Selection,
filters and paging are per user, so every browser session gets its own
controller, just as it gets its own set of ``lt_*`` vars.
"""

from pathlib import Path
from typing import Any

import polars as pl
import reflex as rx

from reflex_list_toolbar.controller import ListToolbarController
from reflex_list_toolbar.models import GroupOption
from reflex_list_toolbar.polars_utils import (
    _DEFAULT_FILTER_MAX_UNIQUE,
    _DEFAULT_PAGE_SIZE,
    ROW_ID,
    PolarsRowFilter,
    row_id,
    toolbar_settings_from_frame,
)
from reflex_list_toolbar.scheduling import ManualScheduler
from reflex_list_toolbar.view_config import JsonPreferenceStore, PreferenceStore

GROUP_KEY: str = "__group__"


# ---------------------------------------------------------------------------
# Module-level controller registry
# ---------------------------------------------------------------------------

class _ToolbarHost:
    """Holds a controller and its scheduler outside Reflex state."""

    def __init__(self) -> None:
        self.scheduler = ManualScheduler()
        self.controller: ListToolbarController | None = None


_host_registry: dict[str, _ToolbarHost] = {}


def host_key(state_name: str, client_token: str) -> str:
    """Registry key for one browser session of one state class."""
    return f"{state_name}:{client_token}"


def _get_host(host_id: str) -> _ToolbarHost:
    """Return (or create) the host entry for *host_id*."""
    if host_id not in _host_registry:
        _host_registry[host_id] = _ToolbarHost()
    return _host_registry[host_id]


# ---------------------------------------------------------------------------
# Controller -> var payloads
# ---------------------------------------------------------------------------

def filter_payload(controller: ListToolbarController) -> list[dict[str, Any]]:
    """Visible filters in a shape a ``rx.foreach`` can render."""
    payload: list[dict[str, Any]] = []
    for definition in controller.visible_filters:
        payload.append(
            {
                "name": definition.name,
                "label": definition.display or definition.name,
                "exclusive": definition.exclusive,
                "select_list": controller.uses_select_list(definition),
                "current_value": definition.current_value or "",
                "selected_values": [
                    sf.value for sf in controller.selected_filters if sf.name == definition.name
                ],
                "options": [
                    {"value": option.value, "label": option.label}
                    for option in definition.options
                ],
            }
        )
    return payload


def chip_payload(controller: ListToolbarController) -> list[dict[str, str]]:
    """Selected filters as removable chips, in selection order."""
    return [
        {
            "name": sf.name,
            "value": sf.value,
            "label": f"{sf.filter.display or sf.name}: {sf.option.label}",
        }
        for sf in controller.selected_filters
    ]


def column_payload(controller: ListToolbarController) -> list[dict[str, Any]]:
    """Shown columns as ``{"field", "headerName", "description"}`` dicts."""
    return [
        {"field": column.name, "headerName": column.label, "description": column.description or ""}
        for column in controller.shown_columns
    ]


def row_payload(controller: ListToolbarController) -> list[dict[str, Any]]:
    """Rows of the current page, tagged with their group when grouped."""
    if controller.current_grouping is None:
        return list(controller.page.data)
    return [
        {**row, GROUP_KEY: str(controller.group_key(row))}
        for row in controller.page.data
    ]


# ---------------------------------------------------------------------------
# State mixin
# ---------------------------------------------------------------------------

class ListToolbarMixin(rx.State, mixin=True):
    """Reflex State mixin for a local-mode list toolbar over a LazyFrame.

    This is a Reflex **mixin** (``mixin=True``): the vars declared here
    are injected into each concrete subclass, so two toolbars on one page
    do not interfere.  Subclasses **must** also inherit from ``rx.State``::

        class MyList(ListToolbarMixin, rx.State):
            ...

    Every handler forwards the UI event to the controller, drains the
    controller's deferred work, and copies the result back into the
    ``lt_*`` vars.
    """

    # -- Frontend state vars --
    lt_rows: list[dict[str, Any]] = []
    lt_columns: list[dict[str, Any]] = []
    lt_optional_columns: list[dict[str, Any]] = []
    lt_filters: list[dict[str, Any]] = []
    lt_filter_chips: list[dict[str, str]] = []
    lt_total_count: int = 0
    lt_start_index: int = 0
    lt_page_size: int = _DEFAULT_PAGE_SIZE
    lt_search: str = ""
    lt_grouping: str = ""
    lt_selected_ids: list[int] = []
    lt_num_selected: int = 0
    lt_all_selected: bool = False
    lt_show_toolbar: bool = False
    lt_has_view_settings: bool = False
    lt_summary: str = ""
    lt_loading: bool = False
    lt_loaded: bool = False

    # -- Backend-only vars (not sent to frontend) --
    _lt_host_id: str = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_toolbar_frame(
        self,
        lf: pl.LazyFrame,
        display: str,
        descriptions: dict[str, str] | None = None,
        page_size: int = _DEFAULT_PAGE_SIZE,
        max_unique: int = _DEFAULT_FILTER_MAX_UNIQUE,
        hidden_filters: list[str] | None = None,
        preferences: Path | PreferenceStore | None = None,
    ):
        """Load a LazyFrame into a fresh local-mode controller.

        This is a **generator** -- use ``yield from self.set_toolbar_frame(...)``
        inside your event handler so the loading state reaches the
        frontend before the frame is collected.

        Args:
            lf: The polars LazyFrame to browse.
            display: Dataset kind; keys persisted column preferences.
            descriptions: Optional ``{column: description}`` mapping.
            page_size: Rows per page.
            max_unique: Maximum distinct values for a column to get a filter.
            hidden_filters: Filter names not offered in the toolbar.
            preferences: JSON file path or store for column choices.
        """
        self.lt_loading = True  # type: ignore[assignment]
        yield

        host_id = host_key(type(self).__name__, self.router.session.client_token)
        self._lt_host_id = host_id  # type: ignore[assignment]
        host = _get_host(host_id)

        store = JsonPreferenceStore(preferences) if isinstance(preferences, (str, Path)) else preferences
        host.controller = ListToolbarController(
            local=True,
            scheduler=host.scheduler,
            preference_store=store,
            row_filter=PolarsRowFilter(),
            key=row_id,
            hidden_filters=hidden_filters or (),
        )
        host.controller.update_settings(
            toolbar_settings_from_frame(
                lf,
                display,
                descriptions=descriptions,
                page_size=page_size,
                max_unique=max_unique,
            )
        )
        self._sync_lt_state()
        self.lt_loaded = True  # type: ignore[assignment]
        self.lt_loading = False  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def handle_lt_search(self, text: str) -> None:
        """Search input, applied at once.

        Wrap the input in ``rx.debounce_input`` for a quiet window; the
        host scheduler only runs ready callbacks, never pending timers.
        """
        controller = self._lt_controller()
        if controller is None:
            return
        if text != controller.navigation_state.search:
            controller.submit_search(text)
        self._sync_lt_state()

    def handle_lt_page(self, start_index: int) -> None:
        self._lt_go_to(int(start_index))

    def handle_lt_next_page(self) -> None:
        if self.lt_start_index + self.lt_page_size < self.lt_total_count:
            self._lt_go_to(self.lt_start_index + self.lt_page_size)

    def handle_lt_previous_page(self) -> None:
        self._lt_go_to(self.lt_start_index - self.lt_page_size)

    def handle_lt_page_size(self, page_size: str) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.navigate(start_index=0, page_size=int(page_size))
        self._sync_lt_state()

    def handle_lt_sort(self, sort_model: list[dict[str, Any]]) -> None:
        """Sort change in grid sort-model shape."""
        controller = self._lt_controller()
        if controller is None:
            return
        controller.set_sort(sort_model)
        self._sync_lt_state()

    def handle_lt_filter_option(self, name: str, value: str, checked: bool) -> None:
        """Checkbox / radio change."""
        controller = self._lt_controller()
        if controller is None:
            return
        controller.apply_option(name, value, checked)
        self._sync_lt_state()

    def handle_lt_select_filter(self, name: str, value: str) -> None:
        """Single-select change; an empty value clears the filter."""
        controller = self._lt_controller()
        if controller is None:
            return
        controller.select_option(name, value or None)
        self._sync_lt_state()

    def handle_lt_multi_filter(self, name: str, values: list[str]) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.apply_multi_selection(name, values)
        self._sync_lt_state()

    def remove_lt_filter_chip(self, name: str, value: str) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.remove_selected_filter(name, option_value=value)
        self._sync_lt_state()

    def clear_lt_filters(self) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.clear_filters()
        self._sync_lt_state()

    def handle_lt_group(self, column: str) -> None:
        """Group rows by the values of *column*."""
        controller = self._lt_controller()
        if controller is None:
            return
        controller.select_grouping(GroupOption(column=column, get_data=lambda row: row.get(column)))
        self._sync_lt_state()

    def clear_lt_grouping(self) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.clear_grouping()
        self._sync_lt_state()

    def toggle_lt_row(self, row_key: int) -> None:
        """Toggle the selection of the row with this ``__row_id__``."""
        controller = self._lt_controller()
        if controller is None:
            return
        for row in controller.page.data:
            if row[ROW_ID] == row_key:
                controller.toggle(row)
                break
        self._sync_lt_state()

    def toggle_lt_page_selection(self) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.toggle_page_selection()
        self._sync_lt_state()

    def clear_lt_selection(self) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.clear_selection()
        self._sync_lt_state()

    def set_lt_columns(self, names: list[str]) -> None:
        """Show exactly these columns, in this order, and remember the choice."""
        controller = self._lt_controller()
        if controller is None or controller.entity_schema is None:
            return
        columns = [controller.entity_schema.get(name) for name in names]
        controller.select_columns([column for column in columns if column is not None])
        self._sync_lt_state()

    def reset_lt_view(self) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.reset_view()
        self._sync_lt_state()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _lt_controller(self) -> ListToolbarController | None:
        if not self._lt_host_id:
            return None
        return _get_host(self._lt_host_id).controller

    def _lt_go_to(self, start_index: int) -> None:
        controller = self._lt_controller()
        if controller is None:
            return
        controller.navigate(start_index=max(start_index, 0))
        self._sync_lt_state()

    def _sync_lt_state(self) -> None:
        """Run deferred controller work, then copy its state into the vars."""
        host = _get_host(self._lt_host_id)
        controller = host.controller
        if controller is None:
            return
        host.scheduler.run_pending()

        state = controller.navigation_state
        self.lt_rows = row_payload(controller)  # type: ignore[assignment]
        self.lt_columns = column_payload(controller)  # type: ignore[assignment]
        self.lt_optional_columns = [  # type: ignore[assignment]
            {"field": column.name, "headerName": column.label}
            for column in controller.optional_columns
        ]
        self.lt_filters = filter_payload(controller)  # type: ignore[assignment]
        self.lt_filter_chips = chip_payload(controller)  # type: ignore[assignment]
        self.lt_total_count = controller.page.total_count  # type: ignore[assignment]
        self.lt_start_index = state.start_index  # type: ignore[assignment]
        self.lt_page_size = state.page_size  # type: ignore[assignment]
        self.lt_search = state.search  # type: ignore[assignment]
        grouping = controller.current_grouping
        self.lt_grouping = grouping.display if grouping is not None else ""  # type: ignore[assignment]
        self.lt_selected_ids = [row_id(row) for row in controller.selected]  # type: ignore[assignment]
        self.lt_num_selected = controller.num_selected()  # type: ignore[assignment]
        self.lt_all_selected = controller.all_selected()  # type: ignore[assignment]
        self.lt_show_toolbar = controller.show_toolbar  # type: ignore[assignment]
        self.lt_has_view_settings = controller.has_view_settings  # type: ignore[assignment]
        self.lt_summary = controller.summary  # type: ignore[assignment]
