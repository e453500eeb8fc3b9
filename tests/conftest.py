from typing import Any

import pytest

from reflex_list_toolbar.models import (
    ColumnDescriptor,
    DataPage,
    EntitySchema,
    FilterDefinition,
    FilterOption,
    NavigationState,
    ToolbarSettings,
)
from reflex_list_toolbar.scheduling import ManualScheduler


class Recorder:
    """Collects the arguments of every emission of a signal."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)

    def __len__(self) -> int:
        return len(self.calls)

    @property
    def last(self) -> Any:
        args = self.calls[-1]
        return args[0] if len(args) == 1 else args


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recorder() -> type[Recorder]:
    return Recorder


def make_rows(count: int) -> list[dict[str, Any]]:
    statuses = ["active", "inactive", "pending"]
    return [
        {
            "id": i,
            "name": f"item {i:02d}",
            "status": statuses[i % 3],
        }
        for i in range(count)
    ]


def row_key(row: dict[str, Any]) -> int:
    return row["id"]


def status_filter(**kwargs: Any) -> FilterDefinition:
    return FilterDefinition(
        name="status",
        options=[FilterOption("active"), FilterOption("inactive"), FilterOption("pending")],
        exclusive=True,
        **kwargs,
    )


def tags_filter(**kwargs: Any) -> FilterDefinition:
    return FilterDefinition(
        name="tags",
        options=[FilterOption("a"), FilterOption("b"), FilterOption("c")],
        delimiter=",",
        **kwargs,
    )


def make_schema(display: str = "items") -> EntitySchema:
    return EntitySchema(
        display=display,
        columns={
            "name": ColumnDescriptor("name", "Name"),
            "status": ColumnDescriptor("status", "Status"),
        },
    )


def make_settings(
    rows: list[dict[str, Any]],
    schema: EntitySchema | None = None,
    *,
    page_size: int = 20,
    filters: list[FilterDefinition] | None = None,
    **kwargs: Any,
) -> ToolbarSettings:
    schema = schema or make_schema()
    kwargs.setdefault("navigation_state", NavigationState(page_size=page_size))
    return ToolbarSettings(
        data_source=DataPage(data=list(rows), total_count=len(rows)),
        displayed_columns=list(schema.columns.values()),
        schema=schema,
        filters=filters,
        **kwargs,
    )
