"""Value types shared by the list toolbar controller and its collaborators.

Everything the controller reads or emits is one of these small
dataclasses.  Entities (rows) stay opaque -- the controller only looks
at them through a key function and the schema's declared columns.
"""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any


# ---------------------------------------------------------------------------
# Columns and schema
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnDescriptor:
    """A column the list can show.

    Attributes:
        name: Column identifier, unique within a schema.
        display: Human-friendly header label.  Falls back to *name*.
        is_additional: Marks optional columns the user may add to the view.
        description: Optional tooltip / subtitle text.
    """

    name: str
    display: str | None = None
    is_additional: bool = False
    description: str | None = None

    @property
    def label(self) -> str:
        return self.display or self.name


@dataclass(frozen=True)
class EntitySchema:
    """Immutable column catalog of one logical dataset.

    ``display`` names the dataset kind and is used to key persisted
    column preferences.  The controller compares schemas by identity to
    tell a new dataset from a page refresh of the same one, so extending
    a schema always produces a new instance via :meth:`with_columns`.
    """

    display: str
    columns: Mapping[str, ColumnDescriptor] = field(default_factory=dict)

    def get(self, name: str) -> ColumnDescriptor | None:
        return self.columns.get(name)

    def column_display(self, name: str) -> str:
        column = self.columns.get(name)
        return column.label if column is not None else name

    def with_columns(self, extra: Iterable[ColumnDescriptor]) -> "EntitySchema":
        """Return a new schema with *extra* columns merged in (later wins)."""
        merged: dict[str, ColumnDescriptor] = dict(self.columns)
        for column in extra:
            merged[column.name] = column
        return EntitySchema(display=self.display, columns=merged)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterOption:
    value: str
    display: str | None = None

    @property
    def label(self) -> str:
        return self.display or self.value


@dataclass(eq=False)
class FilterDefinition:
    """A filter the toolbar offers.

    Attributes:
        name: Unique key within the filter set.  Also the key under which
            the folded value appears in :attr:`NavigationState.filters`.
        options: Selectable options.
        delimiter: When set, several options may be active at once and
            ``current_value`` holds their values joined by it.  Option
            values must not contain the delimiter.
        exclusive: Radio / single-select semantics -- at most one option.
        initial_value: Value seeded once per dataset before any user input.
        column: Record field the filter targets.  Defaults to *name*.
        display: Label shown for the filter.
        current_value: Folded value; owned by the filter composer.
    """

    name: str
    options: list[FilterOption] = field(default_factory=list)
    delimiter: str | None = None
    exclusive: bool = False
    initial_value: str | None = None
    column: str | None = None
    display: str | None = None
    current_value: str | None = None

    @property
    def target_field(self) -> str:
        return self.column or self.name

    @property
    def is_multi_valued(self) -> bool:
        return not self.exclusive

    def find_option(self, value: str | None) -> FilterOption | None:
        """Return the option whose value equals *value*, or ``None``."""
        if value is None:
            return None
        for option in self.options:
            if option.value == value:
                return option
        return None


@dataclass(frozen=True)
class SelectedFilter:
    """One chosen option of a filter definition."""

    filter: FilterDefinition
    option: FilterOption
    is_custom: bool = False

    @property
    def name(self) -> str:
        return self.filter.name

    @property
    def value(self) -> str:
        return self.option.value


# ---------------------------------------------------------------------------
# Navigation state and data pages
# ---------------------------------------------------------------------------

@dataclass
class NavigationState:
    """The paging / search / sort / filter cursor.

    ``order_by`` uses the grid sort-model shape::

        [{"field": "name", "sort": "asc"}, {"field": "age", "sort": "desc"}]

    ``filters`` maps filter names to their folded values and only holds
    entries for filters with a non-empty value.
    """

    start_index: int = 0
    page_size: int = 20
    search: str = ""
    order_by: list[dict[str, str]] = field(default_factory=list)
    filters: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.start_index < 0:
            raise ValueError(f"start_index must be >= 0, got {self.start_index}")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")

    def copy(self, **changes: Any) -> "NavigationState":
        """Return an independent copy, optionally with *changes* applied."""
        clone = replace(
            self,
            order_by=[dict(entry) for entry in self.order_by],
            filters=dict(self.filters),
        )
        return replace(clone, **changes) if changes else clone

    def as_params(self) -> dict[str, Any]:
        """Flatten into load parameters for a remote data source."""
        params: dict[str, Any] = {
            "start_index": self.start_index,
            "page_size": self.page_size,
        }
        if self.search:
            params["search"] = self.search
        if self.order_by:
            params["order_by"] = ",".join(
                f"{entry['field']} {entry.get('sort', 'asc')}"
                for entry in self.order_by
                if entry.get("field")
            )
        params.update(self.filters)
        return params


@dataclass
class DataPage:
    """One page (or, in local mode, the whole snapshot) of entities."""

    data: list[Any] = field(default_factory=list)
    total_count: int = 0
    is_limit_reached: bool = False


@dataclass(frozen=True)
class SelectionChange:
    added: tuple[Any, ...] = ()
    removed: tuple[Any, ...] = ()


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GroupOption:
    """A grouping the user can pick: a column plus its bucketing function."""

    column: str
    get_data: Callable[[Any], Any]
    display: str | None = None


@dataclass(frozen=True)
class GroupingCategory:
    display: str
    groups: tuple[GroupOption, ...] = ()


@dataclass(frozen=True)
class Grouping:
    """The grouping currently applied to the list."""

    display: str
    get_data: Callable[[Any], Any]
    column: str | None = None


@dataclass
class GroupData:
    groups: list[GroupOption] = field(default_factory=list)
    categories: list[GroupingCategory] = field(default_factory=list)
    current_grouping: Grouping | None = None


# ---------------------------------------------------------------------------
# Declarative view model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DataModelProperty:
    column: ColumnDescriptor
    is_additional_column: bool = False


@dataclass(frozen=True)
class ViewConfig:
    id: str
    additional_table_columns: tuple[str, ...] = ()
    additional_list_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class DataModel:
    properties: tuple[DataModelProperty, ...] = ()
    configurations: tuple[ViewConfig, ...] = ()
    default_config_id: str | None = None

    def default_configuration(self) -> ViewConfig | None:
        for config in self.configurations:
            if config.id == self.default_config_id:
                return config
        return None

    def find_property(self, name: str) -> DataModelProperty | None:
        """Case-insensitive lookup of a property by column name."""
        wanted = name.lower()
        for prop in self.properties:
            if prop.column.name.lower() == wanted:
                return prop
        return None


# ---------------------------------------------------------------------------
# Filter tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterTreeNode:
    key: str
    display: str
    filter: Any = None


@dataclass
class FilterTreeData:
    elements: list[FilterTreeNode] = field(default_factory=list)
    description: str | None = None


@dataclass(frozen=True)
class FilterTree:
    """Hierarchical filter source; ``filter_method("")`` lists the roots."""

    filter_method: Callable[[str], Awaitable[FilterTreeData]]


# ---------------------------------------------------------------------------
# Settings pushed by the host
# ---------------------------------------------------------------------------

@dataclass
class ToolbarSettings:
    data_source: DataPage
    displayed_columns: list[ColumnDescriptor]
    schema: EntitySchema
    navigation_state: NavigationState = field(default_factory=NavigationState)
    filters: list[FilterDefinition] | None = None
    filter_tree: FilterTree | None = None
    group_data: GroupData | None = None
    data_model: DataModel | None = None
