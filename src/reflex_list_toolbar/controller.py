"""The list toolbar controller: composition root and only output boundary.

:class:`ListToolbarController` wires a :class:`SelectionModel`, a
:class:`FilterComposer`, a :class:`ViewConfigResolver` and a
:class:`NavigationSynchronizer` together, reacts to settings pushed by
the host, and publishes every outward effect on a :class:`Signal`.

Typical usage::

    controller = ListToolbarController(local=True, row_filter=PolarsRowFilter())
    controller.navigation_state_changed.connect(print)
    controller.update_settings(
        ToolbarSettings(data_source=DataPage(rows, len(rows)), displayed_columns=cols, schema=schema)
    )
"""

from collections.abc import Awaitable, Callable, Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from reflex.utils import console

from reflex_list_toolbar.events import Signal
from reflex_list_toolbar.filters import _DEFAULT_FILTER_OPTION_THRESHOLD, FilterComposer
from reflex_list_toolbar.models import (
    ColumnDescriptor,
    DataPage,
    EntitySchema,
    FilterDefinition,
    FilterOption,
    FilterTree,
    FilterTreeNode,
    GroupData,
    Grouping,
    GroupingCategory,
    GroupOption,
    NavigationState,
    SelectedFilter,
    ToolbarSettings,
)
from reflex_list_toolbar.navigation import (
    _DEFAULT_SEARCH_DEBOUNCE,
    NavigationSynchronizer,
    RemoteDataSource,
    RowFilter,
)
from reflex_list_toolbar.scheduling import AsyncioScheduler, Scheduler
from reflex_list_toolbar.selection import SelectionModel
from reflex_list_toolbar.view_config import ColumnPickerRequest, PreferenceStore, ViewConfigResolver


@dataclass
class FilterTreeRequest:
    """Snapshot handed to the filter-tree picker dialog."""

    filter_tree: FilterTree
    preselection: list[FilterTreeNode] = field(default_factory=list)
    filter_type: str | None = None


ColumnPicker = Callable[[ColumnPickerRequest], Awaitable[Sequence[ColumnDescriptor] | None]]
FilterTreePicker = Callable[[FilterTreeRequest], Awaitable[Sequence[FilterTreeNode] | None]]


def _always_enabled(_entity: Any) -> bool:
    return True


class ListToolbarController:
    """Single source of truth behind a paginated, filterable list view.

    Args:
        settings: Optional initial settings, applied immediately.
        local: Page, filter and search an in-memory snapshot instead of
            asking a remote source for every page.
        scheduler: Deferred-effect scheduler.  Defaults to an
            :class:`AsyncioScheduler` bound to the running loop.
        preference_store: Where column choices are persisted.
        remote_source: Remote page provider (remote mode).
        row_filter: Predicate evaluator (local mode).
        key: Entity identity for the selection.
        item_status: Decides whether an entity may be selected by the
            page-level helpers.  Defaults to "every entity".
        hidden_filters: Filter names not offered in the toolbar.
        always_visible: Show the toolbar even for an empty dataset.
        debounce_seconds: Quiet window of the search input.
        option_threshold: Above this many options, filters render as
            select lists.
    """

    def __init__(
        self,
        settings: ToolbarSettings | None = None,
        *,
        local: bool = False,
        scheduler: Scheduler | None = None,
        preference_store: PreferenceStore | None = None,
        remote_source: RemoteDataSource | None = None,
        row_filter: RowFilter | None = None,
        key: Callable[[Any], Hashable] | None = None,
        item_status: Callable[[Any], bool] | None = None,
        hidden_filters: Iterable[str] = (),
        always_visible: bool = False,
        debounce_seconds: float = _DEFAULT_SEARCH_DEBOUNCE,
        option_threshold: int = _DEFAULT_FILTER_OPTION_THRESHOLD,
    ) -> None:
        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self.item_status = item_status or _always_enabled
        self.always_visible = always_visible

        self.selection = SelectionModel(self.scheduler, key=key)
        self.composer = FilterComposer(
            hidden_filters=hidden_filters,
            option_threshold=option_threshold,
        )
        self.resolver = ViewConfigResolver(preference_store)
        self.navigator = NavigationSynchronizer(
            self.scheduler,
            local=local,
            remote_source=remote_source,
            row_filter=row_filter,
            debounce_seconds=debounce_seconds,
        )

        self._settings: ToolbarSettings | None = None
        self._source_schema: EntitySchema | None = None
        self.entity_schema: EntitySchema | None = None
        self.group_data = GroupData()
        self.filter_tree: FilterTree | None = None
        self.has_filter_tree = False
        self.filter_type: str | None = None
        self.tree_selection: list[FilterTreeNode] = []

        # -- outputs --
        self.selection_changed = self.selection.changed
        self.navigation_state_changed = self.navigator.changed
        self.page_changed = self.navigator.page_changed
        self.search = self.navigator.search_submitted
        self.custom_filter_removed = self.composer.custom_filter_removed
        self.shown_columns_changed = self.resolver.shown_columns_changed
        self.additional_list_elements_changed = self.resolver.additional_list_elements_changed
        self.settings_changed = Signal("settings_changed")
        self.data_source_changed = Signal("data_source_changed")
        self.entity_schema_changed = Signal("entity_schema_changed")
        self.grouping_changed = Signal("grouping_changed")
        self.filter_tree_selection_changed = Signal("filter_tree_selection_changed")

        self.composer.resync_requested.connect(self.navigator.apply_filters)
        self.composer.filters_mirrored.connect(self.navigator.mirror_filters)
        self.navigator.page_changed.connect(self._on_page_changed)

        if settings is not None:
            self.update_settings(settings)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def local(self) -> bool:
        return self.navigator.local

    @property
    def settings(self) -> ToolbarSettings | None:
        """A fresh snapshot of the canonical state.

        The snapshot carries the schema instance last pushed by the host,
        so pushing it back is treated as a refresh, not a new dataset.
        """
        if self._settings is None or self._source_schema is None:
            return None
        # Local mode keeps the full dataset; remote mode only ever has the page.
        data_source = self._settings.data_source if self.local else self.page
        return ToolbarSettings(
            data_source=data_source,
            displayed_columns=list(self._settings.displayed_columns),
            schema=self._source_schema,
            navigation_state=self.navigator.state.copy(),
            filters=self.composer.filters,
            filter_tree=self.filter_tree,
            group_data=self.group_data,
            data_model=self._settings.data_model,
        )

    def update_settings(self, settings: ToolbarSettings) -> None:
        """Accept settings pushed by the host.

        A schema instance different from the previous one (identity, not
        equality) marks a new logical dataset; the same instance is a
        data refresh of the current one.
        """
        is_new_dataset = settings.schema is not self._source_schema
        self._settings = settings

        if is_new_dataset:
            console.debug(
                f"[ListToolbar] new dataset '{settings.schema.display}': "
                f"{settings.data_source.total_count:,} rows, "
                f"mode={'local' if self.local else 'remote'}"
            )
            self._source_schema = settings.schema
            self.group_data = settings.group_data or GroupData()
            self.navigator.reset(settings.navigation_state, settings.data_source)

            self.composer.load(settings.filters or [])
            self.navigator.filter_definitions = self.composer.filters
            if not self.composer.apply_initial_values():
                # Incoming state may carry filters no definition holds.
                self.navigator.mirror_filters(self.composer.values())

            self._probe_filter_tree(settings.filter_tree)

            self.entity_schema = self.resolver.resolve(
                settings.schema,
                settings.displayed_columns,
                settings.data_model,
            )
            self.entity_schema_changed.emit(self.entity_schema)
            self.data_source_changed.emit(settings.data_source)
        else:
            self.navigator.refresh(settings.data_source)

        self.settings_changed.emit(self.settings)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected(self) -> list[Any]:
        return self.selection.selected

    def toggle(self, entity: Any) -> None:
        self.selection.toggle(entity)

    def checked(self, entity: Any) -> None:
        self.selection.checked(entity)

    def unchecked(self, entity: Any) -> None:
        self.selection.unchecked(entity)

    def is_checked(self, entity: Any) -> bool:
        return self.selection.is_selected(entity)

    def num_selected(self) -> int:
        return len(self.selection)

    def num_selectable(self) -> int:
        """Entities on the current page that may be selected."""
        return sum(1 for entity in self.page.data if self.item_status(entity))

    def num_selected_on_page(self) -> int:
        return sum(1 for entity in self.page.data if self.selection.is_selected(entity))

    def all_selected(self) -> bool:
        """Whether every selectable entity on the current page is selected."""
        selectable = [entity for entity in self.page.data if self.item_status(entity)]
        if not selectable:
            return False
        return all(self.selection.is_selected(entity) for entity in selectable)

    def select_all_on_page(self) -> None:
        self.selection.check_all(
            entity for entity in self.page.data if self.item_status(entity)
        )

    def toggle_page_selection(self) -> None:
        """Header checkbox: deselect the page if all of it is selected, else select it."""
        if self.all_selected():
            self.selection.uncheck_all(self.page.data)
        else:
            self.select_all_on_page()

    def clear_selection(self) -> None:
        self.selection.clear()

    def preselect(self, entities: Iterable[Any]) -> None:
        self.selection.preselect(entities)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def page(self) -> DataPage:
        return self.navigator.page

    @property
    def navigation_state(self) -> NavigationState:
        return self.navigator.state.copy()

    def navigation_changed(self, state: NavigationState) -> None:
        """Adopt a navigation state coming from the paginator or the table."""
        self.navigator.set_navigation_state(state)

    def navigate(self, start_index: int | None = None, page_size: int | None = None) -> None:
        self.navigator.navigate(start_index, page_size)

    def set_sort(self, order_by: Sequence[Mapping[str, str]]) -> None:
        self.navigator.set_sort(order_by)

    def set_search_text(self, text: str) -> None:
        self.navigator.set_search_text(text)

    def submit_search(self, text: str) -> None:
        self.navigator.submit_search(text)

    async def reload(self) -> DataPage:
        return await self.navigator.reload()

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @property
    def filters(self) -> list[FilterDefinition]:
        return self.composer.filters

    @property
    def visible_filters(self) -> list[FilterDefinition]:
        return self.composer.visible_filters

    @property
    def selected_filters(self) -> list[SelectedFilter]:
        return self.composer.selected_filters

    def apply_option(
        self,
        filter: FilterDefinition | str,
        option_value: str,
        is_set: bool = True,
    ) -> None:
        self.composer.apply_option(filter, option_value, is_set)

    def select_option(self, filter: FilterDefinition | str, option_value: str | None) -> None:
        self.composer.select_option(filter, option_value)

    def apply_multi_selection(self, filter: FilterDefinition | str, values: Iterable[str]) -> None:
        self.composer.apply_multi_selection(filter, values)

    def multi_select_current_value(self, filter: FilterDefinition | str) -> list[str]:
        return self.composer.multi_select_current_value(filter)

    def uses_select_list(self, filter: FilterDefinition | str) -> bool:
        return self.composer.uses_select_list(filter)

    def remove_selected_filter(
        self,
        filter: FilterDefinition | str,
        emit: bool = True,
        option_value: str | None = None,
        selected: SelectedFilter | None = None,
    ) -> bool:
        return self.composer.remove_selected_filter(filter, emit, option_value, selected)

    def add_custom_filter(self, filter: FilterDefinition, option: FilterOption) -> SelectedFilter:
        return self.composer.add_custom_filter(filter, option)

    def clear_filters(self) -> None:
        self.composer.clear_all()

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    @property
    def current_grouping(self) -> Grouping | None:
        return self.group_data.current_grouping

    def group_column_display(self, group: GroupOption) -> str:
        if group.display:
            return group.display
        if self.entity_schema is not None:
            return self.entity_schema.column_display(group.column)
        return group.column

    def select_grouping(
        self,
        group: GroupOption,
        category: GroupingCategory | None = None,
    ) -> None:
        """Group the list by *group*, labelled "<category> - <group>"."""
        display = self.group_column_display(group)
        if category is not None and category.display:
            display = f"{category.display} - {display}"
        self.group_data.current_grouping = Grouping(
            display=display,
            get_data=group.get_data,
            column=group.column,
        )
        self.grouping_changed.emit(self.group_data.current_grouping)
        self.navigator.regroup()

    def clear_grouping(self) -> None:
        self.group_data.current_grouping = None
        self.grouping_changed.emit(None)
        self.navigator.regroup()

    def group_key(self, entity: Any) -> Any:
        """Bucket of *entity* under the current grouping, ``None`` when ungrouped."""
        grouping = self.group_data.current_grouping
        return grouping.get_data(entity) if grouping is not None else None

    # ------------------------------------------------------------------
    # Columns and dialogs
    # ------------------------------------------------------------------

    @property
    def shown_columns(self) -> list[ColumnDescriptor]:
        return list(self.resolver.shown_columns)

    @property
    def optional_columns(self) -> list[ColumnDescriptor]:
        return list(self.resolver.optional_columns)

    @property
    def additional_list_elements(self) -> list[ColumnDescriptor]:
        return list(self.resolver.additional_list_elements)

    @property
    def has_view_settings(self) -> bool:
        return self.resolver.has_view_settings

    def select_columns(self, columns: Sequence[ColumnDescriptor]) -> None:
        self.resolver.select_columns(columns)

    async def show_column_picker(self, picker: ColumnPicker) -> list[ColumnDescriptor] | None:
        """Open the column picker; ``None`` from the dialog changes nothing."""
        result = await picker(self.resolver.picker_request())
        if result is None:
            return None
        self.resolver.select_columns(result)
        return self.shown_columns

    async def show_filter_tree(self, picker: FilterTreePicker) -> list[FilterTreeNode] | None:
        """Open the filter-tree picker; ``None`` from the dialog changes nothing."""
        if self.filter_tree is None:
            return None
        request = FilterTreeRequest(
            filter_tree=self.filter_tree,
            preselection=list(self.tree_selection),
            filter_type=self.filter_type,
        )
        result = await picker(request)
        if result is None:
            return None
        self.tree_selection = list(result)
        self.filter_tree_selection_changed.emit([node.filter for node in self.tree_selection])
        return list(self.tree_selection)

    def clear_tree_filter(self) -> None:
        self.tree_selection = []
        self.filter_tree_selection_changed.emit([])

    def reset_view(self) -> bool:
        return self.resolver.reset()

    # ------------------------------------------------------------------
    # Derived reads
    # ------------------------------------------------------------------

    @property
    def data_has_data(self) -> bool:
        return self.page.total_count > 0

    @property
    def is_limit_reached(self) -> bool:
        return self.page.is_limit_reached

    @property
    def search_applied(self) -> bool:
        return len(self.navigator.state.search) > 0

    @property
    def filters_applied(self) -> bool:
        return len(self.composer.selected_filters) > 0

    @property
    def show_toolbar(self) -> bool:
        # An active search or filter keeps the toolbar up even with no rows.
        if self.always_visible or self.search_applied or self.filters_applied:
            return True
        return self.data_has_data

    @property
    def summary(self) -> str:
        """One-line description of the window, search, filters, sort and grouping."""
        state = self.navigator.state
        page = self.page
        parts: list[str] = []
        if page.data:
            first = state.start_index + 1
            last = state.start_index + len(page.data)
            parts.append(f"{first:,}-{last:,} of {page.total_count:,}")
        else:
            parts.append(f"0 of {page.total_count:,}")
        if state.search:
            parts.append(f"search {state.search!r}")
        if state.filters:
            values = ", ".join(f"{name}={value}" for name, value in state.filters.items())
            parts.append(f"{len(state.filters)} filter(s): {values}")
        if state.order_by:
            sort_fields = ", ".join(
                f"{entry.get('field', '?')} {entry.get('sort', 'asc')}" for entry in state.order_by
            )
            parts.append(f"{len(state.order_by)} sort(s): {sort_fields}")
        if self.group_data.current_grouping is not None:
            parts.append(f"grouped by {self.group_data.current_grouping.display}")
        if len(self.selection):
            parts.append(f"{len(self.selection)} selected")
        return " | ".join(parts)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_page_changed(self, page: DataPage) -> None:
        self.settings_changed.emit(self.settings)

    def _probe_filter_tree(self, filter_tree: FilterTree | None) -> None:
        self.filter_tree = filter_tree
        self.has_filter_tree = False
        self.filter_type = None
        self.tree_selection = []
        if filter_tree is not None:
            self.scheduler.create_task(self._load_filter_tree_roots(filter_tree))

    async def _load_filter_tree_roots(self, filter_tree: FilterTree) -> None:
        roots = await filter_tree.filter_method("")
        if filter_tree is not self.filter_tree:
            # A newer dataset replaced the tree while we were waiting.
            return
        self.has_filter_tree = len(roots.elements) > 0
        self.filter_type = roots.description
