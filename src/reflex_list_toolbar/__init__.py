"""reflex-list-toolbar – selection, filters, columns and paging behind a list view.

The core (:class:`ListToolbarController` and its collaborators) has no UI of
its own; it publishes every effect on a :class:`Signal`.  Install the package
to get the Reflex state mixin, the polars-backed local-mode filtering and the
``reflex-list-toolbar`` CLI::

    pip install reflex-list-toolbar
"""

from reflex_list_toolbar.controller import FilterTreeRequest, ListToolbarController
from reflex_list_toolbar.events import Signal
from reflex_list_toolbar.filters import FilterComposer, fold_values, split_value
from reflex_list_toolbar.models import (
    ColumnDescriptor,
    DataModel,
    DataModelProperty,
    DataPage,
    EntitySchema,
    FilterDefinition,
    FilterOption,
    FilterTree,
    FilterTreeData,
    FilterTreeNode,
    GroupData,
    Grouping,
    GroupingCategory,
    GroupOption,
    NavigationState,
    SelectedFilter,
    SelectionChange,
    ToolbarSettings,
    ViewConfig,
)
from reflex_list_toolbar.navigation import NavigationSynchronizer, RemoteDataSource, RowFilter
from reflex_list_toolbar.polars_utils import (
    PolarsRowFilter,
    apply_filter_model,
    apply_search,
    apply_sort_model,
    frame_to_rows,
    infer_filter_definitions,
    navigation_to_filter_model,
    scan_file,
    schema_from_polars,
    toolbar_settings_from_frame,
)
from reflex_list_toolbar.scheduling import AsyncioScheduler, ManualScheduler, Scheduler
from reflex_list_toolbar.selection import SelectionModel
from reflex_list_toolbar.state import ListToolbarMixin
from reflex_list_toolbar.view_config import (
    ColumnPickerRequest,
    InMemoryPreferenceStore,
    JsonPreferenceStore,
    PreferenceStore,
    ViewConfigResolver,
    preference_key,
)
