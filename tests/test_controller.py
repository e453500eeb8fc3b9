import asyncio

import pytest

from conftest import Recorder, make_rows, make_schema, make_settings, row_key, status_filter, tags_filter
from reflex_list_toolbar.controller import ListToolbarController
from reflex_list_toolbar.models import (
    ColumnDescriptor,
    DataModel,
    DataModelProperty,
    DataPage,
    FilterTree,
    FilterTreeData,
    FilterTreeNode,
    GroupData,
    GroupingCategory,
    GroupOption,
    NavigationState,
    ViewConfig,
)
from reflex_list_toolbar.view_config import InMemoryPreferenceStore


def local_controller(scheduler, **kwargs):
    return ListToolbarController(local=True, scheduler=scheduler, key=row_key, **kwargs)


def only_status(entities, state, filters):
    wanted = state.filters.get("status")
    return [e for e in entities if wanted is None or e["status"] == wanted]


def test_selection_survives_paging(scheduler):
    rows = make_rows(25)
    controller = local_controller(scheduler)
    controller.update_settings(make_settings(rows, page_size=10))
    scheduler.run_pending()

    controller.navigate(start_index=20)
    assert len(controller.page.data) == 5
    controller.toggle(rows[23])

    controller.navigate(start_index=0)

    assert controller.is_checked(rows[23])
    assert rows[23] not in controller.page.data
    assert controller.num_selected() == 1
    assert controller.num_selected_on_page() == 0


def test_schema_identity_decides_new_dataset(scheduler):
    controller = local_controller(scheduler)
    schemas = Recorder()
    sources = Recorder()
    settings_seen = Recorder()
    controller.entity_schema_changed.connect(schemas)
    controller.data_source_changed.connect(sources)
    controller.settings_changed.connect(settings_seen)
    schema = make_schema()

    controller.update_settings(make_settings(make_rows(25), schema, page_size=10))
    scheduler.run_pending()
    controller.navigate(start_index=10)

    # Same schema instance: a refresh, the cursor stays.
    controller.update_settings(make_settings(make_rows(30), schema, page_size=10))
    scheduler.run_pending()
    assert len(schemas) == 1
    assert len(sources) == 1
    assert controller.navigation_state.start_index == 10
    assert controller.page.total_count == 30

    # New instance, equal content: a new dataset.
    controller.update_settings(make_settings(make_rows(5), make_schema(), page_size=10))
    scheduler.run_pending()
    assert len(schemas) == 2
    assert controller.navigation_state.start_index == 0
    assert len(settings_seen) >= 3


def test_settings_snapshot_round_trips_as_a_refresh(scheduler):
    controller = local_controller(scheduler)
    schemas = Recorder()
    controller.entity_schema_changed.connect(schemas)
    controller.update_settings(make_settings(make_rows(5)))
    scheduler.run_pending()

    snapshot = controller.settings
    snapshot.navigation_state.start_index = 3
    controller.update_settings(snapshot)

    assert len(schemas) == 1
    assert controller.navigation_state.start_index == 0


def test_initial_filter_values_apply_once_per_dataset(scheduler):
    controller = local_controller(scheduler, row_filter=only_status)
    states = Recorder()
    controller.navigation_state_changed.connect(states)

    controller.update_settings(
        make_settings(make_rows(25), filters=[status_filter(initial_value="pending")])
    )
    scheduler.run_pending()

    assert len(states) == 1
    assert states.last.filters == {"status": "pending"}
    assert controller.page.total_count == 8
    assert controller.filters_applied


def test_incoming_filters_without_a_definition_value_are_dropped(scheduler):
    controller = local_controller(scheduler, row_filter=only_status)
    states = Recorder()
    controller.navigation_state_changed.connect(states)

    controller.update_settings(
        make_settings(
            make_rows(25),
            filters=[status_filter()],
            navigation_state=NavigationState(page_size=20, filters={"status": "active"}),
        )
    )
    scheduler.run_pending()

    assert controller.navigation_state.filters == {}
    assert not controller.filters_applied
    assert controller.page.total_count == 25
    assert len(states) == 0


def test_removing_custom_filter_updates_navigation_state_quietly(scheduler):
    controller = local_controller(scheduler)
    controller.update_settings(make_settings(make_rows(3), filters=[tags_filter()]))
    tags = controller.composer.get("tags")
    entry = controller.add_custom_filter(tags, tags.find_option("a"))
    assert controller.navigation_state.filters == {"tags": "a"}
    states = Recorder()
    removed = Recorder()
    controller.navigation_state_changed.connect(states)
    controller.custom_filter_removed.connect(removed)

    controller.remove_selected_filter("tags", selected=entry)

    assert controller.navigation_state.filters == {}
    assert removed.last is entry
    assert len(states) == 0


def test_status_filter_scenario(scheduler):
    controller = local_controller(scheduler, row_filter=only_status)
    controller.update_settings(make_settings(make_rows(25), filters=[status_filter()]))
    scheduler.run_pending()

    controller.select_option("status", "active")
    controller.select_option("status", "inactive")

    assert [(sf.name, sf.value) for sf in controller.selected_filters] == [("status", "inactive")]
    assert controller.navigation_state.filters["status"] == "inactive"
    assert all(row["status"] == "inactive" for row in controller.page.data)


def test_tags_filter_scenario(scheduler):
    controller = local_controller(scheduler)
    controller.update_settings(make_settings(make_rows(3), filters=[tags_filter()]))

    controller.apply_option("tags", "a")
    controller.apply_option("tags", "b")
    assert controller.navigation_state.filters["tags"] == "a,b"

    controller.apply_option("tags", "a", is_set=False)
    assert controller.navigation_state.filters["tags"] == "b"


def test_filter_change_resets_start_sort_keeps_it(scheduler):
    controller = local_controller(scheduler)
    controller.update_settings(make_settings(make_rows(25), page_size=10, filters=[status_filter()]))
    scheduler.run_pending()
    controller.navigate(start_index=20)

    controller.set_sort([{"field": "name", "sort": "desc"}])
    assert controller.navigation_state.start_index == 20

    controller.select_option("status", "active")
    assert controller.navigation_state.start_index == 0


def test_clear_filters_twice_gives_the_same_state(scheduler):
    controller = local_controller(scheduler)
    controller.update_settings(make_settings(make_rows(5), filters=[status_filter(), tags_filter()]))
    controller.apply_multi_selection("tags", ["a", "c"])
    controller.select_option("status", "active")

    controller.clear_filters()
    once = controller.navigation_state
    controller.clear_filters()

    assert controller.navigation_state == once
    assert once.filters == {}


def test_page_selection_helpers_honour_item_status(scheduler):
    rows = make_rows(6)
    controller = local_controller(scheduler, item_status=lambda row: row["status"] != "pending")
    controller.update_settings(make_settings(rows))
    scheduler.run_pending()
    changes = Recorder()
    controller.selection_changed.connect(changes)

    assert controller.num_selectable() == 4
    assert not controller.all_selected()

    controller.toggle_page_selection()
    assert controller.all_selected()
    assert controller.num_selected_on_page() == 4
    assert not controller.is_checked(rows[2])
    assert len(changes) == 1

    controller.toggle_page_selection()
    assert controller.num_selected() == 0


def test_clear_selection_is_deferred(scheduler):
    rows = make_rows(3)
    controller = local_controller(scheduler)
    controller.update_settings(make_settings(rows))
    controller.checked(rows[0])

    controller.clear_selection()
    assert controller.num_selected() == 1
    scheduler.run_pending()
    assert controller.num_selected() == 0


def test_preselect_does_not_emit(scheduler):
    rows = make_rows(3)
    controller = local_controller(scheduler)
    changes = Recorder()
    controller.selection_changed.connect(changes)

    controller.preselect(rows[:2])
    scheduler.run_pending()

    assert controller.num_selected() == 2
    assert len(changes) == 0


def test_grouping_display_and_reset(scheduler):
    rows = make_rows(25)
    controller = local_controller(scheduler)
    by_status = GroupOption(column="status", get_data=lambda row: row["status"])
    controller.update_settings(
        make_settings(rows, page_size=10, group_data=GroupData(groups=[by_status]))
    )
    scheduler.run_pending()
    groupings = Recorder()
    controller.grouping_changed.connect(groupings)
    controller.navigate(start_index=10)

    controller.select_grouping(by_status, GroupingCategory(display="Item"))

    assert groupings.last.display == "Item - Status"
    assert controller.navigation_state.start_index == 0
    assert controller.group_key(rows[1]) == "inactive"

    controller.select_grouping(GroupOption(column="owner", get_data=len, display="Owner"))
    assert controller.current_grouping.display == "Owner"

    controller.clear_grouping()
    assert groupings.last is None
    assert controller.group_key(rows[1]) is None


def test_search_submission_and_derived_reads(scheduler):
    controller = local_controller(scheduler, row_filter=lambda entities, state, filters: [])
    searches = Recorder()
    controller.search.connect(searches)
    controller.update_settings(make_settings([]))
    scheduler.run_pending()
    assert not controller.show_toolbar

    controller.submit_search("zzz")

    assert searches.calls == [("zzz",)]
    assert controller.search_applied
    assert not controller.data_has_data
    assert controller.show_toolbar


def test_always_visible_toolbar(scheduler):
    controller = local_controller(scheduler, always_visible=True)
    controller.update_settings(make_settings([]))

    assert controller.show_toolbar


def test_limit_reached_comes_from_the_data_source(scheduler):
    controller = local_controller(scheduler)
    settings = make_settings(make_rows(3))
    settings.data_source = DataPage(make_rows(3), 3, is_limit_reached=True)
    controller.update_settings(settings)
    scheduler.run_pending()

    assert controller.is_limit_reached


def test_summary_line(scheduler):
    rows = make_rows(25)
    controller = local_controller(scheduler, row_filter=only_status)
    controller.update_settings(make_settings(rows, page_size=10, filters=[status_filter()]))
    scheduler.run_pending()
    assert controller.summary == "1-10 of 25"

    controller.select_option("status", "active")
    controller.set_sort([{"field": "name", "sort": "desc"}])
    controller.checked(rows[0])

    assert controller.summary == (
        "1-9 of 9 | 1 filter(s): status=active | 1 sort(s): name desc | 1 selected"
    )


def test_column_picker_dialog(scheduler):
    store = InMemoryPreferenceStore()
    controller = local_controller(scheduler, preference_store=store)
    controller.update_settings(make_settings(make_rows(3)))
    shown = Recorder()
    controller.shown_columns_changed.connect(shown)

    async def cancel(request):
        return None

    async def pick_status(request):
        return [request.schema.get("status")]

    assert asyncio.run(controller.show_column_picker(cancel)) is None
    assert len(shown) == 0

    result = asyncio.run(controller.show_column_picker(pick_status))
    assert [c.name for c in result] == ["status"]
    assert store.get("columns-items") == ["status"]


def test_view_model_columns_and_reset(scheduler):
    owner = ColumnDescriptor("owner", "Owner", is_additional=True)
    model = DataModel(
        properties=(DataModelProperty(owner, is_additional_column=True),),
        configurations=(ViewConfig("default"),),
        default_config_id="default",
    )
    controller = local_controller(scheduler, preference_store=InMemoryPreferenceStore())
    schemas = Recorder()
    controller.entity_schema_changed.connect(schemas)
    controller.update_settings(make_settings(make_rows(3), data_model=model))

    assert "owner" in schemas.last.columns
    assert controller.has_view_settings
    assert [c.name for c in controller.optional_columns] == ["owner"]

    controller.select_columns([owner])
    assert controller.reset_view()
    assert [c.name for c in controller.shown_columns] == ["name", "status"]


def test_filter_tree_probe_and_picker(scheduler):
    roots = FilterTreeData(
        elements=[FilterTreeNode("eu", "Europe", filter="region = 'eu'")],
        description="Region",
    )

    async def filter_method(parent_key: str) -> FilterTreeData:
        return roots

    controller = local_controller(scheduler)
    selections = Recorder()
    controller.filter_tree_selection_changed.connect(selections)
    controller.update_settings(make_settings(make_rows(3), filter_tree=FilterTree(filter_method)))
    assert not controller.has_filter_tree

    scheduler.run_pending()
    assert controller.has_filter_tree
    assert controller.filter_type == "Region"

    async def pick_first(request):
        assert request.filter_type == "Region"
        return list(roots.elements)

    asyncio.run(controller.show_filter_tree(pick_first))
    assert selections.last == ["region = 'eu'"]

    controller.clear_tree_filter()
    assert selections.last == []


def test_remote_controller_fetches_through_the_source(scheduler):
    rows = make_rows(25)

    class Remote:
        def __init__(self):
            self.calls = 0

        async def load(self, state):
            self.calls += 1
            return DataPage(rows[state.start_index:state.start_index + state.page_size], 25)

    remote = Remote()
    controller = ListToolbarController(scheduler=scheduler, remote_source=remote, key=row_key)
    controller.update_settings(make_settings(rows[:10], page_size=10))

    controller.navigate(start_index=10)
    scheduler.run_pending()

    assert remote.calls == 1
    assert controller.page.data == rows[10:20]


def test_hidden_filters_are_not_visible(scheduler):
    controller = local_controller(scheduler, hidden_filters=["tags"])
    controller.update_settings(make_settings(make_rows(3), filters=[status_filter(), tags_filter()]))

    assert [f.name for f in controller.visible_filters] == ["status"]
    assert [f.name for f in controller.filters] == ["status", "tags"]
