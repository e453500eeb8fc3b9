import json

import pytest

from conftest import Recorder
from reflex_list_toolbar.models import (
    ColumnDescriptor,
    DataModel,
    DataModelProperty,
    EntitySchema,
    ViewConfig,
)
from reflex_list_toolbar.view_config import (
    InMemoryPreferenceStore,
    JsonPreferenceStore,
    ViewConfigResolver,
    preference_key,
)

NAME = ColumnDescriptor("name", "Name")
STATUS = ColumnDescriptor("status", "Status")
OWNER = ColumnDescriptor("owner", "Owner", is_additional=True)
CREATED = ColumnDescriptor("created", "Created", is_additional=True)
NOTES = ColumnDescriptor("notes", "Notes", is_additional=True)


def people_schema() -> EntitySchema:
    return EntitySchema(display="people", columns={"name": NAME})


def people_model() -> DataModel:
    return DataModel(
        properties=(
            DataModelProperty(NAME),
            DataModelProperty(OWNER, is_additional_column=True),
            DataModelProperty(CREATED, is_additional_column=True),
            DataModelProperty(NOTES, is_additional_column=True),
        ),
        configurations=(
            ViewConfig("default", additional_table_columns=("owner",), additional_list_columns=("notes",)),
        ),
        default_config_id="default",
    )


def test_saved_column_missing_from_schema_falls_back_to_displayed_column():
    store = InMemoryPreferenceStore({"columns-people": ["name", "status"]})
    resolver = ViewConfigResolver(store)

    resolver.resolve(people_schema(), [NAME, STATUS], None)

    assert [c.name for c in resolver.shown_columns] == ["name", "status"]


def test_saved_column_missing_everywhere_is_dropped():
    store = InMemoryPreferenceStore({"columns-people": ["name", "status", "ghost"]})
    resolver = ViewConfigResolver(store)

    resolver.resolve(people_schema(), [NAME], None)

    assert [c.name for c in resolver.shown_columns] == ["name"]


def test_data_model_extends_schema_without_mutating_it():
    schema = people_schema()
    resolver = ViewConfigResolver()

    extended = resolver.resolve(schema, [NAME], people_model())

    assert extended is not schema
    assert list(schema.columns) == ["name"]
    assert set(extended.columns) == {"name", "owner", "created", "notes"}


def test_optional_shown_and_list_columns_from_default_configuration():
    resolver = ViewConfigResolver()
    shown = Recorder()
    elements = Recorder()
    resolver.shown_columns_changed.connect(shown)
    resolver.additional_list_elements_changed.connect(elements)

    resolver.resolve(people_schema(), [NAME], people_model())

    assert [c.name for c in resolver.optional_columns] == ["created", "notes"]
    assert [c.name for c in resolver.shown_columns] == ["name", "owner"]
    assert [c.name for c in elements.last] == ["notes"]
    assert [c.name for c in shown.last] == ["name", "owner"]
    assert resolver.has_view_settings


def test_configured_column_already_displayed_is_shown_once():
    model = DataModel(
        properties=(DataModelProperty(NAME), DataModelProperty(STATUS)),
        configurations=(ViewConfig("default", additional_table_columns=("status",)),),
        default_config_id="default",
    )
    schema = EntitySchema(display="people", columns={"name": NAME, "status": STATUS})
    store = InMemoryPreferenceStore()
    resolver = ViewConfigResolver(store=store)

    resolver.resolve(schema, [NAME, STATUS], model)
    assert [c.name for c in resolver.shown_columns] == ["name", "status"]
    assert [c.name for c in resolver.picker_request().displayed_columns] == ["name", "status"]

    resolver.reset()
    assert [c.name for c in resolver.shown_columns] == ["name", "status"]
    assert store.get("columns-people") == ["name", "status"]


def test_shown_columns_are_seeded_once_per_dataset_kind():
    resolver = ViewConfigResolver()
    resolver.resolve(people_schema(), [NAME], people_model())
    resolver.select_columns([OWNER, NAME])

    # Same kind, new schema instance: the user's choice survives.
    resolver.resolve(people_schema(), [NAME], people_model())
    assert [c.name for c in resolver.shown_columns] == ["owner", "name"]

    # Different kind: recomputed.
    resolver.resolve(EntitySchema(display="teams", columns={"name": NAME}), [NAME], None)
    assert [c.name for c in resolver.shown_columns] == ["name"]


def test_unknown_configured_column_is_skipped():
    model = DataModel(
        properties=(DataModelProperty(NAME),),
        configurations=(ViewConfig("default", additional_table_columns=("missing",)),),
        default_config_id="default",
    )
    resolver = ViewConfigResolver()

    resolver.resolve(people_schema(), [NAME], model)

    assert [c.name for c in resolver.shown_columns] == ["name"]


def test_property_lookup_is_case_insensitive():
    model = DataModel(
        properties=(DataModelProperty(OWNER, is_additional_column=True),),
        configurations=(ViewConfig("default", additional_table_columns=("Owner",)),),
        default_config_id="default",
    )
    resolver = ViewConfigResolver()

    extended = resolver.resolve(people_schema(), [NAME], model)

    assert extended.get("Owner").display == "Owner"
    assert [c.name for c in resolver.shown_columns] == ["name", "Owner"]


def test_select_columns_persists_and_dedupes():
    store = InMemoryPreferenceStore()
    resolver = ViewConfigResolver(store)
    resolver.resolve(people_schema(), [NAME], people_model())

    resolver.select_columns([NAME, OWNER, NAME])

    assert store.get("columns-people") == ["name", "owner"]
    assert [c.name for c in resolver.shown_columns] == ["name", "owner"]


def test_reset_restores_defaults_and_clears_list_elements():
    store = InMemoryPreferenceStore({"list-elements-people": ["notes"]})
    resolver = ViewConfigResolver(store)
    resolver.resolve(people_schema(), [NAME], people_model())
    resolver.select_columns([CREATED])

    assert resolver.reset()

    assert [c.name for c in resolver.shown_columns] == ["name", "owner"]
    assert store.get("columns-people") == ["name", "owner"]
    assert store.get("list-elements-people") == []


def test_reset_without_configuration_is_a_no_op():
    resolver = ViewConfigResolver(InMemoryPreferenceStore())
    resolver.resolve(people_schema(), [NAME], None)

    assert not resolver.reset()


def test_picker_request_snapshots_current_state():
    resolver = ViewConfigResolver()
    resolver.resolve(people_schema(), [NAME], people_model())

    request = resolver.picker_request()

    assert [c.name for c in request.displayed_columns] == ["name", "owner"]
    assert [c.name for c in request.optional_columns] == ["created", "notes"]
    assert [c.name for c in request.preselected] == ["name", "owner"]


def test_preference_key_uses_dataset_kind():
    assert preference_key(people_schema(), "columns") == "columns-people"


def test_json_store_round_trip(tmp_path):
    path = tmp_path / "prefs.json"
    store = JsonPreferenceStore(path)

    assert store.get("columns-people") == []
    store.set("columns-people", ["name", "owner"])
    store.set("columns-teams", ["name"])

    assert JsonPreferenceStore(path).get("columns-people") == ["name", "owner"]
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "columns-people": ["name", "owner"],
        "columns-teams": ["name"],
    }


def test_json_store_rejects_non_object_files(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError, match="JSON object"):
        JsonPreferenceStore(path).get("columns-people")
