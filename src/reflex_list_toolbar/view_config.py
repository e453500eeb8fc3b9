"""Resolve visible columns from a declarative view model and saved preferences.

The resolver merges three sources, in increasing priority:

1. the host's base displayed columns,
2. the data model's default configuration (additional table columns and
   additional list columns), and
3. the user's saved column choice from a preference store, keyed by the
   dataset kind (``"columns-<schema.display>"``).

Lookups that miss -- a saved identifier no longer in the schema, a
configured column absent from the property catalog -- are dropped, never
raised.
"""

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from reflex.utils import console

from reflex_list_toolbar.events import Signal
from reflex_list_toolbar.models import ColumnDescriptor, DataModel, EntitySchema, ViewConfig


def preference_key(schema: EntitySchema, purpose: str) -> str:
    """Key under which preferences for *schema*'s dataset kind are stored."""
    return f"{purpose}-{schema.display}"


# ---------------------------------------------------------------------------
# Preference stores
# ---------------------------------------------------------------------------

class PreferenceStore(Protocol):
    def get(self, key: str) -> list[str]: ...

    def set(self, key: str, value: list[str]) -> None: ...


class InMemoryPreferenceStore:
    """Dict-backed store, for tests and for hosts without persistence."""

    def __init__(self, initial: dict[str, list[str]] | None = None) -> None:
        self._data: dict[str, list[str]] = {k: list(v) for k, v in (initial or {}).items()}

    def get(self, key: str) -> list[str]:
        return list(self._data.get(key, []))

    def set(self, key: str, value: list[str]) -> None:
        self._data[key] = list(value)


class JsonPreferenceStore:
    """Store preferences as one JSON object in a file.

    The file is re-read on every :meth:`get` and rewritten on every
    :meth:`set`; the last write wins.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, list[str]]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Preference file {self.path} must hold a JSON object")
        return data

    def get(self, key: str) -> list[str]:
        value = self._load().get(key, [])
        return [str(v) for v in value] if isinstance(value, list) else []

    def set(self, key: str, value: list[str]) -> None:
        data = self._load()
        data[key] = list(value)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def _dedupe(names: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


@dataclass
class ColumnPickerRequest:
    """Snapshot handed to the column-picker dialog."""

    data_model: DataModel | None
    schema: EntitySchema
    displayed_columns: list[ColumnDescriptor]
    optional_columns: list[ColumnDescriptor]
    preselected: list[ColumnDescriptor] = field(default_factory=list)


class ViewConfigResolver:
    """Computes shown columns, optional columns and list elements.

    Args:
        store: Preference store for saved column choices.  ``None``
            disables persistence.
    """

    def __init__(self, store: PreferenceStore | None = None) -> None:
        self.store = store
        self.schema: EntitySchema | None = None
        self.data_model: DataModel | None = None
        self.displayed_columns: list[ColumnDescriptor] = []
        self.current_config: ViewConfig | None = None
        self.shown_columns: list[ColumnDescriptor] = []
        self.optional_columns: list[ColumnDescriptor] = []
        self.additional_list_elements: list[ColumnDescriptor] = []
        self.shown_columns_changed = Signal("shown_columns_changed")
        self.additional_list_elements_changed = Signal("additional_list_elements_changed")

    @property
    def has_view_settings(self) -> bool:
        return self.current_config is not None and len(self.optional_columns) > 0

    def resolve(
        self,
        schema: EntitySchema,
        displayed_columns: Sequence[ColumnDescriptor],
        data_model: DataModel | None,
    ) -> EntitySchema:
        """Resolve the view configuration for a (new) dataset.

        Returns:
            The schema extended with every column the view model may
            show.  The input schema is left untouched.
        """
        if self.schema is not None and self.schema.display != schema.display:
            # Different dataset kind: the previous column choice does not apply.
            self.shown_columns = []
            self.additional_list_elements = []
        self.displayed_columns = list(displayed_columns)
        self.data_model = data_model
        if data_model is None:
            self.schema = schema
            self.current_config = None
            self.optional_columns = []
            if not self.shown_columns:
                self.shown_columns = list(self.displayed_columns)
            self._merge_saved_columns()
            self.shown_columns_changed.emit(list(self.shown_columns))
            return schema

        config = data_model.default_configuration()
        self.current_config = config
        table_columns = list(config.additional_table_columns) if config else []
        list_columns = list(config.additional_list_columns) if config else []
        optional = [
            prop.column.name for prop in data_model.properties if prop.is_additional_column
        ]

        extra: list[ColumnDescriptor] = []
        for name in _dedupe(optional + table_columns + list_columns):
            prop = data_model.find_property(name)
            if prop is None:
                console.warn(f"[ListToolbar] view model has no property for column '{name}'")
                continue
            column = prop.column
            if column.name != name:
                # Catalog match was case-insensitive; keep the configured key.
                column = ColumnDescriptor(
                    name=name,
                    display=column.display,
                    is_additional=column.is_additional,
                    description=column.description,
                )
            extra.append(column)
        extended = schema.with_columns(extra) if extra else schema
        self.schema = extended

        self.optional_columns = self._lookup(
            [name for name in _dedupe(optional) if name not in table_columns]
        )

        if not self.shown_columns:
            self.shown_columns = _unique_columns(self.displayed_columns + self._lookup(table_columns))

        self._merge_saved_columns()

        if list_columns:
            self.additional_list_elements = self._lookup(list_columns)
            self.additional_list_elements_changed.emit(list(self.additional_list_elements))

        self.shown_columns_changed.emit(list(self.shown_columns))
        return extended

    def select_columns(self, columns: Sequence[ColumnDescriptor]) -> None:
        """Replace the shown columns wholesale and persist the choice."""
        self.shown_columns = _unique_columns(columns)
        self.shown_columns_changed.emit(list(self.shown_columns))
        if self.store is not None and self.schema is not None:
            self.store.set(
                preference_key(self.schema, "columns"),
                [column.name for column in self.shown_columns],
            )

    def reset(self) -> bool:
        """Restore the configuration's default columns.

        Returns:
            ``False`` when there is no view configuration to reset to.
        """
        if self.current_config is None or self.schema is None:
            return False
        if self.store is not None:
            self.store.set(preference_key(self.schema, "list-elements"), [])

        table_columns = list(self.current_config.additional_table_columns)
        self.shown_columns = _unique_columns(self.displayed_columns + self._lookup(table_columns))
        self.shown_columns_changed.emit(list(self.shown_columns))
        if self.store is not None:
            self.store.set(
                preference_key(self.schema, "columns"),
                _dedupe([column.name for column in self.displayed_columns] + table_columns),
            )
        return True

    def picker_request(self) -> ColumnPickerRequest:
        table_columns = (
            list(self.current_config.additional_table_columns) if self.current_config else []
        )
        return ColumnPickerRequest(
            data_model=self.data_model,
            schema=self.schema or EntitySchema(display=""),
            displayed_columns=_unique_columns(self.displayed_columns + self._lookup(table_columns)),
            optional_columns=list(self.optional_columns),
            preselected=list(self.shown_columns),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _merge_saved_columns(self) -> None:
        if self.store is None or self.schema is None:
            return
        saved = self.store.get(preference_key(self.schema, "columns"))
        if saved:
            self.shown_columns = self._lookup_saved(saved)

    def _lookup(self, names: Sequence[str]) -> list[ColumnDescriptor]:
        columns: list[ColumnDescriptor] = []
        for name in names:
            column = self.schema.get(name) if self.schema else None
            if column is not None:
                columns.append(column)
        return columns

    def _lookup_saved(self, names: Sequence[str]) -> list[ColumnDescriptor]:
        by_name = {column.name: column for column in self.displayed_columns}
        columns: list[ColumnDescriptor] = []
        for name in _dedupe(names):
            column = (self.schema.get(name) if self.schema else None) or by_name.get(name)
            if column is None:
                console.debug(f"[ListToolbar] dropping saved column '{name}'")
                continue
            columns.append(column)
        return columns


def _unique_columns(columns: Sequence[ColumnDescriptor]) -> list[ColumnDescriptor]:
    seen: set[str] = set()
    result: list[ColumnDescriptor] = []
    for column in columns:
        if column.name not in seen:
            seen.add(column.name)
            result.append(column)
    return result
