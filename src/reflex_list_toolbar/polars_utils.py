"""Polars helpers: file scanning, schema conversion and local-mode filtering.

The toolbar's navigation state is translated into the grid filter-model
shape (``{"items": [...], "logicOperator": "and"}``) and then into
Polars expressions, so local-mode filtering runs as one lazy query over
the snapshot instead of a Python loop.
"""

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import polars as pl
from reflex.utils import console

from reflex_list_toolbar.filters import split_value
from reflex_list_toolbar.models import (
    ColumnDescriptor,
    DataPage,
    EntitySchema,
    FilterDefinition,
    FilterOption,
    NavigationState,
    ToolbarSettings,
)

_DEFAULT_FILTER_MAX_UNIQUE: int = 50
_DEFAULT_DELIMITER: str = ","
_ROW_INDEX: str = "__toolbar_index__"
_DEFAULT_PAGE_SIZE: int = 20
ROW_ID: str = "__row_id__"


def polars_dtype_to_grid_type(dtype: pl.DataType) -> str:
    """Map a polars DataType to the closest grid column type.

    Returns:
        One of ``"string"``, ``"number"``, ``"boolean"``, ``"date"``,
        ``"dateTime"``.
    """
    if isinstance(dtype, pl.Boolean):
        return "boolean"
    if dtype.is_numeric():
        return "number"
    if isinstance(dtype, pl.Date):
        return "date"
    if isinstance(dtype, pl.Datetime):
        return "dateTime"
    # Everything else (String, Categorical, Enum, List, Struct, Duration, …)
    return "string"


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case or raw field name to a human-friendly header.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"__row_id__"`` -> ``"Row Id"``
    """
    return field.strip("_").replace("_", " ").title()


def _is_categorical_dtype(dtype: pl.DataType) -> bool:
    return isinstance(dtype, (pl.Categorical, pl.Enum))


def _col_to_str_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    """Convert a column expression to a String, handling List/Array types."""
    if isinstance(dtype, pl.List):
        return col.cast(pl.List(pl.String)).list.join(",")
    if isinstance(dtype, pl.Array):
        return col.cast(pl.List(pl.String)).list.join(",")
    return col.cast(pl.String)


# ---------------------------------------------------------------------------
# File scanner
# ---------------------------------------------------------------------------

def scan_file(path: Path) -> pl.LazyFrame:
    """Scan a tabular data file into a LazyFrame.

    Auto-detects the format from the extension: ``.csv``, ``.tsv``,
    ``.parquet`` / ``.pq``, ``.json``, ``.ndjson`` / ``.jsonl`` and
    ``.ipc`` / ``.arrow`` / ``.feather``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".parquet", ".pq"):
        return pl.scan_parquet(path)
    if suffix == ".csv":
        return pl.scan_csv(path)
    if suffix == ".tsv":
        return pl.scan_csv(path, separator="\t")
    # JSON (no streaming scan -- read then convert to lazy)
    if suffix == ".json":
        return pl.read_json(path).lazy()
    if suffix in (".ndjson", ".jsonl"):
        return pl.scan_ndjson(path)
    if suffix in (".ipc", ".arrow", ".feather"):
        return pl.scan_ipc(path)

    raise ValueError(
        f"Unsupported file extension: {suffix!r}. "
        "Supported: .csv, .tsv, .parquet, .pq, .json, .ndjson, .jsonl, "
        ".ipc, .arrow, .feather"
    )


# ---------------------------------------------------------------------------
# Schema and filter definitions
# ---------------------------------------------------------------------------

def schema_from_polars(
    display: str,
    schema: pl.Schema,
    *,
    column_descriptions: Mapping[str, str] | None = None,
    id_field: str | None = None,
) -> EntitySchema:
    """Build an :class:`EntitySchema` from a polars schema (no data scan).

    Args:
        display: Dataset kind; keys persisted column preferences.
        schema: A polars ``Schema`` (e.g. ``lf.collect_schema()``).
        column_descriptions: Optional ``{column: description}`` mapping.
        id_field: Row identifier column, left out of the schema.
    """
    descriptions = column_descriptions or {}
    columns: dict[str, ColumnDescriptor] = {}
    for col_name in schema.names():
        if col_name == id_field:
            continue
        columns[col_name] = ColumnDescriptor(
            name=col_name,
            display=_humanize_field_name(col_name),
            description=descriptions.get(col_name),
        )
    return EntitySchema(display=display, columns=columns)


def _infer_value_options_for_column(
    lf: pl.LazyFrame,
    col_name: str,
    *,
    max_unique: int = _DEFAULT_FILTER_MAX_UNIQUE,
) -> list[str] | None:
    """Query the LazyFrame for the distinct values of a single column.

    Only scans the single column (projection pushdown) and stops after
    ``max_unique + 1`` unique values.  Returns ``None`` when the column
    has no values or exceeds the threshold.
    """
    cap = max_unique + 1
    result = (
        lf.select(pl.col(col_name).cast(pl.String).drop_nulls().unique().head(cap))
        .collect()
    )
    values = result[col_name].drop_nulls().to_list()
    if 0 < len(values) <= max_unique:
        return sorted(str(v) for v in values)
    return None


def infer_filter_definitions(
    lf: pl.LazyFrame,
    *,
    columns: Iterable[str] | None = None,
    max_unique: int = _DEFAULT_FILTER_MAX_UNIQUE,
    delimiter: str | None = _DEFAULT_DELIMITER,
) -> list[FilterDefinition]:
    """Offer a filter for every low-cardinality string-like column.

    Columns qualify when they are String / Categorical / Enum and have at
    most *max_unique* distinct values.  With a *delimiter* the filters
    accept several values at once; a column whose values contain the
    delimiter falls back to an exclusive (single value) filter.

    Args:
        lf: LazyFrame to inspect.
        columns: Restrict inference to these columns (in this order).
        max_unique: Cardinality cap for a column to get a filter.
        delimiter: Separator for multi-value filters, ``None`` for
            exclusive filters only.
    """
    schema = lf.collect_schema()
    names = list(columns) if columns is not None else schema.names()

    definitions: list[FilterDefinition] = []
    for col_name in names:
        dtype = schema.get(col_name)
        if dtype is None:
            continue
        if not (isinstance(dtype, pl.String) or _is_categorical_dtype(dtype)):
            continue
        values = _infer_value_options_for_column(lf, col_name, max_unique=max_unique)
        if values is None:
            continue
        safe_delimiter = delimiter
        if delimiter and any(delimiter in value for value in values):
            safe_delimiter = None
        definitions.append(
            FilterDefinition(
                name=col_name,
                options=[FilterOption(value=value) for value in values],
                delimiter=safe_delimiter,
                exclusive=safe_delimiter is None,
                display=_humanize_field_name(col_name),
            )
        )
    return definitions


# ---------------------------------------------------------------------------
# Filter model -> Polars expressions
# ---------------------------------------------------------------------------

def navigation_to_filter_model(
    state: NavigationState,
    filters: Sequence[FilterDefinition] = (),
) -> dict[str, Any]:
    """Translate the state's folded filter values into a grid filter model.

    Multi-value (delimited) values become ``isAnyOf`` items, single values
    ``is`` items.  Values for names without a definition target the
    column of the same name.
    """
    by_name = {definition.name: definition for definition in filters}
    items: list[dict[str, Any]] = []
    for name, value in state.filters.items():
        definition = by_name.get(name)
        field = definition.target_field if definition else name
        delimiter = definition.delimiter if definition else None
        values = split_value(value, delimiter)
        if not values:
            continue
        if len(values) > 1:
            items.append({"field": field, "operator": "isAnyOf", "value": values})
        else:
            items.append({"field": field, "operator": "is", "value": values[0]})
    return {"items": items, "logicOperator": "and"}


def _build_filter_expr(
    item: dict[str, Any],
    schema: pl.Schema,
) -> pl.Expr | None:
    """Translate a single ``is`` / ``isAnyOf`` item to a Polars expression.

    Values are compared as strings, so a folded filter value matches
    numeric and list columns the way it is displayed.

    Returns:
        A polars expression, or ``None`` if the item cannot be translated
        (unknown operator, or a field the frame does not have).
    """
    field: str | None = item.get("field")
    operator: str | None = item.get("operator")
    value: Any = item.get("value")

    if field is None or value is None or field not in schema:
        return None

    str_col = _col_to_str_expr(pl.col(field), schema[field])
    if operator == "is":
        return str_col == str(value)
    if operator == "isAnyOf" and isinstance(value, list):
        return str_col.is_in([str(v) for v in value])
    return None


def apply_filter_model(
    lf: pl.LazyFrame,
    filter_model: dict[str, Any],
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Apply a filter model to a LazyFrame -- **no collect**.

    All items must hold.  Items that cannot be translated are skipped
    rather than failing the whole query.

    Args:
        lf: The polars LazyFrame to filter.
        filter_model: ``{"items": [...], "logicOperator": "and"}`` as built
            by :func:`navigation_to_filter_model`.
        schema: Optional schema override.  If ``None``, the schema is
            obtained from ``lf.collect_schema()``.
    """
    items: list[dict[str, Any]] = filter_model.get("items", [])
    if not items:
        return lf

    if schema is None:
        schema = lf.collect_schema()

    exprs: list[pl.Expr] = []
    for item in items:
        expr = _build_filter_expr(item, schema)
        if expr is not None:
            exprs.append(expr)
    if not exprs:
        return lf
    return lf.filter(pl.all_horizontal(exprs))


def apply_search(
    lf: pl.LazyFrame,
    text: str,
    schema: pl.Schema | None = None,
    columns: Sequence[str] | None = None,
) -> pl.LazyFrame:
    """Keep rows where any searched column contains *text* (case-insensitive).

    Args:
        columns: Columns to search.  Defaults to every string-typed column.
    """
    needle = text.strip().lower()
    if not needle:
        return lf
    if schema is None:
        schema = lf.collect_schema()

    if columns is None:
        names = [
            name
            for name, dtype in schema.items()
            if name != _ROW_INDEX and polars_dtype_to_grid_type(dtype) == "string"
        ]
    else:
        names = [name for name in columns if name in schema]

    exprs = [
        _col_to_str_expr(pl.col(name), schema[name])
        .str.to_lowercase()
        .str.contains(needle, literal=True)
        .fill_null(False)
        for name in names
    ]
    if not exprs:
        # Nothing searchable, so nothing can match.
        return lf.filter(pl.lit(False))

    combined = exprs[0]
    for e in exprs[1:]:
        combined = combined | e
    return lf.filter(combined)


def apply_sort_model(
    lf: pl.LazyFrame,
    sort_model: list[dict[str, str]],
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Apply a grid sort model to a LazyFrame -- **no collect**.

    The sort model has the shape::

        [{"field": "chrom", "sort": "asc"}, {"field": "pos", "sort": "desc"}]

    When *schema* is given, entries for unknown fields are skipped.
    """
    if not sort_model:
        return lf

    by: list[str] = []
    descending: list[bool] = []
    for entry in sort_model:
        field = entry.get("field")
        direction = entry.get("sort", "asc")
        if field is None:
            continue
        if schema is not None and field not in schema:
            continue
        by.append(field)
        descending.append(direction == "desc")

    if not by:
        return lf

    return lf.sort(by=by, descending=descending, maintain_order=True)


# ---------------------------------------------------------------------------
# Local-mode predicate evaluator
# ---------------------------------------------------------------------------

class PolarsRowFilter:
    """Filter, search and sort an in-memory snapshot with one lazy query.

    Entities are converted to records, loaded into a DataFrame with a
    positional index column, run through the filter model, search and
    sort model, and mapped back to the original entity objects -- so the
    selection keeps working with the very same objects.

    Args:
        search_columns: Columns searched by the free-text search.
            Defaults to every string column.
        record: Maps an entity to a ``{column: value}`` mapping.  Defaults
            to the entity itself, which must then be a mapping.
    """

    def __init__(
        self,
        search_columns: Sequence[str] | None = None,
        record: Callable[[Any], Mapping[str, Any]] | None = None,
    ) -> None:
        self.search_columns = list(search_columns) if search_columns is not None else None
        self._record = record or (lambda entity: entity)

    def __call__(
        self,
        entities: Sequence[Any],
        state: NavigationState,
        filters: Sequence[FilterDefinition],
    ) -> list[Any]:
        if not entities:
            return []
        if not (state.filters or state.search or state.order_by):
            return list(entities)

        frame = pl.DataFrame(
            [dict(self._record(entity)) for entity in entities],
            infer_schema_length=None,
        ).with_row_index(_ROW_INDEX)
        schema = frame.schema
        lf = frame.lazy()

        lf = apply_filter_model(lf, navigation_to_filter_model(state, filters), schema)
        if state.search:
            lf = apply_search(lf, state.search, schema, self.search_columns)
        if state.order_by:
            lf = apply_sort_model(lf, state.order_by, schema)

        positions = lf.select(_ROW_INDEX).collect()[_ROW_INDEX].to_list()
        return [entities[i] for i in positions]


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------

def frame_to_rows(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of JSON-safe dicts.

    * Temporal columns (Date, Datetime, Time, Duration) -> ISO-8601 strings.
    * List columns -> comma-joined strings.
    * Struct columns -> cast to String.
    """
    temporal_cols: set[str] = set()
    list_cols: set[str] = set()
    struct_cols: set[str] = set()

    for name, dtype in df.schema.items():
        if isinstance(dtype, (pl.Date, pl.Datetime, pl.Time, pl.Duration)):
            temporal_cols.add(name)
        elif isinstance(dtype, pl.List):
            list_cols.add(name)
        elif isinstance(dtype, pl.Struct):
            struct_cols.add(name)

    needs_cast = temporal_cols | list_cols | struct_cols
    if not needs_cast:
        return df.to_dicts()

    exprs: list[pl.Expr] = []
    for c in df.columns:
        if c in temporal_cols or c in struct_cols:
            exprs.append(pl.col(c).cast(pl.String))
        elif c in list_cols:
            exprs.append(pl.col(c).cast(pl.List(pl.String)).list.join(","))
        else:
            exprs.append(pl.col(c))

    return df.select(exprs).to_dicts()


def row_id(row: Mapping[str, Any]) -> Any:
    """Selection key of a row produced by :func:`toolbar_settings_from_frame`."""
    return row[ROW_ID]


def toolbar_settings_from_frame(
    lf: pl.LazyFrame,
    display: str,
    *,
    descriptions: Mapping[str, str] | None = None,
    page_size: int = _DEFAULT_PAGE_SIZE,
    max_unique: int = _DEFAULT_FILTER_MAX_UNIQUE,
    delimiter: str | None = _DEFAULT_DELIMITER,
) -> ToolbarSettings:
    """Collect *lf* into local-mode toolbar settings.

    The schema comes from metadata alone; filter options are inferred one
    column at a time; the rows are collected once, each tagged with a
    stable ``__row_id__`` (see :func:`row_id`).

    Args:
        lf: Frame to browse.
        display: Dataset kind; keys persisted column preferences.
        descriptions: Optional ``{column: description}`` mapping.
        page_size: Initial page size.
        max_unique: Cardinality cap for inferred filters.
        delimiter: Separator for multi-value filters.
    """
    t0 = time.perf_counter()
    schema = lf.collect_schema()
    entity_schema = schema_from_polars(display, schema, column_descriptions=descriptions)
    filters = infer_filter_definitions(lf, max_unique=max_unique, delimiter=delimiter)
    rows = frame_to_rows(lf.collect().with_row_index(ROW_ID))
    console.debug(
        f"[ListToolbar] collected '{display}': {len(rows):,} rows, "
        f"{len(schema)} columns, {len(filters)} filter(s), "
        f"elapsed={(time.perf_counter() - t0) * 1000:.1f}ms"
    )
    return ToolbarSettings(
        data_source=DataPage(data=rows, total_count=len(rows)),
        displayed_columns=list(entity_schema.columns.values()),
        schema=entity_schema,
        navigation_state=NavigationState(page_size=page_size),
        filters=filters,
    )
