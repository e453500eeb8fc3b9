"""CLI for reflex-list-toolbar -- page through tabular files from the terminal.

Usage::

    # First page of a CSV file
    reflex-list-toolbar page people.csv

    # Search, filter, sort and pick columns
    reflex-list-toolbar page people.csv --search ann --filter status=active,pending \\
        --sort age:desc --columns name,age

    # Remember the column choice between runs
    reflex-list-toolbar page people.csv --columns name,age --prefs prefs.json

    # List the filters offered for a file
    reflex-list-toolbar filters people.csv

Every command drives a local-mode ``ListToolbarController`` over the file,
the same controller the ``ListToolbarMixin`` hosts inside a Reflex app.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import polars as pl
import typer

from reflex_list_toolbar.controller import ListToolbarController
from reflex_list_toolbar.polars_utils import (
    _DEFAULT_FILTER_MAX_UNIQUE,
    _DEFAULT_PAGE_SIZE,
    PolarsRowFilter,
    infer_filter_definitions,
    row_id,
    scan_file,
    toolbar_settings_from_frame,
)
from reflex_list_toolbar.scheduling import ManualScheduler
from reflex_list_toolbar.view_config import JsonPreferenceStore

app = typer.Typer(
    name="reflex-list-toolbar",
    help="Page, search, filter and sort tabular data files.",
    no_args_is_help=True,
)


def _open_frame(file: Path) -> pl.LazyFrame:
    """Scan *file*, turning scan errors into a CLI error exit."""
    try:
        return scan_file(file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


def _parse_sort(spec: str) -> dict[str, str]:
    """``"age:desc"`` -> ``{"field": "age", "sort": "desc"}``."""
    field, _, direction = spec.partition(":")
    direction = direction.lower() or "asc"
    if direction not in ("asc", "desc"):
        typer.echo(f"Error: invalid sort direction {direction!r} in {spec!r}", err=True)
        raise typer.Exit(code=1)
    return {"field": field, "sort": direction}


def _apply_filter(controller: ListToolbarController, spec: str) -> None:
    """Apply ``name=v1,v2`` to the controller's filter of that name."""
    name, sep, raw = spec.partition("=")
    if not sep:
        typer.echo(f"Error: expected NAME=VALUE[,VALUE...], got {spec!r}", err=True)
        raise typer.Exit(code=1)
    try:
        definition = controller.composer.get(name)
    except KeyError:
        available = ", ".join(f.name for f in controller.filters) or "none"
        typer.echo(f"Error: no filter named {name!r} (available: {available})", err=True)
        raise typer.Exit(code=1)

    values = [value for value in raw.split(",") if value] if definition.delimiter else [raw]
    if definition.exclusive:
        controller.select_option(definition, values[0] if values else None)
    else:
        controller.apply_multi_selection(definition, values)


@app.command()
def page(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, etc.)")],
    start: Annotated[int, typer.Option("--start", "-s", help="Index of the first row to show")] = 0,
    page_size: Annotated[int, typer.Option("--page-size", "-n", help="Rows per page")] = _DEFAULT_PAGE_SIZE,
    search: Annotated[Optional[str], typer.Option("--search", "-q", help="Case-insensitive text search")] = None,
    filter_specs: Annotated[
        Optional[list[str]],
        typer.Option("--filter", "-f", help="NAME=VALUE[,VALUE...]; repeat for several filters"),
    ] = None,
    sort_specs: Annotated[
        Optional[list[str]],
        typer.Option("--sort", help="FIELD[:asc|desc]; repeat for several sort keys"),
    ] = None,
    columns: Annotated[Optional[str], typer.Option("--columns", "-c", help="Comma-separated columns to show")] = None,
    prefs: Annotated[Optional[Path], typer.Option("--prefs", help="JSON file that remembers column choices")] = None,
    max_unique: Annotated[
        int, typer.Option("--max-unique", help="Maximum distinct values for a column to get a filter")
    ] = _DEFAULT_FILTER_MAX_UNIQUE,
) -> None:
    """Print one page of a data file as JSON rows, after a summary line."""
    if page_size <= 0:
        typer.echo(f"Error: --page-size must be > 0, got {page_size}", err=True)
        raise typer.Exit(code=1)
    if start < 0:
        typer.echo(f"Error: --start must be >= 0, got {start}", err=True)
        raise typer.Exit(code=1)

    lf = _open_frame(file)
    scheduler = ManualScheduler()
    controller = ListToolbarController(
        local=True,
        scheduler=scheduler,
        preference_store=JsonPreferenceStore(prefs) if prefs else None,
        row_filter=PolarsRowFilter(),
        key=row_id,
    )
    controller.update_settings(
        toolbar_settings_from_frame(lf, file.stem, page_size=page_size, max_unique=max_unique)
    )

    for spec in filter_specs or []:
        _apply_filter(controller, spec)
    if search:
        controller.submit_search(search)
    if sort_specs:
        controller.set_sort([_parse_sort(spec) for spec in sort_specs])
    if columns:
        schema = controller.entity_schema
        names = [name.strip() for name in columns.split(",") if name.strip()]
        picked = [schema.get(name) for name in names] if schema else []
        missing = [name for name, column in zip(names, picked) if column is None]
        if missing:
            typer.echo(f"Warning: unknown column(s) ignored: {', '.join(missing)}", err=True)
        controller.select_columns([column for column in picked if column is not None])
    if start:
        controller.navigate(start_index=start)
    scheduler.run_all()

    shown = [column.name for column in controller.shown_columns]
    rows = [{name: row.get(name) for name in shown} for row in controller.page.data]
    typer.echo(controller.summary)
    typer.echo(json.dumps(rows, indent=2, ensure_ascii=False, default=str))


@app.command()
def filters(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, etc.)")],
    max_unique: Annotated[
        int, typer.Option("--max-unique", help="Maximum distinct values for a column to get a filter")
    ] = _DEFAULT_FILTER_MAX_UNIQUE,
) -> None:
    """List the filters offered for a data file and their options."""
    definitions = infer_filter_definitions(_open_frame(file), max_unique=max_unique)
    if not definitions:
        typer.echo("No filterable columns.")
        return
    for definition in definitions:
        kind = "multi" if definition.delimiter else "single"
        values = ", ".join(option.value for option in definition.options)
        typer.echo(f"{definition.name} ({kind}, {len(definition.options)} options): {values}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
