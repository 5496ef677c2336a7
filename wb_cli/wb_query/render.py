"""Output rendering helpers for wb-query."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import IO

from jinja2 import Environment, FileSystemLoader, select_autoescape
from rich import box
from rich.console import Console, RenderableType
from rich.table import Table
from rich.text import Text

from wb_cli.shared.exceptions import QueryError
from wb_cli.shared.logging import Logger

from .types import (
    AccumulatedResult,
    Grid,
    Matrix,
    MatrixOutcome,
    NestedCell,
    PivotFields,
    QueryRequest,
    ResultStatus,
    ViewKind,
)
from .views import DEFAULT_MAX_DEPTH, build_matrix, build_table

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TABLE_CLASS = "dataTable"

_environment = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "j2"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_count_result(count: int) -> str:
    return f"Query would return {count} record{'.' if count == 1 else 's.'}"


def render_empty_result() -> str:
    return "Sorry, no records returned."


def render_partial_result_warning(rows_so_far: int) -> str:
    return (
        f"Memory usage crossed the configured warning threshold after only processing {rows_so_far} "
        "rows of data; showing partial results. For large queries, export as Bulk CSV or Bulk XML instead."
    )


def render_result_summary(result: AccumulatedResult, first_row: int = 1) -> str:
    """Header line describing which slice of the total result is shown."""
    last_row = first_row + len(result.records) - 1
    plural = "" if result.size == 1 else "s"
    return (
        f"Returned records {first_row} - {last_row} of {result.size} total record{plural} "
        f"in {result.elapsed:.3f} seconds:"
    )


def render_view(
    result: AccumulatedResult,
    view_kind: ViewKind | str,
    pivot_fields: PivotFields | None = None,
    *,
    first_row: int = 1,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Grid | MatrixOutcome:
    """Build the requested view over an accumulated result."""
    if result.status in (ResultStatus.COUNT, ResultStatus.EMPTY):
        raise QueryError(f"A {result.status.value} result has no records to render as a view.")

    kind = ViewKind(view_kind)
    if kind is ViewKind.MATRIX:
        if pivot_fields is None:
            raise QueryError("Matrix view requires both a column field and a row field.")
        return build_matrix(result.records, pivot_fields)
    return build_table(result.records, first_row, max_depth=max_depth)


def grid_to_html(grid: Grid) -> str:
    template = _environment.get_template("grid.html.j2")
    return template.render(grid=grid, table_class=TABLE_CLASS)


def matrix_to_html(matrix: Matrix) -> str:
    template = _environment.get_template("matrix.html.j2")
    return template.render(matrix=matrix, table_class=TABLE_CLASS)


def print_grid(grid: Grid, *, stream: IO[str] | None = None) -> None:
    console = Console(file=stream or sys.stdout, highlight=False, force_terminal=False)
    console.print(_grid_table(grid))


def print_matrix(matrix: Matrix, *, stream: IO[str] | None = None) -> None:
    console = Console(file=stream or sys.stdout, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold")
    table.add_column("")
    for column in matrix.column_labels:
        table.add_column(Text(column))
    for row in matrix.row_labels:
        cells = []
        for column in matrix.column_labels:
            entries = matrix.bucket(row, column)
            cells.append(Text("\n\n".join("\n".join(f"{name}: {value}" for name, value in entry) for entry in entries)))
        table.add_row(Text(row), *cells)
    console.print(table)


def display_query_results(
    result: AccumulatedResult,
    request: QueryRequest,
    *,
    output_format: str,
    logger: Logger,
    max_depth: int = DEFAULT_MAX_DEPTH,
    stream: IO[str] | None = None,
) -> None:
    """Print a result the way the query page shows it: count, empty notice, or a view."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "console").lower()

    if result.status is ResultStatus.COUNT:
        logger.info(render_count_result(result.count or 0))
        return
    if result.status is ResultStatus.EMPTY:
        logger.warning(render_empty_result())
        return

    if result.warning:
        logger.warning(result.warning)
    logger.info(render_result_summary(result))
    if result.status is ResultStatus.MORE:
        logger.info(f"More records are available; resume with locator {result.locator}.")

    view = render_view(result, request.view, request.pivot, max_depth=max_depth)
    if isinstance(view, MatrixOutcome):
        if view.matrix is None:
            logger.warning(view.message or "")
            return
        if fmt == "html":
            print(matrix_to_html(view.matrix), file=output_stream)
        else:
            print_matrix(view.matrix, stream=output_stream)
        return

    if fmt == "html":
        print(grid_to_html(view), file=output_stream)
    elif fmt == "console":
        print_grid(view, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")


def _grid_table(grid: Grid) -> Table:
    table = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    for column in grid.columns:
        table.add_column(Text(column))
    for row in grid.rows:
        table.add_row(str(row.number), *(_console_cell(cell) for cell in row.cells))
    return table


def _console_cell(cell: str | NestedCell) -> RenderableType:
    if isinstance(cell, str):
        return Text(cell)
    if len(cell.grids) == 1:
        return _grid_table(cell.grids[0])
    wrapper = Table.grid(padding=(0, 1))
    wrapper.add_row(*(_grid_table(grid) for grid in cell.grids))
    return wrapper
