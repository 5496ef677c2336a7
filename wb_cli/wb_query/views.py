"""Tabular and matrix views over accumulated records."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .records import MISSING, Record, build_header_set, child_groups
from .types import Cell, Grid, GridRow, Matrix, MatrixEntry, MatrixOutcome, NestedCell, PivotFields

DEFAULT_MAX_DEPTH = 5
NO_MATRIX_MATCH_MESSAGE = "No records match matrix column and row selections."


def build_table(
    records: Sequence[Record],
    start_row: int = 1,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Grid:
    """Flatten ``records`` into a grid, nesting child record sets inside their cells.

    ``max_depth`` counts grid levels including the top one; child sets below the
    last level are summarised as ``[N nested records]`` instead of a nested grid.
    """
    return _build_table(records, start_row, max_depth=max_depth, depth=1)


def build_matrix(records: Sequence[Record], pivot: PivotFields) -> MatrixOutcome:
    """Bucket records by (row value, column value) of the two pivot fields."""
    row_labels: dict[str, None] = {}
    column_labels: dict[str, None] = {}
    cells: dict[tuple[str, str], list[MatrixEntry]] = {}

    for record in records:
        flat = record.flatten()
        row_value = flat.get(pivot.row, MISSING)
        column_value = flat.get(pivot.column, MISSING)
        if row_value is MISSING or column_value is MISSING:
            continue
        if _is_blank(row_value) and _is_blank(column_value):
            continue

        row_label = format_value(row_value)
        column_label = format_value(column_value)
        row_labels.setdefault(row_label, None)
        column_labels.setdefault(column_label, None)
        cells.setdefault((row_label, column_label), []).append(_summarise(flat, pivot))

    if not row_labels or not column_labels:
        return MatrixOutcome(matrix=None, message=NO_MATRIX_MATCH_MESSAGE)

    return MatrixOutcome(
        matrix=Matrix(
            row_labels=tuple(row_labels),
            column_labels=tuple(column_labels),
            cells={key: tuple(entries) for key, entries in cells.items()},
        )
    )


def format_value(value: Any) -> str:
    """Text form of a scalar field value; display-layer escaping is left to callers."""
    if value is MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    groups = child_groups(value)
    if groups is not None:
        return _nested_summary(groups)
    if isinstance(value, tuple):
        return "; ".join(format_value(item) for item in value)
    return str(value)


def _build_table(records: Sequence[Record], start_row: int, *, max_depth: int, depth: int) -> Grid:
    columns = build_header_set(records)
    rows = tuple(
        GridRow(
            number=number,
            cells=tuple(_cell(record.resolve(column), max_depth=max_depth, depth=depth) for column in columns),
        )
        for number, record in enumerate(records, start=start_row)
    )
    return Grid(columns=columns, rows=rows)


def _cell(value: Any, *, max_depth: int, depth: int) -> Cell:
    groups = child_groups(value)
    if groups is None:
        return format_value(value)
    if depth >= max_depth:
        return _nested_summary(groups)
    # Nested grids always restart numbering at 1.
    return NestedCell(
        grids=tuple(_build_table(group, 1, max_depth=max_depth, depth=depth + 1) for group in groups)
    )


def _summarise(flat: Mapping[str, Any], pivot: PivotFields) -> MatrixEntry:
    return tuple(
        (name, format_value(value))
        for name, value in flat.items()
        if name not in (pivot.row, pivot.column)
    )


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _nested_summary(groups: Sequence[Sequence[Record]]) -> str:
    total = sum(len(group) for group in groups)
    return f"[{total} nested record{'s' if total != 1 else ''}]"
