"""Data structures shared across wb-query modules."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence, Union

from .records import RecordSet

_COUNT_PATTERN = re.compile(r"count\(\s*\)", re.IGNORECASE)


class QueryKind(str, enum.Enum):
    NORMAL = "normal"
    COUNT = "count"
    EXPORT = "export"


class ViewKind(str, enum.Enum):
    TABLE = "table"
    MATRIX = "matrix"


class ResultStatus(str, enum.Enum):
    """Outcome of a pagination run."""

    COUNT = "count"
    EMPTY = "empty"
    COMPLETE = "complete"
    MORE = "more"  # pages remain; ``locator`` resumes them
    PARTIAL = "partial"  # stopped by the memory guard


class CsvOutcome(str, enum.Enum):
    SUCCESS = "success"
    REFUSED = "refused"
    EMPTY = "empty"


@dataclass(frozen=True, slots=True)
class PivotFields:
    """Field names defining the matrix axes."""

    column: str
    row: str


@dataclass(frozen=True, slots=True)
class QueryRequest:
    """Immutable description of the query whose pages are being drained."""

    query: str
    kind: QueryKind = QueryKind.NORMAL
    pivot: PivotFields | None = None
    view: ViewKind = ViewKind.TABLE

    @property
    def is_count(self) -> bool:
        return self.kind is QueryKind.COUNT or bool(_COUNT_PATTERN.search(self.query))

    @property
    def is_export(self) -> bool:
        """Export runs drain every page and never print to the screen."""
        return self.kind is QueryKind.EXPORT


@dataclass(frozen=True, slots=True)
class Page:
    """One response from the remote store.

    ``records`` is whatever the store sent: a sequence of payloads, a bare single
    payload, or ``None`` when the response carried no records field at all.
    """

    records: Any
    done: bool
    size: int
    locator: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Page:
        done = bool(payload.get("done", True))
        return cls(
            records=payload.get("records"),
            done=done,
            size=int(payload.get("size") or 0),
            locator=None if done else payload.get("queryLocator", payload.get("locator")),
        )


class PageFetcher(Protocol):
    """Fetches the page identified by an opaque locator; ``None`` requests the first page."""

    def __call__(self, locator: str | None) -> Page: ...


@dataclass(frozen=True, slots=True)
class AccumulatedResult:
    """Records (or a bare count) gathered from one or more pages."""

    status: ResultStatus
    records: RecordSet = field(default_factory=RecordSet)
    size: int = 0
    count: int | None = None
    locator: str | None = None
    elapsed: float = 0.0
    warning: str | None = None

    @property
    def is_count(self) -> bool:
        return self.status is ResultStatus.COUNT

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True, slots=True)
class NestedCell:
    """Cell holding one nested grid per child relationship group."""

    grids: tuple[Grid, ...]


Cell = Union[str, NestedCell]

# One record inside a matrix bucket: its non-pivot fields as (name, value) pairs.
MatrixEntry = tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class GridRow:
    number: int
    cells: tuple[Cell, ...]


@dataclass(frozen=True, slots=True)
class Grid:
    """Flat tabular view: ``columns`` excludes the leading row-number column."""

    columns: tuple[str, ...]
    rows: tuple[GridRow, ...]

    @property
    def header(self) -> tuple[str, ...]:
        return ("", *self.columns)


@dataclass(frozen=True, slots=True)
class Matrix:
    """Sparse pivot; ``cells`` maps (row label, column label) to stacked entries."""

    row_labels: tuple[str, ...]
    column_labels: tuple[str, ...]
    cells: Mapping[tuple[str, str], Sequence[MatrixEntry]]

    def bucket(self, row: str, column: str) -> Sequence[MatrixEntry]:
        return self.cells.get((row, column), ())


@dataclass(frozen=True, slots=True)
class MatrixOutcome:
    """Either a matrix or the reason none could be built."""

    matrix: Matrix | None
    message: str | None = None

    @property
    def no_match(self) -> bool:
        return self.matrix is None
