"""Streaming CSV export for ``wb-query export``."""

from __future__ import annotations

import csv
import itertools
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO

from wb_cli.shared.config import AppConfig, ExportSettings
from wb_cli.shared.exceptions import PageFetchError
from wb_cli.shared.logging import Logger
from wb_cli.wb_query.memory import MemoryGuard
from wb_cli.wb_query.paginator import iter_records
from wb_cli.wb_query.records import Record, child_groups
from wb_cli.wb_query.types import AccumulatedResult, CsvOutcome, Page, PageFetcher, ResultStatus
from wb_cli.wb_query.views import format_value

EXPORT_DISABLED_MESSAGE = "Export to CSV not allowed"
NOTHING_TO_EXPORT_MESSAGE = "No records returned for CSV output."

Destination = IO[str] | str | Path


@dataclass(frozen=True, slots=True)
class CsvExportReport:
    """What an export run wrote and how the underlying page drain ended."""

    outcome: CsvOutcome
    rows: int = 0
    status: ResultStatus | None = None
    warning: str | None = None


def default_export_filename(now: datetime | None = None) -> str:
    return f"export{(now or datetime.now()):%Y%m%d%H%M%S}.csv"


def export_columns(record: Record) -> tuple[str, ...]:
    """Columns exported for a result: the flattened fields of its first record.

    Child relationship sets have no flat representation and are left out.
    """
    return tuple(name for name, value in record.flatten().items() if child_groups(value) is None)


def export_row(record: Record, columns: Sequence[str]) -> list[str]:
    return [format_value(record.resolve(column)) for column in columns]


def stream_csv(
    records: AccumulatedResult | Iterable[Record],
    destination: Destination,
    *,
    settings: ExportSettings,
    logger: Logger | None = None,
) -> CsvExportReport:
    """Write ``records`` as CSV, one row at a time.

    Nothing is written (and a path destination is never opened) when export is
    disabled or when there is no first record to export.
    """
    if not settings.allow_csv:
        if logger:
            logger.error(EXPORT_DISABLED_MESSAGE)
        return CsvExportReport(outcome=CsvOutcome.REFUSED)

    status = ResultStatus.COMPLETE
    warning: str | None = None
    if isinstance(records, AccumulatedResult):
        source: Iterable[Record] = records.records
        status = records.status
        warning = records.warning
    else:
        source = records
    iterator = iter(source)
    first = next(iterator, None)
    if first is None:
        if logger:
            logger.warning(NOTHING_TO_EXPORT_MESSAGE)
        return CsvExportReport(outcome=CsvOutcome.EMPTY)

    columns = export_columns(first)
    rows = 0
    with _open_destination(destination) as handle:
        writer = csv.writer(handle)
        writer.writerow(columns)
        for record in itertools.chain((first,), iterator):
            writer.writerow(export_row(record, columns))
            rows += 1
        handle.flush()

    if logger:
        logger.debug(f"Wrote {rows} CSV row(s) across {len(columns)} column(s).")
    return CsvExportReport(outcome=CsvOutcome.SUCCESS, rows=rows, status=status, warning=warning)


def export_query_csv(
    first_page: Page,
    destination: Destination,
    *,
    fetch_page: PageFetcher,
    config: AppConfig,
    guard: MemoryGuard | None = None,
    logger: Logger | None = None,
) -> CsvExportReport:
    """Stream every page reachable from ``first_page`` straight into CSV.

    Records go from the page loop to the writer without being accumulated first.
    """
    if not config.export.allow_csv:
        return stream_csv((), destination, settings=config.export, logger=logger)

    stream = iter_records(
        first_page,
        fetch_page=fetch_page,
        guard=guard or MemoryGuard.from_settings(config.memory),
        logger=logger,
    )
    try:
        report = stream_csv(stream, destination, settings=config.export, logger=logger)
    except PageFetchError:
        if logger and stream.rows:
            target = destination if isinstance(destination, (str, Path)) else "the output stream"
            logger.warning(f"CSV export stopped after {stream.rows} row(s); {target} is incomplete.")
        raise
    if report.outcome is not CsvOutcome.SUCCESS:
        return report
    return CsvExportReport(outcome=report.outcome, rows=report.rows, status=stream.status, warning=stream.warning)


@contextmanager
def _open_destination(destination: Destination) -> Iterator[IO[str]]:
    if isinstance(destination, (str, Path)):
        path = Path(destination).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as handle:
            yield handle
    else:
        yield destination
