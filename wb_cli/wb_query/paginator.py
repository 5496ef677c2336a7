"""Locator-based pagination for wb-query.

Pages are drained synchronously: each follow-up fetch is a blocking round trip and the
memory guard is consulted once before every follow-up fetch (never before the first
page, which the caller has already received). Locators are replayed verbatim.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from wb_cli.shared.config import AppConfig
from wb_cli.shared.exceptions import PageFetchError
from wb_cli.shared.logging import Logger

from .memory import MemoryGuard
from .records import Record, RecordSet, normalise_records
from .render import render_partial_result_warning
from .types import AccumulatedResult, Page, PageFetcher, QueryRequest, ResultStatus


@dataclass(slots=True)
class _Cursor:
    """Tracks the current page and walks the locator chain."""

    page: Page
    fetch_page: PageFetcher
    guard: MemoryGuard
    logger: Logger | None = None
    capacity_exceeded: bool = False
    pages_fetched: int = 1

    @property
    def locator(self) -> str | None:
        return None if self.page.done else self.page.locator

    def pages(self, keep_going: bool) -> Iterator[list[Any]]:
        yield normalise_records(self.page.records)
        while keep_going and not self.page.done:
            if self.guard.exhausted():
                self.capacity_exceeded = True
                return
            locator = self.page.locator
            if not locator:
                raise PageFetchError("Remote store reported more pages but returned no query locator.")
            self.page = _fetch(self.fetch_page, locator)
            self.pages_fetched += 1
            if self.logger:
                self.logger.debug(f"Fetched page {self.pages_fetched} (done={self.page.done}).")
            yield normalise_records(self.page.records)


def run_query(
    request: QueryRequest,
    fetch_page: PageFetcher,
    *,
    config: AppConfig,
    guard: MemoryGuard | None = None,
    suppress_screen_output: bool = False,
    logger: Logger | None = None,
) -> AccumulatedResult:
    """Fetch the first page and drain the rest according to ``config``."""
    started = time.perf_counter()
    first_page = _fetch(fetch_page, None)
    return extract_records(
        request,
        first_page,
        fetch_page=fetch_page,
        guard=guard or MemoryGuard.from_settings(config.memory),
        auto_continue=config.query.auto_continue,
        suppress_screen_output=suppress_screen_output,
        started_at=started,
        logger=logger,
    )


def extract_records(
    request: QueryRequest,
    first_page: Page,
    *,
    fetch_page: PageFetcher,
    guard: MemoryGuard,
    auto_continue: bool,
    suppress_screen_output: bool = False,
    started_at: float | None = None,
    logger: Logger | None = None,
) -> AccumulatedResult:
    """Accumulate every page reachable from ``first_page`` into one result.

    Count-only queries short-circuit to the page size unless screen output is
    suppressed; export requests always suppress it. Without auto-continue (and with
    screen output shown) only the first page is consumed and the result keeps the
    locator for the remaining pages.
    """
    suppress_screen_output = suppress_screen_output or request.is_export
    started = time.perf_counter() if started_at is None else started_at

    if request.is_count and not suppress_screen_output:
        return AccumulatedResult(
            status=ResultStatus.COUNT,
            count=first_page.size,
            size=first_page.size,
            elapsed=time.perf_counter() - started,
        )

    if first_page.records is None:
        return AccumulatedResult(
            status=ResultStatus.EMPTY,
            size=first_page.size,
            elapsed=time.perf_counter() - started,
        )

    cursor = _Cursor(page=first_page, fetch_page=fetch_page, guard=guard, logger=logger)
    collected: list[Record] = []
    try:
        for payloads in cursor.pages(keep_going=auto_continue or suppress_screen_output):
            collected.extend(Record.from_payload(payload) for payload in payloads)
    except PageFetchError as exc:
        exc.partial = AccumulatedResult(
            status=ResultStatus.PARTIAL,
            records=RecordSet(collected, size=first_page.size, done=False),
            size=first_page.size,
            locator=cursor.locator,
            elapsed=time.perf_counter() - started,
            warning=str(exc),
        )
        raise

    elapsed = time.perf_counter() - started
    records = RecordSet(collected, size=first_page.size, done=cursor.page.done)

    if cursor.capacity_exceeded:
        warning = render_partial_result_warning(len(collected))
        if logger:
            logger.warning(warning)
        return AccumulatedResult(
            status=ResultStatus.PARTIAL,
            records=records,
            size=first_page.size,
            locator=cursor.locator,
            elapsed=elapsed,
            warning=warning,
        )

    if not collected:
        return AccumulatedResult(status=ResultStatus.EMPTY, size=first_page.size, elapsed=elapsed)

    return AccumulatedResult(
        status=ResultStatus.COMPLETE if cursor.page.done else ResultStatus.MORE,
        records=records,
        size=first_page.size,
        locator=cursor.locator,
        elapsed=elapsed,
    )


class RecordStream:
    """Forward-only iterator over every record reachable from a first page.

    Earlier pages are not retained, so consumers such as the CSV exporter hold at
    most one page in memory. After iteration ``status``, ``rows`` and ``warning``
    describe how the drain ended.
    """

    def __init__(
        self,
        first_page: Page,
        *,
        fetch_page: PageFetcher,
        guard: MemoryGuard,
        logger: Logger | None = None,
    ) -> None:
        self.size = first_page.size
        self.rows = 0
        self.status: ResultStatus | None = None
        self.warning: str | None = None
        self._cursor = _Cursor(page=first_page, fetch_page=fetch_page, guard=guard, logger=logger)
        self._logger = logger

    @property
    def locator(self) -> str | None:
        return self._cursor.locator

    def __iter__(self) -> Iterator[Record]:
        if self._cursor.page.records is None:
            self.status = ResultStatus.EMPTY
            return
        try:
            for payloads in self._cursor.pages(keep_going=True):
                for payload in payloads:
                    record = Record.from_payload(payload)
                    self.rows += 1
                    yield record
        except PageFetchError as exc:
            self.status = ResultStatus.PARTIAL
            exc.partial = AccumulatedResult(
                status=ResultStatus.PARTIAL,
                size=self.size,
                locator=self.locator,
                warning=str(exc),
            )
            raise

        if self._cursor.capacity_exceeded:
            self.status = ResultStatus.PARTIAL
            self.warning = render_partial_result_warning(self.rows)
            if self._logger:
                self._logger.warning(self.warning)
        else:
            self.status = ResultStatus.COMPLETE if self.rows else ResultStatus.EMPTY


def iter_records(
    first_page: Page,
    *,
    fetch_page: PageFetcher,
    guard: MemoryGuard,
    logger: Logger | None = None,
) -> RecordStream:
    """Stream records page by page; used when screen output is suppressed."""
    return RecordStream(first_page, fetch_page=fetch_page, guard=guard, logger=logger)


def _fetch(fetch_page: PageFetcher, locator: str | None) -> Page:
    try:
        return fetch_page(locator)
    except PageFetchError:
        raise
    except Exception as exc:
        target = "next page" if locator else "first page"
        raise PageFetchError(f"Failed to fetch {target}: {exc}") from exc
