"""File-backed page source that replays a recorded query response chain.

A dump is a YAML (or JSON) document::

    query: SELECT Id, Name FROM Account
    kind: normal            # optional: normal, count, export
    pages:
      - {size: 3, done: false, queryLocator: "01g-2", records: [...]}
      - {size: 3, done: true, records: [...]}

Page ``n + 1`` is served for the locator carried by page ``n``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import yaml

from wb_cli.shared.exceptions import PageFetchError, QueryError

from .types import Page, PivotFields, QueryKind, QueryRequest, ViewKind


class ReplayPageSource:
    """Serves recorded pages by locator; ``None`` requests the first page."""

    def __init__(self, query: str, pages: Sequence[Page], *, kind: QueryKind = QueryKind.NORMAL) -> None:
        if not pages:
            raise QueryError("A page dump must contain at least one page.")
        self.query = query
        self.kind = kind
        self.pages = tuple(pages)
        self.requested: list[str | None] = []
        self._by_locator: dict[str, Page] = {}
        for current, following in zip(self.pages, self.pages[1:]):
            if current.locator:
                self._by_locator[current.locator] = following

    @classmethod
    def from_file(cls, path: str | Path) -> ReplayPageSource:
        source = Path(path).expanduser()
        try:
            data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise QueryError(f"Unable to read page dump {source}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise QueryError(f"Page dump {source} must define a mapping root object.")

        raw_pages = data.get("pages") or []
        if not isinstance(raw_pages, list) or not all(isinstance(page, Mapping) for page in raw_pages):
            raise QueryError(f"Page dump {source} must list its pages as mappings.")
        try:
            kind = QueryKind(str(data.get("kind") or QueryKind.NORMAL.value))
        except ValueError as exc:
            raise QueryError(f"Unknown query kind in {source}: {data.get('kind')}") from exc
        return cls(
            str(data.get("query") or ""),
            [Page.from_payload(page) for page in raw_pages],
            kind=kind,
        )

    def request(self, *, view: ViewKind = ViewKind.TABLE, pivot: PivotFields | None = None) -> QueryRequest:
        return QueryRequest(query=self.query, kind=self.kind, pivot=pivot, view=view)

    def __call__(self, locator: str | None) -> Page:
        self.requested.append(locator)
        if locator is None:
            return self.pages[0]
        try:
            return self._by_locator[locator]
        except KeyError:
            raise PageFetchError(f"Unknown query locator '{locator}'.", code="INVALID_QUERY_LOCATOR") from None

    def __repr__(self) -> str:
        return f"ReplayPageSource({len(self.pages)} pages)"
