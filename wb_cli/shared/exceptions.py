"""Project-wide custom exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from wb_cli.wb_query.types import AccumulatedResult

KNOWN_QUERY_ERRORS = frozenset(
    {
        "MALFORMED_QUERY",
        "INVALID_FIELD",
        "INVALID_TYPE",
        "INVALID_QUERY_FILTER_OPERATOR",
        "QUERY_TIMEOUT",
        "EXCEEDED_ID_LIMIT",
    }
)


class WorkbenchError(Exception):
    """Base exception for the workbench CLI suite."""


class ConfigurationError(WorkbenchError):
    """Raised when configuration loading or validation fails."""


class QueryError(WorkbenchError):
    """Raised when query orchestration fails."""


class PageFetchError(QueryError):
    """Raised when a follow-up page fetch against the remote store fails.

    ``partial`` holds whatever was accumulated before the failing fetch so callers
    can still show it next to the error.
    """

    def __init__(
        self,
        message: str,
        *,
        partial: AccumulatedResult | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.partial = partial
        self.code = code

    @property
    def known(self) -> bool:
        """True when the remote store reported one of the documented query faults."""
        return self.code in KNOWN_QUERY_ERRORS
