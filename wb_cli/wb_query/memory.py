"""Process memory guard consulted between page fetches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import psutil

from wb_cli.shared.config import MemorySettings


def process_memory_usage() -> int:
    """Resident set size of the current process in bytes."""
    return psutil.Process().memory_info().rss


@dataclass(slots=True)
class MemoryGuard:
    """Signals when continued accumulation would push memory past the warning ratio.

    The guard only samples; it never reserves memory. A ``limit_bytes`` of zero
    means unbounded and the guard never fires.
    """

    limit_bytes: int
    warning_threshold: float
    usage_probe: Callable[[], int] = field(default=process_memory_usage)

    @classmethod
    def from_settings(
        cls,
        settings: MemorySettings,
        usage_probe: Callable[[], int] | None = None,
    ) -> MemoryGuard:
        return cls(
            limit_bytes=settings.limit_bytes,
            warning_threshold=settings.warning_threshold,
            usage_probe=usage_probe or process_memory_usage,
        )

    def usage_ratio(self) -> float:
        if self.limit_bytes == 0:
            return 0.0
        return self.usage_probe() / self.limit_bytes

    def exhausted(self) -> bool:
        if self.limit_bytes == 0:
            return False
        return self.usage_ratio() > self.warning_threshold
