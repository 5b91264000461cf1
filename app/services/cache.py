# =============================================================================
# Source Cache - Normalized Tab Records Keyed by Tab Name
# =============================================================================
#
# Prevents fetching the same tab twice. The answering model is told to read
# every selected tab, and follow-up questions in the same chat usually hit
# the same tabs again.
#
# DESIGN DECISION: Plain dict, first writer wins, no eviction.
# - put() uses dict.setdefault, which is atomic under the GIL. Two runs
#   racing to store the same tab both succeed; the first record stays.
#   Records for one tab are content-identical within a process lifetime,
#   so which one wins does not matter.
# - The tab-name space is small and fixed (one spreadsheet), so unbounded
#   growth is bounded in practice. A long-running deployment against a
#   spreadsheet that changes during the day needs a TTL; see DESIGN.md.
#
# SCOPE:
#   get_source_cache() returns the process-wide instance used by the API.
#   Callers that need strict per-request isolation (tests, batch scripts)
#   construct a fresh SourceCache() per run.
#
# Only complete records are ever stored: the reader calls put() after the
# fetch and normalization have both finished, so a cancelled run cannot
# leave a partial entry behind.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedRecord:
    """Normalized CSV for one tab, plus size metadata reported to the model."""

    data: str
    row_count: int
    approx_chars: int

    @classmethod
    def from_data(cls, data: str, row_count: int) -> NormalizedRecord:
        return cls(data=data, row_count=row_count, approx_chars=len(data))


class SourceCache:
    """In-memory key → NormalizedRecord store. Never updates an existing key."""

    def __init__(self) -> None:
        self._records: dict[str, NormalizedRecord] = {}

    def get(self, key: str) -> NormalizedRecord | None:
        return self._records.get(key)

    def put(self, key: str, record: NormalizedRecord) -> None:
        stored = self._records.setdefault(key, record)
        if stored is not record:
            logger.debug("Cache already holds '%s', keeping first record", key)

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)


# Lazy process-wide instance
_cache: SourceCache | None = None


def get_source_cache() -> SourceCache:
    """Return the process-wide cache shared by all API requests."""
    global _cache
    if _cache is None:
        _cache = SourceCache()
    return _cache
