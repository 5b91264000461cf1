# =============================================================================
# Source Reader - The `read_source` Tool Executed for the Answering Model
# =============================================================================
#
# A SourceReader is created per run and bound to that run's selected tabs,
# the shared cache, and the fetcher. The orchestrator calls it once per
# tool call the model makes.
#
# Outcomes (FetchStatus):
#   rejected - tab not in the run's selected set; the fetcher is NOT called
#   cached   - served from the cache
#   fresh    - fetched, normalized, stored in the cache
#   empty    - fetched zero rows; NOT cached so a retry sees new data
#   error    - TransportError / ConfigurationError message for the model
#
# DESIGN DECISION: Tool-local failures never abort the run.
# The model gets an error payload it can reason about and disclose
# ("the Opex tab could not be read"), instead of the whole answer failing.
# Nothing here ever fabricates data: non-success results carry data="".
#
# DESIGN DECISION: Membership is checked against the SELECTED set, not the
# catalog. The model may only read what phase 1 approved.
# =============================================================================

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from app.errors import ConfigurationError, TransportError
from app.services.cache import NormalizedRecord, SourceCache
from app.services.llm import ToolSpec
from app.services.normalizer import normalize
from app.services.sheets import SourceFetcher

logger = logging.getLogger(__name__)

READ_SOURCE_TOOL = ToolSpec(
    name="read_source",
    description=(
        "Fetch and return cleaned CSV data for a specific spreadsheet tab "
        "(optimized for token usage)"
    ),
    parameters={
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": "Exact tab name to read",
            },
            "purpose": {
                "type": "string",
                "description": "Why this tab is being read for the user question",
            },
        },
        "required": ["name", "purpose"],
        "additionalProperties": False,
    },
)


class FetchStatus(str, enum.Enum):
    CACHED = "cached"
    FRESH = "fresh"
    EMPTY = "empty"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass
class FetchResult:
    """Outcome of one read_source call, as reported to the model."""

    source: str
    purpose: str
    status: FetchStatus
    record: NormalizedRecord | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status in (FetchStatus.CACHED, FetchStatus.FRESH)

    def to_payload(self) -> dict[str, Any]:
        """JSON-serialisable tool result sent back to the model."""
        payload: dict[str, Any] = {
            "source": self.source,
            "purpose": self.purpose,
            "success": self.success,
            "status": self.status.value,
            "data": self.record.data if self.record else "",
        }
        if self.record is not None:
            payload["row_count"] = self.record.row_count
            payload["approx_chars"] = self.record.approx_chars
            payload["cached"] = self.status is FetchStatus.CACHED
        if self.status is FetchStatus.EMPTY:
            payload["message"] = "Tab empty"
        if self.error:
            payload["error"] = self.error
        return payload


class SourceReader:
    """read_source implementation bound to one run's approved tabs."""

    def __init__(
        self,
        approved: Iterable[str],
        cache: SourceCache,
        fetcher: SourceFetcher,
    ) -> None:
        self._approved = list(dict.fromkeys(approved))
        self._cache = cache
        self._fetcher = fetcher
        self._requested: set[str] = set()

    @property
    def approved(self) -> list[str]:
        return list(self._approved)

    @property
    def pending(self) -> list[str]:
        """Approved tabs the model has not asked for yet."""
        return [name for name in self._approved if name not in self._requested]

    async def __call__(self, name: str, purpose: str = "") -> FetchResult:
        if name not in self._approved:
            logger.warning("Tab '%s' not in approved selection list", name)
            return FetchResult(
                source=name,
                purpose=purpose,
                status=FetchStatus.REJECTED,
                error="Tab not in approved selection list",
            )
        self._requested.add(name)

        cached = self._cache.get(name)
        if cached is not None:
            logger.info("Cache hit for tab '%s'", name)
            return FetchResult(
                source=name, purpose=purpose,
                status=FetchStatus.CACHED, record=cached,
            )

        try:
            rows = await self._fetcher.fetch(name)
        except (TransportError, ConfigurationError) as e:
            logger.warning("Reading tab '%s' failed: %s", name, e)
            return FetchResult(
                source=name, purpose=purpose,
                status=FetchStatus.ERROR, error=str(e),
            )

        if not rows:
            return FetchResult(source=name, purpose=purpose, status=FetchStatus.EMPTY)

        record = NormalizedRecord.from_data(normalize(rows), row_count=len(rows))
        self._cache.put(name, record)
        return FetchResult(
            source=name, purpose=purpose,
            status=FetchStatus.FRESH, record=record,
        )

    async def call_tool(self, arguments: dict[str, Any]) -> FetchResult:
        """Validate raw tool arguments from the model, then read."""
        name = arguments.get("name")
        purpose = arguments.get("purpose")
        if not isinstance(name, str) or not name:
            return FetchResult(
                source=str(name or ""),
                purpose=str(purpose or ""),
                status=FetchStatus.ERROR,
                error="Invalid arguments: 'name' must be a non-empty string",
            )
        return await self(name, purpose if isinstance(purpose, str) else "")
