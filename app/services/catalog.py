# =============================================================================
# Source Catalog - Tab Name → Summary Index
# =============================================================================
#
# The catalog is the only thing the selector knows about the spreadsheet.
# It is generated offline by scripts/generate_catalog.py and loaded once at
# startup:
#
#   {
#     "generated_at": "2025-01-01T00:00:00Z",
#     "total_tabs_analyzed": 2,
#     "tab_analysis": {
#       "Revenue": "• Monthly revenue by product line ...",
#       "Opex":    "• Operating expenses by department ..."
#     }
#   }
#
# A bare {"name": "summary"} object is accepted too, which is handy for
# hand-written catalogs in tests and local experiments.
#
# DESIGN DECISION: Missing or malformed catalog is fatal.
# Without it the selector has nothing to choose from, and silently serving
# answers from an empty catalog would look like "no data" to users.
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

from app.config import settings
from app.errors import CatalogError

logger = logging.getLogger(__name__)


class SourceCatalog(Mapping[str, str]):
    """
    Immutable, insertion-ordered mapping of tab name to summary.

    Names are exact, case-sensitive keys.
    """

    def __init__(self, entries: Mapping[str, str]) -> None:
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, name: str) -> str:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"SourceCatalog({len(self)} sources)"

    def summary_text(self) -> str:
        """
        Render the catalog for a system prompt: one `- name: summary` line
        per tab, with newlines inside summaries folded to spaces.
        """
        return "\n".join(
            f"- {name}: {summary.replace(chr(10), ' ')}"
            for name, summary in self._entries.items()
        )


def parse_catalog(document: object) -> SourceCatalog:
    """Validate a decoded catalog JSON document and build a SourceCatalog."""
    if not isinstance(document, dict):
        raise CatalogError("Catalog must be a JSON object")

    entries = document.get("tab_analysis", document)
    if not isinstance(entries, dict):
        raise CatalogError("Catalog 'tab_analysis' must be a JSON object")

    for name, summary in entries.items():
        if not isinstance(summary, str):
            raise CatalogError(
                f"Catalog summary for '{name}' must be a string, "
                f"got {type(summary).__name__}"
            )

    return SourceCatalog(entries)


def load_catalog(path: str | Path) -> SourceCatalog:
    """
    Load the catalog from disk.

    Raises:
        CatalogError: If the file is missing, unreadable, or malformed.
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CatalogError(f"Catalog file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Catalog file {path} is unreadable: {e}") from e

    catalog = parse_catalog(document)
    logger.info("Loaded source catalog from %s (%d tabs)", path, len(catalog))
    return catalog


@lru_cache
def get_catalog() -> SourceCatalog:
    """Process-wide catalog, loaded on first use from settings.catalog_path."""
    return load_catalog(settings.catalog_path)
