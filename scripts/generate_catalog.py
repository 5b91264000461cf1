#!/usr/bin/env python3
"""
Generate the source catalog (tabs_mindmap.json) from a tab export.

Each tab's CSV is summarised by the LLM into a few bullets; the selector
later reads these summaries to decide which tabs answer a question.

Usage:
    uv run python scripts/export_tabs.py
    uv run python scripts/generate_catalog.py [sheets_export.json]

Output:
    tabs_mindmap.json       (CATALOG_PATH, loaded by the API at startup)
    spreadsheet_analysis.md (human-readable copy)
"""

import asyncio
import json
import sys
from pathlib import Path

from app.config import settings
from app.services.llm import get_llm_provider
from app.services.summarizer import build_catalog, render_markdown


def load_export(path: Path) -> dict[str, str]:
    """Flatten the exported [{tab: csv}, ...] array into one ordered dict."""
    tabs: dict[str, str] = {}
    for entry in json.loads(path.read_text(encoding="utf-8")):
        tabs.update(entry)
    return tabs


async def generate(export_path: Path) -> None:
    tabs = load_export(export_path)
    print(f"Found {len(tabs)} tabs to analyze")

    llm = get_llm_provider(settings.catalog_model)
    document = await build_catalog(tabs, llm)

    catalog_path = Path(settings.catalog_path)
    catalog_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    Path("spreadsheet_analysis.md").write_text(
        render_markdown(document), encoding="utf-8",
    )

    print(f"Tabs analyzed: {document['total_tabs_analyzed']}")
    print(f"Created {catalog_path} and spreadsheet_analysis.md")


if __name__ == "__main__":
    source = Path(sys.argv[1] if len(sys.argv) > 1 else settings.export_path)
    asyncio.run(generate(source))
