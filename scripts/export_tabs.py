#!/usr/bin/env python3
"""
Export every visible tab of the configured spreadsheet as normalized CSV.

Reads SPREADSHEET_ID, GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY from the
environment (or .env) and writes a JSON array of {"<tab name>": "<csv>"}
objects, which scripts/generate_catalog.py turns into the source catalog.

Usage:
    uv run python scripts/export_tabs.py [output.json]

Output:
    sheets_export.json (or EXPORT_PATH / the first argument)
"""

import asyncio
import json
import sys
from pathlib import Path

from app.config import settings
from app.services.normalizer import normalize
from app.services.sheets import GoogleSheetsFetcher


async def export_tabs(output_path: Path) -> int:
    fetcher = GoogleSheetsFetcher()
    titles = await fetcher.list_sources()
    if not titles:
        print("No sheets found in spreadsheet.")
        return 0

    exported = []
    for title in titles:
        print(f"Processing sheet: {title}")
        rows = await fetcher.fetch(title)
        exported.append({title: normalize(rows)})

    output_path.write_text(json.dumps(exported, indent=2), encoding="utf-8")
    print(f"Exported {len(titles)} sheets to {output_path}")
    return len(titles)


if __name__ == "__main__":
    target = Path(sys.argv[1] if len(sys.argv) > 1 else settings.export_path)
    asyncio.run(export_tabs(target))
