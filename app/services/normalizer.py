# =============================================================================
# Normalizer - Spreadsheet Grid → Compact CSV Text
# =============================================================================
#
# Converts the raw rows returned by the Sheets API into a compact CSV block
# that is cheap to send to an LLM:
#
# 1. Trailing empty cells are dropped per row (the API pads ragged rows,
#    and formatted-but-empty columns add long runs of commas)
# 2. Each row becomes one CSV line with standard quoting
# 3. Runs of blank lines collapse to a single blank line
# 4. Leading and trailing blank lines are stripped
#
# Cell values arrive as UNFORMATTED_VALUE, so checkboxes are JSON booleans.
# They render lowercase ("true"/"false"), not the TRUE/FALSE the Sheets UI
# displays.
#
# DESIGN DECISION: Hand-rolled quoting instead of the csv module.
# The csv writer quotes on "\r" and uses "\r\n" terminators; we want LF-only
# output with "\r\n"/"\r" folded to "\n" inside cells, and exactly the
# quoting rule "quote iff the cell contains , \" or \n".
#
# The function is pure and idempotent: splitting the output on "\n" and
# normalizing again returns the same string.
# =============================================================================

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Any

_NEEDS_QUOTING = re.compile(r'[",\n]')
_LINE_BREAKS = re.compile(r"\r\n?")


def normalize(rows: Iterable[Sequence[Any] | None]) -> str:
    """
    Render a grid of cell values as compact, escaped CSV text.

    Args:
        rows: Sequence of rows; each row is a sequence of cell values
            (str, int, float, bool, or None). A None row counts as empty.

    Returns:
        Normalized CSV text. Zero rows (or only empty rows) yields "".
    """
    lines = [
        ",".join(_escape(cell) for cell in _trim_trailing(row or ()))
        for row in rows
    ]

    compressed: list[str] = []
    last_blank = False
    for line in lines:
        blank = line.strip() == ""
        if blank:
            if not last_blank:
                compressed.append("")
        else:
            compressed.append(line)
        last_blank = blank

    while compressed and compressed[0].strip() == "":
        compressed.pop(0)
    while compressed and compressed[-1].strip() == "":
        compressed.pop()

    return "\n".join(compressed)


def cell_text(value: Any) -> str:
    """String form of a single cell, before escaping."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _trim_trailing(row: Sequence[Any]) -> Sequence[Any]:
    """Drop trailing cells whose string form is empty."""
    end = len(row)
    while end > 0 and cell_text(row[end - 1]) == "":
        end -= 1
    return row[:end]


def _escape(value: Any) -> str:
    text = _LINE_BREAKS.sub("\n", cell_text(value))
    if _NEEDS_QUOTING.search(text):
        return '"' + text.replace('"', '""') + '"'
    return text
