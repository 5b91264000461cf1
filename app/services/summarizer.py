# =============================================================================
# Catalog Summarizer - Tab CSV → Short Bullet Summary
# =============================================================================
#
# Builds the source catalog offline from an export of every tab
# (scripts/export_tabs.py → scripts/generate_catalog.py).
#
# FLOW per tab:
#   1. The "Instructions" tab is never summarised; its text is prepended to
#      every prompt as context for what the model is about
#   2. Tabs with almost no content get a fixed "No useful data" summary
#      without an LLM call
#   3. Tab CSV is truncated to a token budget so one huge tab cannot
#      overflow the context window
#   4. The LLM returns 3-5 "•" bullets describing the tab
#   5. A failed call records an error summary for that tab and moves on
#
# DESIGN DECISION: tiktoken for the budget, not a word count.
# Word counts badly misjudge CSV (numbers and commas tokenize densely).
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

import tiktoken

from app.config import settings
from app.errors import OracleError
from app.services.llm import LLMProvider

logger = logging.getLogger(__name__)

INSTRUCTIONS_TAB = "Instructions"
NO_DATA_SUMMARY = (
    "• No useful data - tab appears to be empty or contains only error values"
)
ERROR_SUMMARY = "• Error occurred during analysis - unable to process this tab"
_MIN_USEFUL_CHARS = 50

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Cut `text` to `max_tokens` tokens, appending a truncation marker."""
    encoder = _get_encoder()
    tokens = encoder.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return (
        encoder.decode(tokens[:max_tokens])
        + f"\n# TRUNCATED: original tokens {len(tokens)}, kept {max_tokens}"
    )


def has_useful_data(csv_content: str) -> bool:
    stripped = csv_content.strip()
    return len(stripped) >= _MIN_USEFUL_CHARS and "\n" in stripped


_PROMPT = """You are analyzing a financial spreadsheet tab from a startup's \
financial model.

CONTEXT FROM INSTRUCTIONS:
{instructions}

TAB NAME: {tab}
CSV CONTENT:
{csv}

TASK: Generate a concise bullet-point summary (3-5 bullets max) of what this \
tab contains and what financial information it represents. Focus on:
- What type of financial data is shown (P&L, cash flow, KPIs, etc.)
- Key metrics or categories present
- Time periods covered
- Purpose of this data in the financial model

If the tab name matches any tab mentioned in the instructions, use that \
context to enhance your analysis.

Respond with ONLY bullet points starting with "•", be specific and concise. \
If there's insufficient meaningful data, respond with "• Inconclusive data - \
insufficient information to determine content\""""


async def summarize_tab(
    tab: str,
    csv_content: str,
    instructions: str,
    llm: LLMProvider,
    max_tokens: int | None = None,
) -> str:
    """Summarise one tab. Raises OracleError if the model call fails."""
    if not has_useful_data(csv_content):
        return NO_DATA_SUMMARY

    prompt = _PROMPT.format(
        instructions=instructions,
        tab=tab,
        csv=truncate_to_tokens(csv_content, max_tokens or settings.catalog_max_tokens),
    )
    response = await llm.complete(
        messages=[{"role": "user", "content": prompt}],
        temperature=0.1,
    )
    return response.content.strip()


async def build_catalog(
    tabs: dict[str, str],
    llm: LLMProvider,
    delay_seconds: float = 0.5,
) -> dict:
    """
    Summarise every tab and return the catalog document.

    Args:
        tabs: Tab name → normalized CSV, in sheet order.
        llm: Provider used for summaries.
        delay_seconds: Pause between LLM calls to stay under rate limits.

    Returns:
        {"generated_at", "total_tabs_analyzed", "tab_analysis"}.
    """
    instructions = tabs.get(INSTRUCTIONS_TAB, "")
    analysis: dict[str, str] = {}

    for tab, csv_content in tabs.items():
        if tab == INSTRUCTIONS_TAB:
            continue
        logger.info("Analyzing tab: %s", tab)
        try:
            analysis[tab] = await summarize_tab(tab, csv_content, instructions, llm)
        except OracleError as e:
            logger.error("Error analyzing %s: %s", tab, e)
            analysis[tab] = ERROR_SUMMARY
            continue
        if delay_seconds and analysis[tab] != NO_DATA_SUMMARY:
            await asyncio.sleep(delay_seconds)

    return {
        "generated_at": datetime.now(UTC).isoformat(),
        "total_tabs_analyzed": len(analysis),
        "tab_analysis": analysis,
    }


def render_markdown(catalog_document: dict) -> str:
    """Human-readable version of the catalog."""
    sections = [
        f"## {tab}\n{summary}\n"
        for tab, summary in catalog_document["tab_analysis"].items()
    ]
    return (
        "# Financial Spreadsheet Analysis\n\n"
        "AI-generated description of each tab in the financial spreadsheet.\n\n"
        f"Generated on: {catalog_document['generated_at']}\n\n"
        + "\n".join(sections)
    )
