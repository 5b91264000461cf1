# =============================================================================
# Tab Selector - Question → Minimal Set of Tabs to Read
# =============================================================================
#
# Phase 1 of a run. A cheap model reads the catalog summaries and picks
# the tabs (1-8) needed to answer the question, returning strict JSON.
#
# DESIGN DECISION: The model's choice is advisory, not authoritative.
# Names are NOT checked against the catalog here. The reader enforces
# membership in the selected set at fetch time, which is the only place
# a wrong name can do harm.
#
# DESIGN DECISION: Deterministic fallback when the model returns nothing.
# Take the 5 tabs with the longest summaries. Long summaries are a crude
# proxy for "richest tab", but they guarantee the answering phase never
# starts with an empty tab list.
#
# Model failures (API errors, invalid JSON) are NOT swallowed: they raise
# OracleError and end the run.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import BaseModel, Field

from app.config import settings
from app.errors import EmptyQuestionError
from app.services.catalog import SourceCatalog
from app.services.llm import LLMProvider

logger = logging.getLogger(__name__)

FALLBACK_REASON = "Fallback heuristic: rich summary"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


class ProposedTab(BaseModel):
    name: str
    reason: str | None = None


class TabSelection(BaseModel):
    """Output schema the classification model must satisfy."""

    tabs: list[ProposedTab] = Field(default_factory=list, max_length=8)
    reasoning: str = ""


@dataclass(frozen=True)
class CandidateSource:
    name: str
    reason: str | None = None


@dataclass
class Selection:
    """Selected tabs in order, plus their prompt-ready rendering."""

    candidates: list[CandidateSource]
    summary_text: str
    used_fallback: bool = False

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.candidates]


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SELECTOR_SYSTEM = """You are a financial model navigator. Given a user \
question and tab summaries, choose the minimal essential set (1-{max_tabs}) \
of tab names to inspect. Return STRICT JSON only.
Rules:
- Exact tab names only (case-sensitive as provided)
- Prefer specificity; include a control/assumption tab only if needed
Format:
{{"tabs":[{{"name":"tab-name","reason":"why"}}],"reasoning":"short"}}
TAB SUMMARIES:
{summaries}"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def select_sources(
    question: str,
    catalog: SourceCatalog,
    llm: LLMProvider,
) -> Selection:
    """
    Ask the classification model which tabs answer `question`.

    Args:
        question: The user's question (all user turns joined).
        catalog: Tab name → summary index.
        llm: Provider used for structured classification.

    Returns:
        Selection with at most 8 candidates, never empty for a
        non-empty catalog.

    Raises:
        EmptyQuestionError: The question is blank.
        OracleError: The classification call failed.
    """
    if not question.strip():
        raise EmptyQuestionError("Question is empty")

    system = _SELECTOR_SYSTEM.format(
        max_tabs=settings.max_selected_sources,
        summaries=catalog.summary_text(),
    )
    result = await llm.classify(system, question, TabSelection)

    candidates = [
        CandidateSource(name=tab.name, reason=tab.reason or None)
        for tab in result.tabs[: settings.max_selected_sources]
    ]
    used_fallback = False
    if not candidates:
        candidates = fallback_sources(catalog)
        used_fallback = True
        logger.info(
            "Selector returned no tabs, using fallback: %s",
            [c.name for c in candidates],
        )
    else:
        logger.info(
            "Selected %d tabs: %s (reasoning: %s)",
            len(candidates), [c.name for c in candidates],
            result.reasoning[:120],
        )

    return Selection(
        candidates=candidates,
        summary_text=render_selection(candidates),
        used_fallback=used_fallback,
    )


def fallback_sources(
    catalog: SourceCatalog,
    count: int | None = None,
) -> list[CandidateSource]:
    """Top-N tabs by summary length, longest first (stable on ties)."""
    count = count or settings.fallback_source_count
    ranked = sorted(catalog.items(), key=lambda item: len(item[1]), reverse=True)
    return [
        CandidateSource(name=name, reason=FALLBACK_REASON)
        for name, _ in ranked[:count]
    ]


def render_selection(candidates: list[CandidateSource]) -> str:
    """One `- name (reason)` line per candidate, in selection order."""
    return "\n".join(
        f"- {c.name} ({c.reason})" if c.reason else f"- {c.name}"
        for c in candidates
    )
