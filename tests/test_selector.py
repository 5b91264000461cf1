# =============================================================================
# Unit Tests - Tab Selector
# =============================================================================
#
# Uses a stub classification model; no API keys needed.
# =============================================================================

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from app.agents.selector import (
    FALLBACK_REASON,
    CandidateSource,
    TabSelection,
    fallback_sources,
    render_selection,
    select_sources,
)
from app.errors import EmptyQuestionError, OracleError
from app.services.catalog import SourceCatalog


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class StubClassifier:
    """Returns a fixed tab list (or raises) and records every call."""

    def __init__(self, tabs: list[dict] | None = None, error: Exception | None = None):
        self.tabs = tabs or []
        self.error = error
        self.calls: list[dict] = []

    async def classify(self, system, user_text, schema):
        self.calls.append({"system": system, "user_text": user_text})
        if self.error:
            raise self.error
        return schema.model_validate({"tabs": self.tabs, "reasoning": "stub"})


CATALOG = SourceCatalog({
    "Revenue": "Monthly revenue by product line",
    "Opex": "Operating expenses\nby department",
})


class TestSelectSources:
    """Tests for select_sources()."""

    def test_returns_model_choice_in_order(self):
        llm = StubClassifier([
            {"name": "Opex", "reason": "costs"},
            {"name": "Revenue"},
        ])
        selection = _run(select_sources("What is burn?", CATALOG, llm))
        assert selection.candidates == [
            CandidateSource("Opex", "costs"),
            CandidateSource("Revenue", None),
        ]
        assert selection.summary_text == "- Opex (costs)\n- Revenue"
        assert selection.used_fallback is False

    def test_prompt_contains_catalog_and_question(self):
        llm = StubClassifier([{"name": "Revenue"}])
        _run(select_sources("What is Q1 revenue?", CATALOG, llm))
        call = llm.calls[0]
        assert "- Revenue: Monthly revenue by product line" in call["system"]
        # Newlines inside summaries are folded to spaces
        assert "- Opex: Operating expenses by department" in call["system"]
        assert "STRICT JSON" in call["system"]
        assert call["user_text"] == "What is Q1 revenue?"

    def test_empty_question_raises_without_calling_model(self):
        llm = StubClassifier([{"name": "Revenue"}])
        with pytest.raises(EmptyQuestionError):
            _run(select_sources("   \n ", CATALOG, llm))
        assert llm.calls == []

    def test_oracle_error_propagates(self):
        llm = StubClassifier(error=OracleError("model down"))
        with pytest.raises(OracleError):
            _run(select_sources("What is Q1 revenue?", CATALOG, llm))

    def test_names_not_validated_against_catalog(self):
        llm = StubClassifier([{"name": "Not A Tab"}])
        selection = _run(select_sources("anything", CATALOG, llm))
        assert selection.names == ["Not A Tab"]

    def test_empty_reason_treated_as_absent(self):
        llm = StubClassifier([{"name": "Revenue", "reason": ""}])
        selection = _run(select_sources("q", CATALOG, llm))
        assert selection.summary_text == "- Revenue"


class TestFallback:
    """Deterministic fallback when the model returns no tabs."""

    def test_ten_tab_catalog_falls_back_to_top_five(self):
        catalog = SourceCatalog({
            f"tab{i}": "x" * (i + 1) for i in range(10)
        })
        selection = _run(select_sources("q", catalog, StubClassifier([])))
        assert selection.names == ["tab9", "tab8", "tab7", "tab6", "tab5"]
        assert all(c.reason == FALLBACK_REASON for c in selection.candidates)
        assert selection.used_fallback is True

    def test_ties_keep_catalog_order(self):
        catalog = SourceCatalog({"b": "same", "a": "same", "c": "longer"})
        result = fallback_sources(catalog, count=3)
        assert [c.name for c in result] == ["c", "b", "a"]

    def test_small_catalog_returns_all(self):
        result = fallback_sources(CATALOG, count=5)
        assert [c.name for c in result] == ["Opex", "Revenue"]


class TestSchema:
    """Output schema enforced on the classification model."""

    def test_more_than_eight_tabs_rejected(self):
        with pytest.raises(ValidationError):
            TabSelection.model_validate({
                "tabs": [{"name": f"t{i}"} for i in range(9)],
                "reasoning": "",
            })

    def test_reason_optional(self):
        parsed = TabSelection.model_validate({"tabs": [{"name": "t"}]})
        assert parsed.tabs[0].reason is None


class TestRenderSelection:

    def test_render(self):
        text = render_selection([
            CandidateSource("Revenue", "top line"),
            CandidateSource("Opex"),
        ])
        assert text == "- Revenue (top line)\n- Opex"

    def test_render_empty(self):
        assert render_selection([]) == ""
