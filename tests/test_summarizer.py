# =============================================================================
# Unit Tests - Catalog Summarizer
# =============================================================================
#
# The tokenizer is replaced with a whitespace splitter so truncation is
# easy to reason about; the LLM is a stub that records prompts.
# =============================================================================

import asyncio
from unittest.mock import patch

from app.errors import OracleError
from app.services.llm import LLMResponse
from app.services.summarizer import (
    ERROR_SUMMARY,
    NO_DATA_SUMMARY,
    build_catalog,
    has_useful_data,
    render_markdown,
    summarize_tab,
    truncate_to_tokens,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class WordEncoder:
    """One token per whitespace-separated word."""

    def encode(self, text):
        return text.split()

    def decode(self, tokens):
        return " ".join(tokens)


class StubLLM:
    def __init__(self, reply="• Revenue by month", fail_on=()):
        self.reply = reply
        self.fail_on = set(fail_on)
        self.prompts: list[str] = []

    async def complete(self, messages, system=None, temperature=None, max_tokens=None):
        prompt = messages[0]["content"]
        self.prompts.append(prompt)
        if any(f"TAB NAME: {tab}\n" in prompt for tab in self.fail_on):
            raise OracleError("rate limited")
        return LLMResponse(content=f"  {self.reply}\n", model="stub", input_tokens=1, output_tokens=1)


USEFUL_CSV = "Month,Revenue,Cost\nJan,100000,40000\nFeb,120000,45000\nMar,130000,47000"


class TestTruncation:

    def test_short_text_unchanged(self):
        with patch("app.services.summarizer._get_encoder", return_value=WordEncoder()):
            assert truncate_to_tokens("a b c", 5) == "a b c"

    def test_long_text_truncated_with_marker(self):
        with patch("app.services.summarizer._get_encoder", return_value=WordEncoder()):
            result = truncate_to_tokens("a b c d e", 2)
        assert result == "a b\n# TRUNCATED: original tokens 5, kept 2"


class TestUsefulData:

    def test_too_short(self):
        assert has_useful_data("a,b\n1,2") is False

    def test_single_line(self):
        assert has_useful_data("x" * 100) is False

    def test_useful(self):
        assert has_useful_data(USEFUL_CSV) is True


class TestSummarizeTab:

    def test_empty_tab_skips_model(self):
        llm = StubLLM()
        assert _run(summarize_tab("Blank", "", "", llm)) == NO_DATA_SUMMARY
        assert llm.prompts == []

    def test_prompt_and_reply(self):
        llm = StubLLM()
        with patch("app.services.summarizer._get_encoder", return_value=WordEncoder()):
            summary = _run(summarize_tab("Revenue", USEFUL_CSV, "Read me first", llm, max_tokens=100))
        assert summary == "• Revenue by month"
        prompt = llm.prompts[0]
        assert "TAB NAME: Revenue" in prompt
        assert "Read me first" in prompt
        assert "Jan,100000,40000" in prompt


class TestBuildCatalog:

    def test_document_shape(self):
        tabs = {
            "Instructions": "Revenue tab holds monthly sales",
            "Revenue": USEFUL_CSV,
            "Blank": "",
            "Opex": USEFUL_CSV,
        }
        llm = StubLLM(fail_on=["Opex"])
        with patch("app.services.summarizer._get_encoder", return_value=WordEncoder()):
            document = _run(build_catalog(tabs, llm, delay_seconds=0))

        assert list(document["tab_analysis"]) == ["Revenue", "Blank", "Opex"]
        assert document["tab_analysis"]["Revenue"] == "• Revenue by month"
        assert document["tab_analysis"]["Blank"] == NO_DATA_SUMMARY
        assert document["tab_analysis"]["Opex"] == ERROR_SUMMARY
        assert document["total_tabs_analyzed"] == 3
        assert "generated_at" in document
        # Instructions text is passed as context to every summarised tab
        assert all("Revenue tab holds monthly sales" in p for p in llm.prompts)

    def test_render_markdown(self):
        text = render_markdown({
            "generated_at": "2025-01-01T00:00:00+00:00",
            "tab_analysis": {"Revenue": "• Sales"},
        })
        assert "Generated on: 2025-01-01T00:00:00+00:00" in text
        assert "## Revenue\n• Sales\n" in text
