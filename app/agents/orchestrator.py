# =============================================================================
# LangGraph Orchestrator - Select Tabs, Read Them, Stream the Answer
# =============================================================================
#
# One run answers one question in two phases:
#
#   Phase 1 (select):   classification model picks the tabs to read
#   Phase 2 (generate ⇄ tools): answering model must call read_source for
#                       every selected tab, then streams its answer
#
# GRAPH TOPOLOGY:
#   START ──▶ select ──▶ generate ──▶ END
#                          ▲   │
#                          │   ▼ (model requested tools)
#                          └─ tools
#
# STATE MACHINE (as seen by the caller):
#   Selecting → ToolPhase → Answering → Done, Failed from anywhere.
#   Failed is a raised SheetQAError subclass, never a truncated answer
#   passed off as complete.
#
# DESIGN DECISION: The orchestrator owns the tool loop, not the provider.
# Each `generate` node is ONE model round. That lets us:
# 1. Cap rounds (max_tool_steps, default 5) and fail with
#    StepBudgetExceeded instead of looping forever
# 2. Force tool use (tool_choice required/any) while selected tabs are
#    still unread - the gating is enforced, not just requested in the prompt
# 3. Execute tools against the run-bound SourceReader only
#
# DESIGN DECISION: Streaming via LangGraph custom stream mode.
# Nodes push RunEvents through get_stream_writer(); stream() forwards them
# as they arrive, so answer text reaches the client token by token.
#
# DESIGN DECISION: Dependencies travel in the state.
# Catalog, providers, fetcher, and cache are injected per run (like the
# llm_override pattern), so tests swap in stubs without patching globals.
# NOTE: Not JSON-serialisable. Safe because no checkpointer is configured.
#
# DEADLINE: every model/fetch await is bounded by asyncio.timeout_at() on
# the run's deadline. Expiry cancels the in-flight call and raises
# DeadlineExceeded. The cache is only written after a complete fetch, so a
# cancelled run leaves no partial record.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from langgraph.config import get_stream_writer
from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from app.agents.reader import READ_SOURCE_TOOL, FetchResult, FetchStatus, SourceReader
from app.agents.selector import Selection, select_sources
from app.config import settings
from app.errors import DeadlineExceeded, StepBudgetExceeded
from app.models.conversation import (
    Conversation,
    Message,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from app.services.cache import SourceCache, get_source_cache
from app.services.catalog import SourceCatalog, get_catalog
from app.services.llm import (
    LLMProvider,
    TextDelta,
    ToolCall,
    get_answer_llm,
    get_selector_llm,
)
from app.services.sheets import SourceFetcher, get_source_fetcher

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events & State
# ---------------------------------------------------------------------------


@dataclass
class RunEvent:
    """
    One item of the run's output stream.

    type: "selection" | "tool_call" | "tool_result" | "text" | "done"
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)


class RunState(TypedDict, total=False):
    """State that flows through the graph. Nodes return partial updates."""

    # --- Input (set by stream()) ---
    question: str
    history: list[Message]
    catalog: SourceCatalog
    selector_llm: LLMProvider
    answer_llm: LLMProvider
    fetcher: SourceFetcher
    cache: SourceCache
    deadline: float | None
    max_steps: int

    # --- Set by select ---
    selection: Selection
    reader: SourceReader

    # --- Set by generate / tools ---
    new_messages: list[Message]   # turns produced by this run
    pending_calls: list[ToolCall]
    steps: int
    answer: str


# ---------------------------------------------------------------------------
# Answer Prompt
# ---------------------------------------------------------------------------

_ANSWER_SYSTEM = """You are an expert startup CFO assistant.
You MUST first call {tool} for EACH of these selected tabs (one call per tab) \
before answering:
{selected}

After fetching data, synthesize:
1. Direct answer
2. Supporting metrics (tab | metric | period)
3. Interpretation / insight
4. Risks / caveats
5. Next actions

Rules:
- Cite tab names for metrics.
- If data missing/inconclusive, state limitation & suggest remediation.
- Do NOT fabricate metrics.
"""


def build_answer_prompt(selection: Selection) -> str:
    return _ANSWER_SYSTEM.format(
        tool=READ_SOURCE_TOOL.name, selected=selection.summary_text,
    )


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def select_node(state: RunState) -> dict:
    """Phase 1: pick tabs and bind them into this run's SourceReader."""
    async with _within(state.get("deadline")):
        selection = await select_sources(
            state["question"], state["catalog"], state["selector_llm"],
        )

    get_stream_writer()(RunEvent("selection", {
        "sources": [
            {"name": c.name, "reason": c.reason} for c in selection.candidates
        ],
        "fallback": selection.used_fallback,
    }))

    reader = SourceReader(selection.names, state["cache"], state["fetcher"])
    return {
        "selection": selection,
        "reader": reader,
        "new_messages": [],
        "pending_calls": [],
        "steps": 0,
    }


async def generate_node(state: RunState) -> dict:
    """
    One answering-model round. Text is streamed out as it arrives; tool
    calls are collected for the tools node.
    """
    writer = get_stream_writer()
    reader: SourceReader = state["reader"]
    step = state.get("steps", 0) + 1
    require_tool = bool(reader.pending)

    logger.info(
        "Generation round %d/%d (unread tabs: %s)",
        step, state["max_steps"], reader.pending,
    )

    text_parts: list[str] = []
    calls: list[ToolCall] = []
    events = state["answer_llm"].generate_with_tools(
        build_answer_prompt(state["selection"]),
        [*state.get("history", []), *state.get("new_messages", [])],
        [READ_SOURCE_TOOL],
        require_tool=require_tool,
    )
    async for event in _iterate_within(events, state.get("deadline")):
        if isinstance(event, TextDelta):
            text_parts.append(event.text)
            writer(RunEvent("text", {"delta": event.text}))
        elif isinstance(event, ToolCall):
            calls.append(event)

    text = "".join(text_parts)
    parts: list = [TextPart(text)] if text else []
    parts.extend(ToolCallPart(c.id, c.name, c.arguments) for c in calls)
    assistant = Message(role="assistant", parts=parts)

    if calls and step >= state["max_steps"]:
        logger.warning(
            "Step budget exhausted: round %d still requested %d tool calls",
            step, len(calls),
        )
        raise StepBudgetExceeded(state["max_steps"])

    return {
        "new_messages": [*state.get("new_messages", []), assistant],
        "pending_calls": calls,
        "steps": step,
        "answer": "" if calls else text,
    }


async def tools_node(state: RunState) -> dict:
    """Execute the round's tool calls in order and record their results."""
    writer = get_stream_writer()
    reader: SourceReader = state["reader"]
    results: list[ToolResultPart] = []

    for call in state["pending_calls"]:
        writer(RunEvent("tool_call", {
            "id": call.id, "name": call.name, "arguments": call.arguments,
        }))
        if call.name == READ_SOURCE_TOOL.name:
            async with _within(state.get("deadline")):
                result = await reader.call_tool(call.arguments)
        else:
            result = FetchResult(
                source="", purpose="", status=FetchStatus.ERROR,
                error=f"Unknown tool '{call.name}'",
            )
        payload = result.to_payload()
        writer(RunEvent("tool_result", {
            "id": call.id,
            **{k: v for k, v in payload.items() if k != "data"},
        }))
        results.append(ToolResultPart(call.id, call.name, payload))

    return {
        "new_messages": [
            *state["new_messages"], Message(role="tool", parts=list(results)),
        ],
        "pending_calls": [],
    }


def route_after_generate(state: RunState) -> str:
    return "tools" if state.get("pending_calls") else END


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------
# Compiled once at module level and reused across requests.
# ---------------------------------------------------------------------------

_builder = StateGraph(RunState)
_builder.add_node("select", select_node)
_builder.add_node("generate", generate_node)
_builder.add_node("tools", tools_node)

_builder.add_edge(START, "select")
_builder.add_edge("select", "generate")
_builder.add_conditional_edges("generate", route_after_generate, ["tools", END])
_builder.add_edge("tools", "generate")

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class AnswerOrchestrator:
    """Runs the graph for one conversation and streams RunEvents."""

    def __init__(
        self,
        catalog: SourceCatalog,
        selector_llm: LLMProvider,
        answer_llm: LLMProvider,
        fetcher: SourceFetcher,
        cache: SourceCache | None = None,
        max_steps: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.selector_llm = selector_llm
        self.answer_llm = answer_llm
        self.fetcher = fetcher
        self.cache = cache if cache is not None else SourceCache()
        self.max_steps = max_steps or settings.max_tool_steps

    async def stream(
        self,
        conversation: Conversation,
        timeout: float | None = None,
    ) -> AsyncIterator[RunEvent]:
        """
        Run the pipeline, yielding events as they happen.

        On success the run's assistant/tool turns are appended to
        `conversation` and a final "done" event carries the answer.

        Raises:
            EmptyQuestionError, OracleError, StepBudgetExceeded,
            DeadlineExceeded: The run failed; see app.errors.
        """
        question = conversation.question()
        timeout = timeout or settings.request_timeout_seconds
        deadline = asyncio.get_running_loop().time() + timeout

        logger.info(
            "Starting run: question='%s', timeout=%.0fs, max_steps=%d",
            question[:80], timeout, self.max_steps,
        )

        initial_state: RunState = {
            "question": question,
            "history": list(conversation.messages),
            "catalog": self.catalog,
            "selector_llm": self.selector_llm,
            "answer_llm": self.answer_llm,
            "fetcher": self.fetcher,
            "cache": self.cache,
            "deadline": deadline,
            "max_steps": self.max_steps,
        }
        # select + one generate/tools pair per round
        config = {"recursion_limit": 2 * self.max_steps + 2}

        final: dict = {}
        async for mode, chunk in graph.astream(
            initial_state, config, stream_mode=["custom", "values"],
        ):
            if mode == "custom":
                yield chunk
            else:
                final = chunk

        new_messages = final.get("new_messages", [])
        conversation.extend(new_messages)
        selection: Selection = final["selection"]

        logger.info(
            "Run complete: rounds=%d, tabs=%s, answer_chars=%d",
            final.get("steps", 0), selection.names, len(final.get("answer", "")),
        )

        yield RunEvent("done", {
            "answer": final.get("answer", ""),
            "steps": final.get("steps", 0),
            "sources": selection.names,
        })

    async def run(
        self,
        conversation: Conversation,
        timeout: float | None = None,
    ) -> str:
        """Consume the stream and return only the final answer text."""
        answer = ""
        async for event in self.stream(conversation, timeout=timeout):
            if event.type == "done":
                answer = event.data["answer"]
        return answer


def get_orchestrator() -> AnswerOrchestrator:
    """Orchestrator wired to the configured catalog, models, and spreadsheet."""
    return AnswerOrchestrator(
        catalog=get_catalog(),
        selector_llm=get_selector_llm(),
        answer_llm=get_answer_llm(),
        fetcher=get_source_fetcher(),
        cache=get_source_cache(),
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _within(deadline: float | None):
    """Bound the enclosed awaits by the run deadline."""
    try:
        async with asyncio.timeout_at(deadline):
            yield
    except TimeoutError as e:
        raise DeadlineExceeded("Run deadline exceeded") from e


async def _iterate_within(
    events: AsyncIterator[Any],
    deadline: float | None,
) -> AsyncIterator[Any]:
    """Iterate a provider stream, bounding each step by the run deadline."""
    iterator = aiter(events)
    try:
        while True:
            try:
                async with asyncio.timeout_at(deadline):
                    event = await anext(iterator)
            except StopAsyncIteration:
                return
            except TimeoutError as e:
                raise DeadlineExceeded("Run deadline exceeded") from e
            yield event
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
