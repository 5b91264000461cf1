# =============================================================================
# Multi-Provider LLM Abstraction - Pluggable AI Backend
# =============================================================================
#
# Provides a common interface for the three ways the pipeline talks to a
# model, with implementations for OpenAI-compatible APIs and Anthropic:
#
#   classify()            - one-shot structured output (tab selection)
#   generate_with_tools() - ONE streamed generation round that may emit
#                           text deltas and/or tool calls
#   complete()            - plain completion (catalog generation script)
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Any class with the right methods works. Tests use small stub classes
# that replay scripted rounds instead of mocking SDK internals.
#
# DESIGN DECISION: One round per generate_with_tools() call.
# The provider does not loop over tool calls itself. The orchestrator owns
# the loop so it can enforce the step budget, decide when tool use is
# required, and execute tools against the run's approved tab set.
#
# DESIGN DECISION: Native SDKs over LangChain wrappers.
# Direct control over streaming, tool_choice, and token-limit parameters.
#
# ERRORS: SDK exceptions and unparseable structured output are raised as
# OracleError with the original exception chained.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── OpenAICompatibleProvider - OpenAI, DeepSeek, Qwen, etc.
#   ├── AnthropicProvider        - Claude via native Anthropic SDK
#   ├── get_llm_provider(model)  - per-model lazy singletons
#   ├── get_selector_llm()       - provider for settings.selector_model
#   └── get_answer_llm()         - provider for settings.answer_model
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from app.config import settings
from app.errors import ConfigurationError, OracleError
from app.models.conversation import Message

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """Standardised response from complete()."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


@dataclass
class ToolSpec:
    """A callable capability offered to the model (JSON-schema parameters)."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class TextDelta:
    """A chunk of answer text, emitted as soon as the provider streams it."""

    text: str


@dataclass
class ToolCall:
    """A complete tool invocation requested by the model in this round."""

    id: str
    name: str
    arguments: dict[str, Any]


GenerationEvent = TextDelta | ToolCall


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Interface every model backend implements."""

    async def classify(
        self,
        system: str,
        user_text: str,
        schema: type[SchemaT],
    ) -> SchemaT:
        """
        Return the model's answer validated against `schema`.

        Raises:
            OracleError: API failure or output that does not match the schema.
        """
        ...

    def generate_with_tools(
        self,
        system: str,
        messages: list[Message],
        tools: list[ToolSpec],
        require_tool: bool = False,
    ) -> AsyncIterator[GenerationEvent]:
        """
        Run one generation round.

        Yields TextDelta events while text streams in, then one ToolCall per
        tool invocation the model requested. When `require_tool` is true the
        provider is asked to force a tool call.
        """
        ...

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Plain text completion."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Provider for OpenAI and any API that follows the OpenAI Chat Completions API.

    Switching providers is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_API_KEY=your-key
        ANSWER_MODEL=deepseek-chat

    KEY API DIFFERENCE: official OpenAI reasoning models reject
    `max_tokens` and need `max_completion_tokens`; most compatible APIs
    only know `max_tokens`. The base URL decides which one is sent.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ConfigurationError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.answer_model
        self._base_url = resolved_base_url
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def classify(
        self,
        system: str,
        user_text: str,
        schema: type[SchemaT],
    ) -> SchemaT:
        """Structured output via JSON mode, validated with Pydantic."""
        import openai

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user_text},
                ],
                response_format={"type": "json_object"},
                **self._sampling_kwargs(),
            )
        except openai.OpenAIError as e:
            raise OracleError(f"Classification call failed: {e}") from e

        content = response.choices[0].message.content or ""
        return parse_structured(content, schema)

    async def generate_with_tools(
        self,
        system: str,
        messages: list[Message],
        tools: list[ToolSpec],
        require_tool: bool = False,
    ) -> AsyncIterator[GenerationEvent]:
        """Stream one round; tool-call fragments are assembled by index."""
        import openai

        kwargs: dict = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                *to_openai_messages(messages),
            ],
            "stream": True,
            **self._sampling_kwargs(),
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]
            kwargs["tool_choice"] = "required" if require_tool else "auto"

        # index → {"id", "name", "arguments"} accumulated across chunks
        pending: dict[int, dict[str, str]] = {}
        try:
            stream = await self._client.chat.completions.create(**kwargs)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    yield TextDelta(delta.content)
                for fragment in delta.tool_calls or []:
                    slot = pending.setdefault(
                        fragment.index, {"id": "", "name": "", "arguments": ""},
                    )
                    if fragment.id:
                        slot["id"] = fragment.id
                    if fragment.function is not None:
                        if fragment.function.name:
                            slot["name"] = fragment.function.name
                        if fragment.function.arguments:
                            slot["arguments"] += fragment.function.arguments
        except openai.OpenAIError as e:
            raise OracleError(f"Generation call failed: {e}") from e

        for index in sorted(pending):
            slot = pending[index]
            yield ToolCall(
                id=slot["id"] or f"call_{index}",
                name=slot["name"],
                arguments=parse_tool_arguments(slot["arguments"]),
            )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        import openai

        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=all_messages,
                **self._sampling_kwargs(temperature, max_tokens),
            )
        except openai.OpenAIError as e:
            raise OracleError(f"Completion call failed: {e}") from e

        content = response.choices[0].message.content or ""
        usage = response.usage
        return LLMResponse(
            content=content,
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    def _sampling_kwargs(
        self,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        kwargs: dict = {}
        limit = max_tokens or self._max_tokens
        if self._base_url:
            kwargs["max_tokens"] = limit
        else:
            kwargs["max_completion_tokens"] = limit
        resolved_temperature = (
            temperature if temperature is not None else self._temperature
        )
        if resolved_temperature is not None:
            kwargs["temperature"] = resolved_temperature
        return kwargs


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCES:
    - System prompt is a top-level `system=` kwarg, not a message.
    - Tool results go back as `tool_result` blocks inside a user turn.
    - Forced tool use is tool_choice={"type": "any"}.
    - No JSON mode: classify() parses the text reply, tolerating code fences.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ConfigurationError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.answer_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def classify(
        self,
        system: str,
        user_text: str,
        schema: type[SchemaT],
    ) -> SchemaT:
        import anthropic

        try:
            response = await self._client.messages.create(
                model=self._model,
                system=system,
                messages=[{"role": "user", "content": user_text}],
                **self._sampling_kwargs(),
            )
        except anthropic.APIError as e:
            raise OracleError(f"Classification call failed: {e}") from e

        return parse_structured(_first_text(response.content), schema)

    async def generate_with_tools(
        self,
        system: str,
        messages: list[Message],
        tools: list[ToolSpec],
        require_tool: bool = False,
    ) -> AsyncIterator[GenerationEvent]:
        import anthropic

        kwargs: dict = {
            "model": self._model,
            "system": system,
            "messages": to_anthropic_messages(messages),
            **self._sampling_kwargs(),
        }
        if tools:
            kwargs["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.parameters,
                }
                for t in tools
            ]
            kwargs["tool_choice"] = {"type": "any" if require_tool else "auto"}

        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    yield TextDelta(text)
                final = await stream.get_final_message()
        except anthropic.APIError as e:
            raise OracleError(f"Generation call failed: {e}") from e

        for block in final.content:
            if block.type == "tool_use":
                yield ToolCall(
                    id=block.id, name=block.name, arguments=dict(block.input),
                )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        import anthropic

        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            **self._sampling_kwargs(temperature, max_tokens),
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise OracleError(f"Completion call failed: {e}") from e

        return LLMResponse(
            content=_first_text(response.content),
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    def _sampling_kwargs(
        self,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        kwargs: dict = {"max_tokens": max_tokens or self._max_tokens}
        resolved_temperature = (
            temperature if temperature is not None else self._temperature
        )
        if resolved_temperature is not None:
            kwargs["temperature"] = resolved_temperature
        return kwargs


# ---------------------------------------------------------------------------
# Message Translation
# ---------------------------------------------------------------------------


def to_openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Translate conversation turns to Chat Completions messages."""
    result: list[dict[str, Any]] = []
    for message in messages:
        if message.role == "tool":
            for part in message.tool_results:
                result.append({
                    "role": "tool",
                    "tool_call_id": part.call_id,
                    "content": json.dumps(part.result),
                })
        elif message.role == "assistant":
            entry: dict[str, Any] = {
                "role": "assistant",
                "content": message.text or None,
            }
            if message.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": call.call_id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in message.tool_calls
                ]
            elif entry["content"] is None:
                entry["content"] = ""
            result.append(entry)
        else:
            result.append({"role": "user", "content": message.text})
    return result


def to_anthropic_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """
    Translate conversation turns to Anthropic messages.

    Tool results become user turns, and consecutive turns with the same
    role are merged because the Messages API requires alternation.
    """
    result: list[dict[str, Any]] = []
    for message in messages:
        blocks: list[dict[str, Any]] = []
        if message.role == "tool":
            role = "user"
            for part in message.tool_results:
                blocks.append({
                    "type": "tool_result",
                    "tool_use_id": part.call_id,
                    "content": json.dumps(part.result),
                })
        else:
            role = message.role
            if message.text:
                blocks.append({"type": "text", "text": message.text})
            for call in message.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.call_id,
                    "name": call.name,
                    "input": call.arguments,
                })
        if not blocks:
            continue
        if result and result[-1]["role"] == role:
            result[-1]["content"].extend(blocks)
        else:
            result.append({"role": role, "content": blocks})
    return result


# ---------------------------------------------------------------------------
# Output Parsing
# ---------------------------------------------------------------------------

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_structured(content: str, schema: type[SchemaT]) -> SchemaT:
    """
    Validate a JSON reply against a Pydantic schema.

    Models sometimes wrap JSON in ```json fences even when told not to;
    those are stripped first.
    """
    cleaned = _CODE_FENCE.sub("", content.strip())
    try:
        return schema.model_validate_json(cleaned)
    except ValidationError as e:
        raise OracleError(
            f"Model output does not match {schema.__name__}: {e}"
        ) from e


def parse_tool_arguments(raw: str) -> dict[str, Any]:
    """Decode streamed tool arguments; malformed JSON yields {}."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed tool arguments: %s", raw[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _first_text(blocks: list[Any]) -> str:
    for block in blocks:
        if block.type == "text":
            return block.text
    return ""


# ---------------------------------------------------------------------------
# Factory Functions
# ---------------------------------------------------------------------------

# Lazy per-model singletons - the SDK clients pool their own connections
_providers: dict[str, AnthropicProvider | OpenAICompatibleProvider] = {}


def get_llm_provider(
    model: str | None = None,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Return the configured provider for `model` (default: answer model).

    Reads `llm_provider` from settings:
    - "openai_compatible" → OpenAICompatibleProvider
    - "anthropic" → AnthropicProvider

    Raises:
        ConfigurationError: No API key is configured for the provider.
    """
    resolved_model = model or settings.answer_model
    provider = _providers.get(resolved_model)
    if provider is None:
        if settings.llm_provider == "anthropic":
            provider = AnthropicProvider(model=resolved_model)
        else:
            provider = OpenAICompatibleProvider(model=resolved_model)
        _providers[resolved_model] = provider
    return provider


def get_selector_llm() -> AnthropicProvider | OpenAICompatibleProvider:
    return get_llm_provider(settings.selector_model)


def get_answer_llm() -> AnthropicProvider | OpenAICompatibleProvider:
    return get_llm_provider(settings.answer_model)
