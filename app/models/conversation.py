# =============================================================================
# Conversation State - Provider-Neutral Chat Turns
# =============================================================================
#
# The chat history is owned by the caller (the HTTP layer or a script).
# The orchestrator reads the user turns to build the question and, when a
# run finishes, appends the assistant/tool turns it produced.
#
# DESIGN DECISION: Plain dataclasses, not Pydantic.
# These objects never cross the API boundary directly; requests.py converts
# the wire format into them. Each LLM provider translates them into its own
# message shape (OpenAI "tool" role vs Anthropic "tool_result" blocks).
#
# Turn shapes:
#   user       → [TextPart]
#   assistant  → [TextPart?, ToolCallPart*]
#   tool       → [ToolResultPart+]
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant", "tool"]


@dataclass
class TextPart:
    text: str


@dataclass
class ToolCallPart:
    call_id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolResultPart:
    call_id: str
    name: str
    result: dict[str, Any]


Part = TextPart | ToolCallPart | ToolResultPart


@dataclass
class Message:
    """One role-tagged turn made of typed parts."""

    role: Role
    parts: list[Part] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", parts=[TextPart(text)])

    @classmethod
    def assistant(cls, text: str) -> Message:
        return cls(role="assistant", parts=[TextPart(text)])


@dataclass
class Conversation:
    """Ordered chat history for one chat session."""

    messages: list[Message] = field(default_factory=list)

    def question(self) -> str:
        """
        The text the selector classifies: every user turn, joined by
        newlines, so follow-ups keep the context of earlier questions.
        """
        return "\n".join(m.text for m in self.messages if m.role == "user")

    def extend(self, messages: list[Message]) -> None:
        self.messages.extend(messages)
