# =============================================================================
# API Request Models - Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for request validation (automatic 422 errors) and
# OpenAPI documentation (visible at /docs).
#
# DESIGN DECISION: Accept the chat-UI message shape as-is.
# Chat frontends send `content` either as a plain string or as a list of
# typed segments ({"type": "text", "text": ...}). Both are accepted and
# flattened to text; non-text segments (images, files) are ignored because
# the pipeline only answers from spreadsheet data.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.models.conversation import Conversation, Message


class ContentSegment(BaseModel):
    """One segment of a multi-part message body."""

    type: str = "text"
    text: str = ""

    model_config = ConfigDict(extra="ignore")


class ChatMessage(BaseModel):
    """A single chat turn as sent by the client."""

    role: Literal["user", "assistant", "system"]
    content: str | list[ContentSegment | str] = ""

    model_config = ConfigDict(extra="ignore")

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "\n".join(
            seg if isinstance(seg, str) else seg.text
            for seg in self.content
            if isinstance(seg, str) or seg.type == "text"
        )


class ChatRequest(BaseModel):
    """
    Request body for POST /chat.

    Example:
        {
            "messages": [
                {"role": "user", "content": "What is Q1 revenue?"}
            ]
        }
    """

    messages: list[ChatMessage] = Field(
        ...,
        min_length=1,
        description="Chat history, oldest first. Must include at least one user turn.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"messages": [{"role": "user", "content": "What is Q1 revenue?"}]},
            ]
        }
    )

    def to_conversation(self) -> Conversation:
        """
        Convert to internal conversation state.

        System turns are dropped (the orchestrator owns the system prompt)
        and empty assistant turns are skipped.
        """
        messages: list[Message] = []
        for m in self.messages:
            text = m.text()
            if m.role == "user":
                messages.append(Message.user(text))
            elif m.role == "assistant" and text:
                messages.append(Message.assistant(text))
        return Conversation(messages=messages)
