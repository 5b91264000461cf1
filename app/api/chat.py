# =============================================================================
# Chat API - Streaming Spreadsheet Q&A Endpoint
# =============================================================================
#
# Provides POST /chat, which runs the orchestrator and streams its events
# as Server-Sent Events:
#
#   event: selection    data: {"sources": [...], "fallback": false}
#   event: tool_call    data: {"id": ..., "name": "read_source", ...}
#   event: tool_result  data: {"id": ..., "status": "fresh", ...}
#   event: text         data: {"delta": "Q1 revenue"}
#   event: done         data: {"answer": ..., "steps": 2, "sources": [...]}
#   event: error        data: {"code": ..., "message": ...}
#
# DESIGN DECISION: Prime the stream before responding.
# The first event (selection) is awaited before the response starts, so
# failures in phase 1 (blank question, classification API down, missing
# key) become proper HTTP status codes. Once bytes are flowing the status
# is already 200; later failures arrive as a final `error` event. Errors
# outside the SheetQAError taxonomy are logged with their traceback and
# reported as code "internal_error" without details.
# =============================================================================

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.agents.orchestrator import RunEvent
from app.api.deps import OrchestratorFactory, get_orchestrator_factory
from app.config import settings
from app.errors import (
    ConfigurationError,
    DeadlineExceeded,
    EmptyQuestionError,
    OracleError,
    SheetQAError,
)
from app.models.requests import ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

_STATUS_CODES: dict[type[SheetQAError], int] = {
    EmptyQuestionError: 400,
    ConfigurationError: 503,
    OracleError: 502,
    DeadlineExceeded: 504,
}


@router.post(
    "/chat",
    summary="Ask a question about the financial model",
    description=(
        "Selects the relevant spreadsheet tabs, reads them, and streams a "
        "grounded answer as Server-Sent Events."
    ),
    response_class=StreamingResponse,
)
async def chat_endpoint(
    request: ChatRequest,
    orchestrator_factory: OrchestratorFactory = Depends(get_orchestrator_factory),
) -> StreamingResponse:
    orchestrator = orchestrator_factory()
    conversation = request.to_conversation()
    logger.info(
        "Chat request: %d messages, question='%s'",
        len(conversation.messages), conversation.question()[:80],
    )

    events = aiter(orchestrator.stream(
        conversation, timeout=settings.request_timeout_seconds,
    ))
    try:
        first = await anext(events)
    except SheetQAError as e:
        status_code = _status_for(e)
        logger.warning("Chat run failed before streaming (%s): %s", e.code, e)
        raise HTTPException(
            status_code=status_code,
            detail={"code": e.code, "message": str(e)},
        ) from e

    async def event_stream():
        yield format_sse(first)
        try:
            async for event in events:
                yield format_sse(event)
        except SheetQAError as e:
            logger.warning("Chat run failed mid-stream (%s): %s", e.code, e)
            yield format_sse(RunEvent("error", {"code": e.code, "message": str(e)}))
        except Exception:
            logger.exception("Unexpected error while streaming chat run")
            yield format_sse(RunEvent(
                "error", {"code": "internal_error", "message": "Internal error"},
            ))
        finally:
            await events.aclose()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def format_sse(event: RunEvent) -> str:
    return f"event: {event.type}\ndata: {json.dumps(event.data)}\n\n"


def _status_for(error: SheetQAError) -> int:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500
