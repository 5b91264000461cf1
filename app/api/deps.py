# =============================================================================
# API Dependencies - FastAPI Dependency Injection
# =============================================================================
#
# DESIGN DECISION: Orchestrator and catalog arrive via Depends().
# - Route handlers stay thin and never build providers themselves
# - Tests swap in stubbed orchestrators via app.dependency_overrides
# - Configuration problems (missing API key, missing catalog) surface as a
#   503 with a readable message instead of an unhandled 500
#
# DESIGN DECISION: /chat receives a factory, not the orchestrator.
# FastAPI resolves dependencies before it reports body validation errors.
# Building the orchestrator eagerly would turn a malformed request into a
# 503 on a misconfigured server. The handler calls the factory only after
# ChatRequest has parsed, so a bad body is always a 422.
# =============================================================================

from __future__ import annotations

import logging
from typing import Callable

from fastapi import HTTPException

from app.agents.orchestrator import AnswerOrchestrator, get_orchestrator
from app.errors import ConfigurationError
from app.services.catalog import SourceCatalog, get_catalog

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[], AnswerOrchestrator]


def get_chat_orchestrator() -> AnswerOrchestrator:
    """Build the orchestrator for one request, mapping config errors to 503."""
    try:
        return get_orchestrator()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e


def get_orchestrator_factory() -> OrchestratorFactory:
    return get_chat_orchestrator


def get_source_catalog() -> SourceCatalog:
    try:
        return get_catalog()
    except ConfigurationError as e:
        logger.error("Catalog unavailable: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
