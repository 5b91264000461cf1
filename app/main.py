# =============================================================================
# FastAPI Application - Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn app.main:app --reload
#
# DESIGN DECISION: Catalog loaded in the lifespan hook.
# A missing or malformed tabs_mindmap.json raises CatalogError during
# startup, so the process never comes up in a state where every question
# would fail.
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from app.api import catalog, chat
from app.api.deps import get_source_catalog
from app.config import settings
from app.models.responses import HealthResponse
from app.services.catalog import SourceCatalog, get_catalog

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    source_catalog = get_catalog()
    logger.info(
        "%s v%s starting with %d catalog tabs",
        settings.app_name, settings.app_version, len(source_catalog),
    )
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)
app.include_router(chat.router)
app.include_router(catalog.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    source_catalog: SourceCatalog = Depends(get_source_catalog),
) -> HealthResponse:
    return HealthResponse(
        version=settings.app_version,
        service=settings.app_name,
        catalog_sources=len(source_catalog),
    )
