# =============================================================================
# API Response Models - Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the non-streaming
# endpoints. The streaming /chat endpoint emits Server-Sent Events whose
# payloads are RunEvent data dicts (see app/agents/orchestrator.py).
# =============================================================================

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health - confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
    catalog_sources: int = Field(description="Number of tabs in the loaded catalog")


class CatalogEntry(BaseModel):
    """One tab of the source catalog."""

    name: str = Field(description="Exact, case-sensitive tab name")
    summary: str = Field(description="Generated description of the tab's contents")


class CatalogResponse(BaseModel):
    """Response for GET /catalog - the tabs the selector can choose from."""

    sources: list[CatalogEntry]
    total: int
