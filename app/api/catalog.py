# =============================================================================
# Catalog API - Inspect the Tabs the Selector Can Choose From
# =============================================================================
#
# GET /catalog returns every tab name with its generated summary, in the
# order the selector sees them. Useful for checking that the catalog file
# matches the live spreadsheet after tabs are renamed.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_source_catalog
from app.models.responses import CatalogEntry, CatalogResponse
from app.services.catalog import SourceCatalog

router = APIRouter(tags=["Catalog"])


@router.get(
    "/catalog",
    response_model=CatalogResponse,
    summary="List spreadsheet tabs and their summaries",
)
async def list_catalog(
    catalog: SourceCatalog = Depends(get_source_catalog),
) -> CatalogResponse:
    return CatalogResponse(
        sources=[
            CatalogEntry(name=name, summary=summary)
            for name, summary in catalog.items()
        ],
        total=len(catalog),
    )
