from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.errors import UpstreamAppError
from app.services.catalog import CatalogGenerator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Storefront"])

CATALOG_CACHE_CONTROL = "public, max-age=300"


def get_catalog_generator(request: Request) -> CatalogGenerator:
    return request.app.state.catalog_generator


@router.get("/fortnite/api/storefront/v2/catalog")
async def storefront_catalog(
    generate_catalog: CatalogGenerator = Depends(get_catalog_generator),
) -> JSONResponse:
    """Return the current shop catalog as produced by the catalog collaborator.

    Raises:
        UpstreamAppError: 500 when the collaborator produced no catalog.
    """
    catalog = await generate_catalog()
    if catalog is None:
        logger.error("catalog.generation_empty")
        raise UpstreamAppError(message="Failed to generate shop catalog")

    return JSONResponse(
        status_code=200,
        content=catalog,
        headers={
            "Cache-Control": CATALOG_CACHE_CONTROL,
            "X-Content-Type-Options": "nosniff",
        },
    )
