"""
Catalog routes.

POST /recommendations/catalog/import   normalize and store vendor listings
GET  /recommendations/catalog          list catalog items
GET  /recommendations/catalog/{id}     one catalog item
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.dependencies import get_catalog
from core.logging import get_logger
from feed.catalog import normalize_vendor_listings
from feed.interfaces import CatalogRepository
from feed.models import CatalogItem


logger = get_logger(__name__)

router = APIRouter(prefix="/recommendations/catalog", tags=["Catalog"])


class ImportListingsRequest(BaseModel):
    source: str = Field(..., min_length=1, description="shopify_csv, custom_api, or any other source name")
    vendor: Optional[str] = Field(None, description="Vendor id; defaults to the source name")
    rows: List[Dict[str, Any]] = Field(..., min_length=1)


class ImportListingsResponse(BaseModel):
    accepted: int
    rejected: int
    item_ids: List[str]


@router.post("/import", response_model=ImportListingsResponse, status_code=201, summary="Import vendor listings")
def import_listings(
    request: ImportListingsRequest,
    catalog: CatalogRepository = Depends(get_catalog),
) -> ImportListingsResponse:
    items = normalize_vendor_listings(request.rows, request.source, request.vendor)
    try:
        stored = [catalog.add(item) for item in items]
    except Exception as e:
        logger.error("Failed to store catalog items", source=request.source, error=str(e))
        raise HTTPException(status_code=503, detail="Catalog store unavailable")

    return ImportListingsResponse(
        accepted=len(stored),
        rejected=len(request.rows) - len(stored),
        item_ids=[item.item_id for item in stored],
    )


@router.get("", response_model=List[CatalogItem], summary="List catalog items")
def list_items(
    limit: int = Query(50, ge=1, le=500),
    catalog: CatalogRepository = Depends(get_catalog),
):
    return catalog.find_all(sort="-created_at", limit=limit)


@router.get("/{item_id}", response_model=CatalogItem, summary="Get a catalog item")
def get_item(
    item_id: str,
    catalog: CatalogRepository = Depends(get_catalog),
):
    item = catalog.find_by_id(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item
