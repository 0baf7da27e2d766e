# count_hub/routers/catalog.py
from __future__ import annotations
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from count_hub.database import STORAGE_FAULTS
from count_hub.deps import get_catalog_store
from count_hub.models import CatalogEntry, TextImportIn
from count_hub.services.catalog import CatalogStore, load_catalog
from count_hub.services.importers import parse_catalog_text

router = APIRouter(prefix="/catalog", tags=["Catalog"])


async def _replace(store: CatalogStore, entries: List[CatalogEntry]) -> Dict[str, Any]:
    try:
        await store.replace(entries)
    except STORAGE_FAULTS:
        raise HTTPException(503, detail="Catalog storage unavailable")
    return {"count": len(entries)}


@router.get("", response_model=List[CatalogEntry])
async def list_catalog(store: CatalogStore = Depends(get_catalog_store)):
    catalog = await load_catalog(store)
    return list(catalog)


@router.put("")
async def replace_catalog(
    entries: List[CatalogEntry],
    store: CatalogStore = Depends(get_catalog_store),
) -> Dict[str, Any]:
    """Replace the whole catalog."""
    return await _replace(store, entries)


@router.post("/import")
async def import_catalog(
    request: TextImportIn,
    store: CatalogStore = Depends(get_catalog_store),
) -> Dict[str, Any]:
    """Replace the catalog from delimited text (barcode, system code, name)."""
    entries = parse_catalog_text(request.content)
    if not entries:
        raise HTTPException(400, detail="No valid catalog rows found")
    return await _replace(store, entries)


@router.get("/{barcode}", response_model=CatalogEntry)
async def lookup_barcode(barcode: str, store: CatalogStore = Depends(get_catalog_store)):
    """Product behind a scanned barcode (collector screen)."""
    entry = (await load_catalog(store)).by_barcode(barcode)
    if entry is None:
        raise HTTPException(404, detail=f"Unknown barcode: {barcode}")
    return entry
