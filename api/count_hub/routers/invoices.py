# count_hub/routers/invoices.py
"""
Invoice items: import, list, and guarded quantity / factor edits.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from count_hub.deps import get_items
from count_hub.errors import EditRejected, ImportFailed, Rejected
from count_hub.models import InvoiceItem, ItemEditIn, NfeImportIn, NfeImportOut, TextImportIn
from count_hub.services.importers import parse_invoice_text, parse_nfe_xml
from count_hub.services.invoices import InvoiceItemService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


async def _save(service: InvoiceItemService, invoice_number: str, items: List[InvoiceItem]) -> None:
    if not await service.replace(invoice_number, items):
        raise HTTPException(503, detail="Invoice storage unavailable")


@router.get("/{invoice_number}/items", response_model=List[InvoiceItem])
async def list_items(invoice_number: str, service: InvoiceItemService = Depends(get_items)):
    return await service.items(invoice_number)


@router.put("/{invoice_number}/items")
async def replace_items(
    invoice_number: str,
    items: List[InvoiceItem],
    service: InvoiceItemService = Depends(get_items),
) -> Dict[str, Any]:
    await _save(service, invoice_number, items)
    return {"invoice_number": invoice_number, "count": len(items)}


@router.post("/{invoice_number}/items/import-text")
async def import_items_text(
    invoice_number: str,
    request: TextImportIn,
    service: InvoiceItemService = Depends(get_items),
) -> Dict[str, Any]:
    """Import a delimited listing: barcode, system code, name, quantity[, factor]."""
    items = parse_invoice_text(request.content)
    if not items:
        raise HTTPException(400, detail="No valid invoice items found")
    await _save(service, invoice_number, items)
    return {"invoice_number": invoice_number, "count": len(items)}


@router.post("/import-nfe", response_model=NfeImportOut)
async def import_nfe(request: NfeImportIn, service: InvoiceItemService = Depends(get_items)):
    """Import an NF-e XML; the invoice number comes from the document."""
    try:
        invoice_number, items = parse_nfe_xml(request.xml)
    except ImportFailed as e:
        raise HTTPException(400, detail=e.reason)
    if not invoice_number:
        raise HTTPException(400, detail="Invoice number (ide/nNF) not found in XML")
    if not items:
        raise HTTPException(400, detail="No items (det/prod) found in XML")
    await _save(service, invoice_number, items)
    return NfeImportOut(invoice_number=invoice_number, items=items)


async def _edit(edit, invoice_number: str, request: ItemEditIn, role: Optional[str]) -> InvoiceItem:
    if not (request.system_code or request.barcode):
        raise HTTPException(422, detail="system_code or barcode is required")
    try:
        item = await edit(
            invoice_number,
            role,
            request.value,
            system_code=request.system_code,
            barcode=request.barcode,
        )
    except EditRejected as e:
        raise HTTPException(403 if e.forbidden else 422, detail=e.reason)
    except Rejected as e:
        raise HTTPException(422, detail=e.reason)
    if item is None:
        raise HTTPException(503, detail="Invoice storage unavailable")
    return item


@router.patch("/{invoice_number}/items/quantity", response_model=InvoiceItem)
async def edit_quantity(
    invoice_number: str,
    request: ItemEditIn,
    x_user_role: Optional[str] = Header(None),
    service: InvoiceItemService = Depends(get_items),
):
    """Correct the invoice quantity; ``value`` may be an expression like "12*4+3"."""
    return await _edit(service.update_quantity, invoice_number, request, x_user_role)


@router.patch("/{invoice_number}/items/factor", response_model=InvoiceItem)
async def edit_factor(
    invoice_number: str,
    request: ItemEditIn,
    x_user_role: Optional[str] = Header(None),
    service: InvoiceItemService = Depends(get_items),
):
    return await _edit(service.update_factor, invoice_number, request, x_user_role)
