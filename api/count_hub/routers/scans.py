# count_hub/routers/scans.py
"""
Scan ledger endpoints, reconciliation report and session views.

Reports and session lists are recomputed from the stored events on every
request.
"""
from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import Response

from count_hub.deps import Backend, get_backend, get_ledger
from count_hub.errors import ScanRejected
from count_hub.models import ReconciliationReport, ScanEvent, ScanIn, SessionCloseOut, SessionSummary
from count_hub.services.catalog import load_catalog
from count_hub.services.export import report_to_csv
from count_hub.services.invoices import can_edit
from count_hub.services.ledger import ScanLedger
from count_hub.services.reconciliation import compute_report
from count_hub.services.sessions import summarize
from count_hub.settings import settings

router = APIRouter(tags=["Scans"])


async def _report(backend: Backend, invoice_number: str) -> ReconciliationReport:
    items = await backend.items.items(invoice_number)
    events = await backend.ledger.events_for(invoice_number)
    catalog = await load_catalog(backend.catalog)
    return compute_report(items, events, catalog)


# ============================================================================
# Ledger
# ============================================================================

@router.post("/invoices/{invoice_number}/scans", response_model=ScanEvent, status_code=201)
async def append_scan(
    invoice_number: str,
    request: ScanIn,
    ledger: ScanLedger = Depends(get_ledger),
):
    try:
        event = await ledger.append(invoice_number, request.user_id, request.barcode, request.quantity)
    except ScanRejected as e:
        raise HTTPException(422, detail=e.reason)
    if event is None:
        raise HTTPException(503, detail="Scan storage unavailable, scan not recorded")
    return event


@router.get("/invoices/{invoice_number}/scans", response_model=List[ScanEvent])
async def list_scans(invoice_number: str, ledger: ScanLedger = Depends(get_ledger)):
    return await ledger.events_for(invoice_number)


@router.delete("/invoices/{invoice_number}/session", response_model=SessionCloseOut)
async def close_session(
    invoice_number: str,
    drop_items: bool = Query(False),
    x_user_role: Optional[str] = Header(None),
    backend: Backend = Depends(get_backend),
):
    """Close the counting session: drop all scans (and optionally the items). Irreversible."""
    if not can_edit(x_user_role):
        raise HTTPException(403, detail=f"role {x_user_role!r} may not close sessions")
    removed = await backend.ledger.clear(invoice_number)
    if removed is None:
        raise HTTPException(503, detail="Scan storage unavailable, session not closed")
    items_removed = False
    if drop_items:
        dropped = await backend.items.remove(invoice_number)
        if dropped is None:
            raise HTTPException(503, detail="Invoice storage unavailable, scans cleared but items not removed")
        items_removed = dropped
    return SessionCloseOut(invoice_number=invoice_number, events_removed=removed, items_removed=items_removed)


# ============================================================================
# Derived views
# ============================================================================

@router.get("/invoices/{invoice_number}/report", response_model=ReconciliationReport)
async def get_report(invoice_number: str, backend: Backend = Depends(get_backend)):
    return await _report(backend, invoice_number)


@router.get("/invoices/{invoice_number}/report.csv")
async def export_report(invoice_number: str, backend: Backend = Depends(get_backend)):
    report = await _report(backend, invoice_number)
    body = report_to_csv(report, delimiter=settings.EXPORT_DELIMITER)
    filename = f"validation_{invoice_number}_{datetime.now().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/sessions", response_model=List[SessionSummary])
async def list_sessions(ledger: ScanLedger = Depends(get_ledger)):
    """Invoices with scan activity, most recent first."""
    return summarize(await ledger.all_events())
