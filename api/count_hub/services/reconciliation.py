# count_hub/services/reconciliation.py
"""
Reconciliation of an invoice against its scan ledger.

Pure functions: the caller passes a snapshot (items, events, catalog) and
gets a fresh report back. Nothing is cached between calls.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Sequence

from count_hub.models import (
    ExtraItem, InvoiceItem, ReconciliationReport, ReconciliationRow,
    RowStatus, ScanEvent, NO_CODE, UNKNOWN_NAME,
)
from count_hub.services.catalog import Catalog
from count_hub.services.identifiers import normalize_code, resolve

# float noise below this is ignored when classifying a difference
_PRECISION = 6


def status_for(difference: float) -> RowStatus:
    if difference < 0:
        return RowStatus.MISSING
    if difference > 0:
        return RowStatus.SURPLUS
    return RowStatus.MATCH


def scan_totals(events: Iterable[ScanEvent]) -> Dict[str, float]:
    """Sum scanned quantity per barcode, keyed in first-scan order."""
    totals: Dict[str, float] = {}
    for ev in events:
        code = (ev.barcode or "").strip()
        totals[code] = totals.get(code, 0.0) + ev.quantity
    return totals


def build_row(item: InvoiceItem, counted: float) -> ReconciliationRow:
    converted = round(item.invoice_quantity * item.conversion_factor, _PRECISION)
    difference = round(counted - converted, _PRECISION) + 0.0  # no -0.0
    return ReconciliationRow(
        system_code=normalize_code(item.system_code),
        barcode=normalize_code(item.barcode),
        name=item.name,
        invoice_quantity=item.invoice_quantity,
        conversion_factor=item.conversion_factor,
        converted_quantity=converted,
        counted_quantity=counted,
        difference=difference,
        status=status_for(difference),
    )


def _extra_for(barcode: str, counted: float, catalog: Catalog) -> ExtraItem:
    entry = catalog.by_barcode(barcode)
    if entry is None:
        return ExtraItem(barcode=barcode, counted_quantity=counted)
    return ExtraItem(
        barcode=barcode,
        system_code=normalize_code(entry.system_code) or NO_CODE,
        name=entry.name or UNKNOWN_NAME,
        counted_quantity=counted,
    )


def compute_report(
    invoice_items: Sequence[InvoiceItem],
    scan_events: Iterable[ScanEvent],
    catalog: Catalog,
) -> ReconciliationReport:
    """
    Reconcile ``invoice_items`` against ``scan_events``.

    Items are resolved in input order against a shared pool of scanned
    totals. Barcodes consumed by an item leave the pool, so every scanned
    unit lands in at most one row; an earlier item sharing a system code
    with a later one takes the units first. Whatever is left in the pool is
    reported as extras.
    """
    pool = scan_totals(scan_events)
    rows: List[ReconciliationRow] = []

    for item in invoice_items:
        resolution = resolve(item, pool, catalog)
        for code in resolution.consumed_barcodes:
            pool.pop(code, None)
        rows.append(build_row(item, resolution.counted_quantity))

    extras = [_extra_for(code, qty, catalog) for code, qty in pool.items()]
    return ReconciliationReport(rows=rows, extras=extras)
