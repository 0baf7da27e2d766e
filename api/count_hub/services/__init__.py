# count_hub/services/__init__.py
"""
Business logic services for Count Hub.
"""
from count_hub.services.catalog import Catalog, load_catalog
from count_hub.services.identifiers import Resolution, normalize_code, resolve
from count_hub.services.invoices import InvoiceItemService, can_edit
from count_hub.services.ledger import ScanLedger
from count_hub.services.reconciliation import compute_report
from count_hub.services.sessions import summarize

__all__ = [
    "Catalog",
    "InvoiceItemService",
    "Resolution",
    "ScanLedger",
    "can_edit",
    "compute_report",
    "load_catalog",
    "normalize_code",
    "resolve",
    "summarize",
]
