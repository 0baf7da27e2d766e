# count_hub/deps.py
"""
Storage wiring for the API.

Backends are built once at startup (see main.lifespan) and handed to the
routers through FastAPI dependencies; tests swap them with configure().
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from count_hub.database import get_session_factory, init_db
from count_hub.services.catalog import CatalogStore, MemoryCatalogStore, SqlCatalogStore
from count_hub.services.invoices import InvoiceItemService, MemoryInvoiceItemStore, SqlInvoiceItemStore
from count_hub.services.ledger import MemoryLedgerStore, ScanLedger, SqlLedgerStore
from count_hub.settings import settings


@dataclass
class Backend:
    name: str
    ledger: ScanLedger
    items: InvoiceItemService
    catalog: CatalogStore


_backend: Optional[Backend] = None


def memory_backend() -> Backend:
    return Backend(
        name="memory",
        ledger=ScanLedger(MemoryLedgerStore()),
        items=InvoiceItemService(MemoryInvoiceItemStore()),
        catalog=MemoryCatalogStore(),
    )


async def sql_backend(url: Optional[str] = None) -> Backend:
    await init_db(url)
    factory = get_session_factory()
    return Backend(
        name="sql",
        ledger=ScanLedger(SqlLedgerStore(factory)),
        items=InvoiceItemService(SqlInvoiceItemStore(factory)),
        catalog=SqlCatalogStore(factory),
    )


async def build_backend() -> Backend:
    if settings.STORAGE_BACKEND == "memory":
        return memory_backend()
    return await sql_backend()


def configure(backend: Optional[Backend]) -> None:
    global _backend
    _backend = backend


def is_configured() -> bool:
    return _backend is not None


def get_backend() -> Backend:
    if _backend is None:
        raise RuntimeError("Storage backend not configured")
    return _backend


def get_ledger() -> ScanLedger:
    return get_backend().ledger


def get_items() -> InvoiceItemService:
    return get_backend().items


def get_catalog_store() -> CatalogStore:
    return get_backend().catalog
