import asyncio
import os

# before count_hub.settings is imported
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest

from count_hub.database import create_tables, make_engine, make_session_factory
from count_hub.models import CatalogEntry, InvoiceItem, ScanEvent
from count_hub.services.catalog import Catalog


def run(coro):
    return asyncio.run(coro)


def item(barcode=None, system_code=None, qty=0, factor=1.0, name=None):
    return InvoiceItem(
        barcode=barcode,
        system_code=system_code,
        name=name or f"item {barcode or system_code}",
        invoice_quantity=qty,
        conversion_factor=factor,
    )


def scan(barcode, qty, invoice="001", user="u1", ts=0, event_id=None):
    return ScanEvent(
        id=event_id or f"{invoice}-{barcode}-{ts}-{qty}",
        invoice_number=invoice,
        user_id=user,
        barcode=barcode,
        quantity=qty,
        timestamp=ts,
    )


@pytest.fixture
def catalog():
    return Catalog([
        CatalogEntry(barcode="7890001", system_code="SC-1", name="Coffee 500g"),
        CatalogEntry(barcode="7890002", system_code="SC-1", name="Coffee 500g (box)"),
        CatalogEntry(barcode="7890003", system_code="SC-2", name="Sugar 1kg"),
        CatalogEntry(barcode="5550001", system_code="-", name="Loose item"),
    ])


async def _sql_factory(url):
    engine = make_engine(url)
    await create_tables(engine)
    return engine, make_session_factory(engine)


@pytest.fixture
def sql_factory():
    """Returns an async callable building (engine, session factory) on in-memory SQLite."""
    return lambda: _sql_factory("sqlite+aiosqlite://")


@pytest.fixture
def sql_file_factory(tmp_path):
    url = f"sqlite+aiosqlite:///{(tmp_path / 'count.db').as_posix()}"
    return lambda: _sql_factory(url)
