"""Tests for the catalog index and stores."""

from sqlalchemy.exc import OperationalError

from conftest import run
from count_hub.models import CatalogEntry
from count_hub.services.catalog import (
    Catalog,
    CatalogStore,
    MemoryCatalogStore,
    SqlCatalogStore,
    load_catalog,
)


def test_lookup_by_barcode(catalog):
    assert catalog.by_barcode(" 7890003 ").name == "Sugar 1kg"
    assert catalog.by_barcode("0000") is None
    assert catalog.by_barcode("") is None
    assert catalog.by_barcode(None) is None


def test_barcodes_for_system_code(catalog):
    assert catalog.barcodes_for_system_code("SC-1") == ("7890001", "7890002")
    assert catalog.barcodes_for_system_code("SC-2") == ("7890003",)
    # "-" is no code at all, so the loose item is not grouped under it
    assert catalog.barcodes_for_system_code("-") == ()
    assert catalog.barcodes_for_system_code(None) == ()


def test_first_entry_wins_duplicate_barcode():
    catalog = Catalog([
        CatalogEntry(barcode="1", system_code="A", name="first"),
        CatalogEntry(barcode="1", system_code="B", name="second"),
    ])
    assert catalog.by_barcode("1").name == "first"
    assert catalog.barcodes_for_system_code("B") == ()
    assert len(catalog) == 2


def test_memory_store():
    store = MemoryCatalogStore()
    run(store.replace([CatalogEntry(barcode="1", name="x")]))
    assert [e.barcode for e in run(load_catalog(store))] == ["1"]


def test_sql_store_replace(sql_factory):
    async def scenario():
        engine, factory = await sql_factory()
        try:
            store = SqlCatalogStore(factory)
            await store.replace([
                CatalogEntry(barcode="1", system_code="A", name="one"),
                CatalogEntry(barcode=" 1 ", system_code="A", name="dup"),
                CatalogEntry(barcode="2", system_code="-", name="two"),
            ])
            first = await load_catalog(store)
            await store.replace([CatalogEntry(barcode="3", system_code="C", name="three")])
            second = await load_catalog(store)
            return first, second
        finally:
            await engine.dispose()

    first, second = run(scenario())
    assert [(e.barcode, e.system_code, e.name) for e in first] == [("1", "A", "one"), ("2", None, "two")]
    assert [e.barcode for e in second] == ["3"]


class DownCatalogStore(CatalogStore):
    async def load(self):
        raise OperationalError("SELECT", {}, Exception("db down"))

    async def replace(self, entries):
        raise OSError("disk gone")


def test_unreadable_store_gives_empty_catalog():
    catalog = run(load_catalog(DownCatalogStore()))
    assert len(catalog) == 0


def test_catalog_iterates_in_entry_order(catalog):
    assert [e.barcode for e in catalog] == ["7890001", "7890002", "7890003", "5550001"]
    assert len(catalog) == 4
