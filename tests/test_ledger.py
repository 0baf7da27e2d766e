"""Tests for the scan ledger and its stores."""

import asyncio
import itertools
import logging

import pytest
from sqlalchemy.exc import OperationalError

from conftest import run
from count_hub.errors import ScanRejected
from count_hub.services.ledger import LedgerStore, MemoryLedgerStore, ScanLedger, SqlLedgerStore


def _ledger(store=None):
    ticks = itertools.count(1000)
    ids = (f"ev{i}" for i in itertools.count(1))
    return ScanLedger(store or MemoryLedgerStore(), clock=lambda: next(ticks), id_factory=lambda: next(ids))


class BrokenStore(LedgerStore):
    name = "broken"

    async def append_event(self, event):
        raise OSError("disk gone")

    async def read_events(self, invoice_number):
        raise OperationalError("SELECT", {}, Exception("db down"))

    async def read_all(self):
        raise OperationalError("SELECT", {}, Exception("db down"))

    async def delete_invoice(self, invoice_number):
        raise OSError("disk gone")


def test_append_creates_event():
    ledger = _ledger()

    async def scenario():
        ev = await ledger.append("001", "u1", " 123 ", 2)
        return ev, await ledger.events_for("001")

    ev, events = run(scenario())
    assert ev.id == "ev1"
    assert ev.barcode == "123"
    assert ev.quantity == 2.0
    assert ev.timestamp == 1000
    assert events == [ev]


@pytest.mark.parametrize("barcode, qty", [
    ("", 5),
    ("   ", 5),
    (None, 5),
    ("123", 0),
    ("123", -1),
    ("123", float("nan")),
    ("123", float("inf")),
    ("123", "abc"),
])
def test_rejected_appends_leave_ledger_unchanged(barcode, qty):
    ledger = _ledger()

    async def scenario():
        await ledger.append("001", "u1", "keep", 1)
        with pytest.raises(ScanRejected):
            await ledger.append("001", "u1", barcode, qty)
        return await ledger.events_for("001")

    events = run(scenario())
    assert [ev.barcode for ev in events] == ["keep"]


def test_events_are_scoped_and_ordered():
    ledger = _ledger()

    async def scenario():
        await ledger.append("001", "u1", "a", 1)
        await ledger.append("002", "u2", "b", 1)
        await ledger.append("001", "u2", "c", 1)
        return await ledger.events_for("001"), await ledger.events_for("002"), await ledger.all_events()

    first, second, everything = run(scenario())
    assert [ev.barcode for ev in first] == ["a", "c"]
    assert [ev.barcode for ev in second] == ["b"]
    assert [ev.barcode for ev in everything] == ["a", "b", "c"]


def test_clear_removes_only_that_invoice():
    ledger = _ledger()

    async def scenario():
        await ledger.append("001", "u1", "a", 1)
        await ledger.append("001", "u1", "b", 1)
        await ledger.append("002", "u1", "c", 1)
        removed = await ledger.clear("001")
        return removed, await ledger.events_for("001"), await ledger.events_for("002")

    removed, first, second = run(scenario())
    assert removed == 2
    assert first == []
    assert [ev.barcode for ev in second] == ["c"]


def test_concurrent_appends_are_not_lost():
    ledger = ScanLedger(MemoryLedgerStore())

    async def scenario():
        await asyncio.gather(*(ledger.append("001", f"u{i % 3}", "123", 1) for i in range(100)))
        return await ledger.events_for("001")

    events = run(scenario())
    assert len(events) == 100
    assert len({ev.id for ev in events}) == 100


def test_storage_faults_are_contained(caplog):
    ledger = _ledger(BrokenStore())

    async def scenario():
        return (
            await ledger.append("001", "u1", "123", 1),
            await ledger.events_for("001"),
            await ledger.all_events(),
            await ledger.clear("001"),
        )

    with caplog.at_level(logging.ERROR, logger="count_hub.services.ledger"):
        appended, events, everything, cleared = run(scenario())

    assert appended is None
    assert events == []
    assert everything == []
    assert cleared is None
    assert len([r for r in caplog.records if r.levelno == logging.ERROR]) == 4


def test_rejection_is_checked_before_storage():
    ledger = _ledger(BrokenStore())
    with pytest.raises(ScanRejected):
        run(ledger.append("001", "u1", "", 1))


# ============================================================================
# SQL store
# ============================================================================

def test_sql_store_roundtrip(sql_factory):
    async def scenario():
        engine, factory = await sql_factory()
        try:
            ledger = _ledger(SqlLedgerStore(factory))
            await ledger.append("001", "u1", "a", 2)
            await ledger.append("002", "u1", "b", 1)
            await ledger.append("001", "u2", "c", 0.5)
            first = await ledger.events_for("001")
            everything = await ledger.all_events()
            removed = await ledger.clear("001")
            after = await ledger.events_for("001")
            return first, everything, removed, after
        finally:
            await engine.dispose()

    first, everything, removed, after = run(scenario())
    assert [(ev.barcode, ev.quantity, ev.user_id) for ev in first] == [("a", 2.0, "u1"), ("c", 0.5, "u2")]
    assert [ev.id for ev in everything] == ["ev1", "ev2", "ev3"]
    assert removed == 2
    assert after == []


def test_sql_store_concurrent_appends(sql_file_factory):
    async def scenario():
        engine, factory = await sql_file_factory()
        try:
            ledger = ScanLedger(SqlLedgerStore(factory))
            results = await asyncio.gather(*(ledger.append("001", "u1", "123", 1) for _ in range(10)))
            return results, await ledger.events_for("001")
        finally:
            await engine.dispose()

    results, events = run(scenario())
    assert all(r is not None for r in results)
    assert len(events) == 10


def test_sql_store_keeps_small_and_fractional_quantities(sql_factory):
    async def scenario():
        engine, factory = await sql_factory()
        try:
            ledger = _ledger(SqlLedgerStore(factory))
            small = await ledger.append("001", "u1", "a", 0.00001)
            third = await ledger.append("001", "u1", "b", 1 / 3)
            return small, third, await ledger.events_for("001")
        finally:
            await engine.dispose()

    small, third, events = run(scenario())
    assert small is not None and third is not None
    assert [ev.quantity for ev in events] == [0.00001, 1 / 3]
