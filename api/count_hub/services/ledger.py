# count_hub/services/ledger.py
"""
Scan Ledger - append-only, per-invoice sequence of scan events.

The ledger validates input and contains storage faults; persistence is
delegated to a LedgerStore:
- MemoryLedgerStore: in-process, appends serialized by an asyncio.Lock
- SqlLedgerStore: one INSERT per event, clear is a single DELETE in a
  transaction, so concurrent writers never overwrite each other
"""
from __future__ import annotations
import abc
import asyncio
import logging
import math
import time
import uuid
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from count_hub.database import STORAGE_FAULTS, transaction
from count_hub.db_models import ScanEventRow
from count_hub.errors import ScanRejected
from count_hub.models import ScanEvent

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex


# ============================================================================
# Stores
# ============================================================================

class LedgerStore(abc.ABC):
    """Storage collaborator. append and delete_invoice must be atomic."""

    name = "abstract"

    @abc.abstractmethod
    async def append_event(self, event: ScanEvent) -> None: ...

    @abc.abstractmethod
    async def read_events(self, invoice_number: str) -> List[ScanEvent]: ...

    @abc.abstractmethod
    async def read_all(self) -> List[ScanEvent]: ...

    @abc.abstractmethod
    async def delete_invoice(self, invoice_number: str) -> int: ...


class MemoryLedgerStore(LedgerStore):
    name = "memory"

    def __init__(self):
        self._events: List[ScanEvent] = []
        self._lock = asyncio.Lock()

    async def append_event(self, event: ScanEvent) -> None:
        async with self._lock:
            self._events.append(event)

    async def read_events(self, invoice_number: str) -> List[ScanEvent]:
        return [ev for ev in self._events if ev.invoice_number == invoice_number]

    async def read_all(self) -> List[ScanEvent]:
        return list(self._events)

    async def delete_invoice(self, invoice_number: str) -> int:
        async with self._lock:
            kept = [ev for ev in self._events if ev.invoice_number != invoice_number]
            removed = len(self._events) - len(kept)
            self._events = kept
        return removed


def _row_to_event(row: ScanEventRow) -> ScanEvent:
    return ScanEvent(
        id=row.event_id,
        invoice_number=row.invoice_number,
        user_id=row.user_id,
        barcode=row.barcode,
        quantity=float(row.quantity),
        timestamp=int(row.timestamp),
    )


class SqlLedgerStore(LedgerStore):
    name = "sql"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def append_event(self, event: ScanEvent) -> None:
        async with transaction(self._factory) as db:
            db.add(ScanEventRow(
                event_id=event.id,
                invoice_number=event.invoice_number,
                user_id=event.user_id,
                barcode=event.barcode,
                quantity=event.quantity,
                timestamp=event.timestamp,
            ))

    async def read_events(self, invoice_number: str) -> List[ScanEvent]:
        stmt = (
            select(ScanEventRow)
            .where(ScanEventRow.invoice_number == invoice_number)
            .order_by(ScanEventRow.seq)
        )
        async with self._factory() as db:
            result = await db.execute(stmt)
            return [_row_to_event(row) for row in result.scalars()]

    async def read_all(self) -> List[ScanEvent]:
        async with self._factory() as db:
            result = await db.execute(select(ScanEventRow).order_by(ScanEventRow.seq))
            return [_row_to_event(row) for row in result.scalars()]

    async def delete_invoice(self, invoice_number: str) -> int:
        async with transaction(self._factory) as db:
            result = await db.execute(
                delete(ScanEventRow).where(ScanEventRow.invoice_number == invoice_number)
            )
            return result.rowcount or 0


# ============================================================================
# Ledger
# ============================================================================

class ScanLedger:
    """Validating, fault-containing front of a LedgerStore."""

    def __init__(
        self,
        store: LedgerStore,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.store = store
        self._clock = clock
        self._id_factory = id_factory

    @staticmethod
    def validate(barcode: Optional[str], quantity: float) -> str:
        """Return the stripped barcode or raise ScanRejected."""
        code = (barcode or "").strip()
        if not code:
            raise ScanRejected("barcode must not be empty")
        try:
            qty = float(quantity)
        except (TypeError, ValueError):
            raise ScanRejected(f"quantity is not a number: {quantity!r}")
        if not math.isfinite(qty) or qty <= 0:
            raise ScanRejected(f"quantity must be greater than zero, got {quantity!r}")
        return code

    async def append(self, invoice_number: str, user_id: str, barcode: str, quantity: float) -> Optional[ScanEvent]:
        """
        Append one scan.

        Raises ScanRejected on invalid input (nothing stored). Returns None
        when the store failed; the fault is logged.
        """
        try:
            code = self.validate(barcode, quantity)
        except ScanRejected as e:
            logger.warning(f"Scan rejected for invoice {invoice_number} by {user_id}: {e.reason}")
            raise

        event = ScanEvent(
            id=self._id_factory(),
            invoice_number=invoice_number,
            user_id=user_id,
            barcode=code,
            quantity=float(quantity),
            timestamp=self._clock(),
        )
        try:
            await self.store.append_event(event)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault appending scan {code} to invoice {invoice_number}")
            return None

        logger.info(f"Scan {event.id} invoice={invoice_number} user={user_id} barcode={code} qty={event.quantity}")
        return event

    async def events_for(self, invoice_number: str) -> List[ScanEvent]:
        try:
            return await self.store.read_events(invoice_number)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault reading scans of invoice {invoice_number}")
            return []

    async def all_events(self) -> List[ScanEvent]:
        try:
            return await self.store.read_all()
        except STORAGE_FAULTS:
            logger.exception("Storage fault reading scan ledger")
            return []

    async def clear(self, invoice_number: str) -> Optional[int]:
        """Remove every scan of the invoice. Irreversible. None on storage fault."""
        try:
            removed = await self.store.delete_invoice(invoice_number)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault clearing scans of invoice {invoice_number}")
            return None
        logger.info(f"Cleared {removed} scans of invoice {invoice_number}")
        return removed

