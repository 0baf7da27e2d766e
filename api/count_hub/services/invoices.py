# count_hub/services/invoices.py
"""
Invoice items per invoice number, and the guarded edits on them.

Only ADMIN and VALIDATOR may change an item's quantity or conversion
factor. A rejected edit leaves the stored item untouched.
"""
from __future__ import annotations
import abc
import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from count_hub.database import STORAGE_FAULTS, transaction
from count_hub.db_models import InvoiceItemRow
from count_hub.errors import EditRejected
from count_hub.models import InvoiceItem, UserRole
from count_hub.services.calculator import evaluate
from count_hub.services.identifiers import normalize_code

logger = logging.getLogger(__name__)

EDITOR_ROLES = frozenset({UserRole.ADMIN, UserRole.VALIDATOR})


def can_edit(role: Optional[Union[UserRole, str]]) -> bool:
    if role is None:
        return False
    try:
        return UserRole(role) in EDITOR_ROLES
    except ValueError:
        return False


def find_item_index(items: Sequence[InvoiceItem], system_code: Optional[str], barcode: Optional[str]) -> Optional[int]:
    """First item whose system code or barcode equals the given one."""
    sc = normalize_code(system_code)
    bc = normalize_code(barcode)
    for i, item in enumerate(items):
        if sc is not None and normalize_code(item.system_code) == sc:
            return i
        if bc is not None and normalize_code(item.barcode) == bc:
            return i
    return None


def _to_number(value: Union[float, int, str]) -> float:
    if isinstance(value, str):
        return evaluate(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EditRejected(f"not a number: {value!r}")
    if not math.isfinite(number):
        raise EditRejected(f"not a finite number: {value!r}")
    return number


# ============================================================================
# Stores
# ============================================================================

class InvoiceItemStore(abc.ABC):
    name = "abstract"

    @abc.abstractmethod
    async def get(self, invoice_number: str) -> List[InvoiceItem]: ...

    @abc.abstractmethod
    async def save(self, invoice_number: str, items: Sequence[InvoiceItem]) -> None:
        """Replace all items of the invoice."""

    @abc.abstractmethod
    async def update_field(
        self,
        invoice_number: str,
        system_code: Optional[str],
        barcode: Optional[str],
        field: str,
        value: float,
    ) -> Optional[InvoiceItem]:
        """
        Set one column of the first item matching system code or barcode.

        Lookup and write are one atomic step. Returns the updated item, or
        None when no item matches.
        """

    @abc.abstractmethod
    async def delete(self, invoice_number: str) -> bool: ...

    @abc.abstractmethod
    async def invoice_numbers(self) -> List[str]: ...


class MemoryInvoiceItemStore(InvoiceItemStore):
    name = "memory"

    def __init__(self):
        self._items: Dict[str, List[InvoiceItem]] = {}
        self._lock = asyncio.Lock()

    async def get(self, invoice_number: str) -> List[InvoiceItem]:
        return list(self._items.get(invoice_number, []))

    async def save(self, invoice_number: str, items: Sequence[InvoiceItem]) -> None:
        async with self._lock:
            self._items[invoice_number] = list(items)

    async def update_field(self, invoice_number, system_code, barcode, field, value) -> Optional[InvoiceItem]:
        async with self._lock:
            items = self._items.get(invoice_number, [])
            idx = find_item_index(items, system_code, barcode)
            if idx is None:
                return None
            items[idx] = items[idx].model_copy(update={field: value})
            return items[idx]

    async def delete(self, invoice_number: str) -> bool:
        async with self._lock:
            return self._items.pop(invoice_number, None) is not None

    async def invoice_numbers(self) -> List[str]:
        return list(self._items)


def _row_to_item(row: InvoiceItemRow) -> InvoiceItem:
    return InvoiceItem(
        barcode=row.barcode,
        system_code=row.system_code,
        name=row.name,
        invoice_quantity=float(row.invoice_quantity),
        conversion_factor=float(row.conversion_factor),
    )


class SqlInvoiceItemStore(InvoiceItemStore):
    name = "sql"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def get(self, invoice_number: str) -> List[InvoiceItem]:
        stmt = (
            select(InvoiceItemRow)
            .where(InvoiceItemRow.invoice_number == invoice_number)
            .order_by(InvoiceItemRow.position)
        )
        async with self._factory() as db:
            result = await db.execute(stmt)
            return [_row_to_item(row) for row in result.scalars()]

    async def save(self, invoice_number: str, items: Sequence[InvoiceItem]) -> None:
        async with transaction(self._factory) as db:
            await db.execute(delete(InvoiceItemRow).where(InvoiceItemRow.invoice_number == invoice_number))
            for position, item in enumerate(items):
                db.add(InvoiceItemRow(
                    invoice_number=invoice_number,
                    position=position,
                    barcode=normalize_code(item.barcode),
                    system_code=normalize_code(item.system_code),
                    name=item.name,
                    invoice_quantity=item.invoice_quantity,
                    conversion_factor=item.conversion_factor,
                ))

    async def update_field(self, invoice_number, system_code, barcode, field, value) -> Optional[InvoiceItem]:
        sc = normalize_code(system_code)
        bc = normalize_code(barcode)
        matches = []
        if sc is not None:
            matches.append(InvoiceItemRow.system_code == sc)
        if bc is not None:
            matches.append(InvoiceItemRow.barcode == bc)
        if not matches:
            return None

        # one UPDATE statement: the row is picked and written under the same lock
        target = (
            select(InvoiceItemRow.id)
            .where(InvoiceItemRow.invoice_number == invoice_number, or_(*matches))
            .order_by(InvoiceItemRow.position)
            .limit(1)
            .scalar_subquery()
        )
        stmt = (
            update(InvoiceItemRow)
            .where(InvoiceItemRow.id == target)
            .values({field: value})
            .returning(InvoiceItemRow.id)
            .execution_options(synchronize_session=False)
        )
        async with transaction(self._factory) as db:
            row_id = (await db.execute(stmt)).scalar_one_or_none()
            if row_id is None:
                return None
            row = await db.get(InvoiceItemRow, row_id)
            return _row_to_item(row)

    async def delete(self, invoice_number: str) -> bool:
        async with transaction(self._factory) as db:
            result = await db.execute(delete(InvoiceItemRow).where(InvoiceItemRow.invoice_number == invoice_number))
            return bool(result.rowcount)

    async def invoice_numbers(self) -> List[str]:
        async with self._factory() as db:
            result = await db.execute(select(InvoiceItemRow.invoice_number).distinct())
            return sorted(result.scalars())


# ============================================================================
# Service
# ============================================================================

class InvoiceItemService:
    """Reads, replaces and edits invoice items; storage faults are logged, not raised."""

    def __init__(self, store: InvoiceItemStore):
        self.store = store

    async def items(self, invoice_number: str) -> List[InvoiceItem]:
        try:
            return await self.store.get(invoice_number)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault reading items of invoice {invoice_number}")
            return []

    async def replace(self, invoice_number: str, items: Sequence[InvoiceItem]) -> bool:
        try:
            await self.store.save(invoice_number, items)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault saving items of invoice {invoice_number}")
            return False
        logger.info(f"Saved {len(items)} items for invoice {invoice_number}")
        return True

    async def remove(self, invoice_number: str) -> Optional[bool]:
        try:
            return await self.store.delete(invoice_number)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault deleting items of invoice {invoice_number}")
            return None

    async def update_quantity(
        self,
        invoice_number: str,
        role: Optional[Union[UserRole, str]],
        value: Union[float, str],
        system_code: Optional[str] = None,
        barcode: Optional[str] = None,
    ) -> Optional[InvoiceItem]:
        """
        Set an item's invoice quantity. ``value`` may be an expression.

        Raises EditRejected / ExpressionError; returns None on storage fault.
        """
        return await self._edit(invoice_number, role, value, system_code, barcode, field="invoice_quantity")

    async def update_factor(
        self,
        invoice_number: str,
        role: Optional[Union[UserRole, str]],
        value: Union[float, str],
        system_code: Optional[str] = None,
        barcode: Optional[str] = None,
    ) -> Optional[InvoiceItem]:
        """Set an item's conversion factor (must stay > 0)."""
        return await self._edit(invoice_number, role, value, system_code, barcode, field="conversion_factor")

    async def _edit(self, invoice_number, role, value, system_code, barcode, field: str) -> Optional[InvoiceItem]:
        if not can_edit(role):
            logger.warning(f"Edit of {field} on invoice {invoice_number} refused for role {role!r}")
            raise EditRejected(f"role {role!r} may not edit invoice items", forbidden=True)

        number = _to_number(value)
        if field == "invoice_quantity" and number < 0:
            raise EditRejected(f"invoice quantity must not be negative, got {number}")
        if field == "conversion_factor" and number <= 0:
            raise EditRejected(f"conversion factor must be greater than zero, got {number}")

        try:
            updated = await self.store.update_field(invoice_number, system_code, barcode, field, number)
        except STORAGE_FAULTS:
            logger.exception(f"Storage fault editing {field} on invoice {invoice_number}")
            return None
        if updated is None:
            raise EditRejected(f"no item {system_code or barcode!r} on invoice {invoice_number}")

        logger.info(f"Invoice {invoice_number} item {system_code or barcode}: {field} -> {number}")
        return updated
