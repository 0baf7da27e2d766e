# count_hub/services/catalog.py
"""
Read-only product catalog, indexed by barcode and by system code.
"""
from __future__ import annotations
import abc
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from count_hub.database import STORAGE_FAULTS, transaction
from count_hub.db_models import CatalogProduct
from count_hub.models import CatalogEntry
from count_hub.services.identifiers import normalize_code

logger = logging.getLogger(__name__)


class Catalog:
    """Immutable lookup over catalog entries. First entry wins on a duplicate barcode."""

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: Tuple[CatalogEntry, ...] = tuple(entries)
        self._by_barcode: Dict[str, CatalogEntry] = {}
        self._barcodes_by_system_code: Dict[str, List[str]] = {}

        for entry in self._entries:
            barcode = normalize_code(entry.barcode)
            if barcode is None or barcode in self._by_barcode:
                continue
            self._by_barcode[barcode] = entry
            system_code = normalize_code(entry.system_code)
            if system_code is not None:
                self._barcodes_by_system_code.setdefault(system_code, []).append(barcode)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def by_barcode(self, barcode: Optional[str]) -> Optional[CatalogEntry]:
        code = normalize_code(barcode)
        if code is None:
            return None
        return self._by_barcode.get(code)

    def barcodes_for_system_code(self, system_code: Optional[str]) -> Tuple[str, ...]:
        """All barcodes registered under ``system_code``, in catalog order."""
        code = normalize_code(system_code)
        if code is None:
            return ()
        return tuple(self._barcodes_by_system_code.get(code, ()))


# ============================================================================
# Catalog storage (bulk replace, read all)
# ============================================================================

class CatalogStore(abc.ABC):
    name = "abstract"

    @abc.abstractmethod
    async def load(self) -> List[CatalogEntry]: ...

    @abc.abstractmethod
    async def replace(self, entries: Sequence[CatalogEntry]) -> None: ...


class MemoryCatalogStore(CatalogStore):
    name = "memory"

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: List[CatalogEntry] = list(entries)

    async def load(self) -> List[CatalogEntry]:
        return list(self._entries)

    async def replace(self, entries: Sequence[CatalogEntry]) -> None:
        self._entries = list(entries)


class SqlCatalogStore(CatalogStore):
    name = "sql"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def load(self) -> List[CatalogEntry]:
        async with self._factory() as db:
            result = await db.execute(select(CatalogProduct).order_by(CatalogProduct.id))
            return [
                CatalogEntry(barcode=row.barcode, system_code=row.system_code, name=row.name)
                for row in result.scalars()
            ]

    async def replace(self, entries: Sequence[CatalogEntry]) -> None:
        seen = set()
        async with transaction(self._factory) as db:
            await db.execute(delete(CatalogProduct))
            for entry in entries:
                barcode = normalize_code(entry.barcode)
                if barcode is None or barcode in seen:
                    continue
                seen.add(barcode)
                db.add(CatalogProduct(
                    barcode=barcode,
                    system_code=normalize_code(entry.system_code),
                    name=entry.name,
                ))


async def load_catalog(store: CatalogStore) -> Catalog:
    """Snapshot of the stored catalog; an unreadable store gives an empty catalog."""
    try:
        return Catalog(await store.load())
    except STORAGE_FAULTS:
        logger.exception("Storage fault loading catalog")
        return Catalog()
