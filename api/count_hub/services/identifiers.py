# count_hub/services/identifiers.py
"""
Identifier resolution: which scanned quantity belongs to an invoice line.

Two tiers, first hit wins:
- direct: the line's barcode was scanned
- indirect: the line's system code maps, through the catalog, to one or
  more barcodes that were scanned (products with several EANs)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional, TYPE_CHECKING

from count_hub.models import InvoiceItem, NO_CODE

if TYPE_CHECKING:
    from count_hub.services.catalog import Catalog


def normalize_code(value: Optional[str]) -> Optional[str]:
    """Strip a barcode/system code; empty and "-" mean absent."""
    if value is None:
        return None
    code = str(value).strip()
    if not code or code == NO_CODE:
        return None
    return code


@dataclass(frozen=True)
class Resolution:
    counted_quantity: float = 0.0
    consumed_barcodes: FrozenSet[str] = field(default_factory=frozenset)
    match_method: Optional[str] = None  # "barcode" | "system_code"

    @property
    def matched(self) -> bool:
        return bool(self.consumed_barcodes)


NO_MATCH = Resolution()


def resolve(item: InvoiceItem, scan_totals: Mapping[str, float], catalog: "Catalog") -> Resolution:
    """
    Decide which scanned quantity belongs to ``item``.

    ``scan_totals`` maps normalized barcode -> summed quantity. Neither it nor
    the catalog is modified.
    """
    barcode = normalize_code(item.barcode)
    if barcode is not None and barcode in scan_totals:
        return Resolution(
            counted_quantity=scan_totals[barcode],
            consumed_barcodes=frozenset((barcode,)),
            match_method="barcode",
        )

    system_code = normalize_code(item.system_code)
    if system_code is None:
        return NO_MATCH

    consumed = [code for code in catalog.barcodes_for_system_code(system_code) if code in scan_totals]
    if not consumed:
        return NO_MATCH

    return Resolution(
        counted_quantity=sum(scan_totals[code] for code in consumed),
        consumed_barcodes=frozenset(consumed),
        match_method="system_code",
    )
