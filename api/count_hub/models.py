from __future__ import annotations
import enum
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    VALIDATOR = "VALIDATOR"
    COLLECTOR = "COLLECTOR"


class RowStatus(str, enum.Enum):
    MATCH = "MATCH"
    MISSING = "MISSING"
    SURPLUS = "SURPLUS"


UNKNOWN_NAME = "unknown"
NO_CODE = "-"

# ---------------------------------------------------------
# Source data
# ---------------------------------------------------------

class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    barcode: str
    system_code: Optional[str] = None
    name: str


class InvoiceItem(BaseModel):
    """One expected line of an invoice. Edits go through model_copy()."""
    model_config = ConfigDict(frozen=True)

    barcode: Optional[str] = None
    system_code: Optional[str] = None
    name: str
    invoice_quantity: float = Field(default=0.0, ge=0)
    conversion_factor: float = Field(default=1.0, gt=0)


class ScanEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    invoice_number: str
    user_id: str
    barcode: str
    quantity: float
    timestamp: int  # epoch milliseconds

# ---------------------------------------------------------
# Derived views (never persisted)
# ---------------------------------------------------------

class ReconciliationRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_code: Optional[str] = None
    barcode: Optional[str] = None
    name: str
    invoice_quantity: float
    conversion_factor: float
    converted_quantity: float
    counted_quantity: float
    difference: float
    status: RowStatus


class ExtraItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    barcode: str
    system_code: str = NO_CODE
    name: str = UNKNOWN_NAME
    counted_quantity: float


class ReconciliationReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    rows: List[ReconciliationRow] = Field(default_factory=list)
    extras: List[ExtraItem] = Field(default_factory=list)


class SessionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    invoice_number: str
    last_activity: int
    total_items_scanned: int
    users_involved: List[str] = Field(default_factory=list)

# ---------------------------------------------------------
# API payloads
# ---------------------------------------------------------

class ScanIn(BaseModel):
    user_id: str
    barcode: str
    quantity: float = 1.0


class ItemEditIn(BaseModel):
    system_code: Optional[str] = None
    barcode: Optional[str] = None
    # a number or an arithmetic expression like "12*4+3"
    value: Union[float, str]


class TextImportIn(BaseModel):
    content: str


class NfeImportIn(BaseModel):
    xml: str


class NfeImportOut(BaseModel):
    invoice_number: str
    items: List[InvoiceItem]


class SessionCloseOut(BaseModel):
    invoice_number: str
    events_removed: int
    items_removed: bool = False
