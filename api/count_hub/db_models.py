# count_hub/db_models.py
"""
SQLAlchemy ORM Models for Count Hub.

Three tables: the product catalog, invoice lines and the scan ledger.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, BigInteger, DateTime, Float,
    Index, CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column

from count_hub.database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY
_PK = BigInteger().with_variant(Integer, "sqlite")
# double precision, so stored quantities equal the in-memory floats
_QTY = Float()


# ============================================================================
# 1. CATALOG
# ============================================================================

class CatalogProduct(Base):
    __tablename__ = "catalog_products"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    barcode: Mapped[str] = mapped_column(String(100), nullable=False)
    system_code: Mapped[Optional[str]] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("barcode", name="uq_catalog_barcode"),
        Index("idx_catalog_system_code", "system_code"),
    )


# ============================================================================
# 2. INVOICE ITEMS
# ============================================================================

class InvoiceItemRow(Base):
    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    barcode: Mapped[Optional[str]] = mapped_column(String(100))
    system_code: Mapped[Optional[str]] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    invoice_quantity: Mapped[float] = mapped_column(_QTY, default=0, nullable=False)
    conversion_factor: Mapped[float] = mapped_column(_QTY, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("invoice_quantity >= 0", name="chk_invoice_items_qty"),
        CheckConstraint("conversion_factor > 0", name="chk_invoice_items_factor"),
        UniqueConstraint("invoice_number", "position", name="uq_invoice_items_position"),
        Index("idx_invoice_items_invoice", "invoice_number"),
    )


# ============================================================================
# 3. SCAN LEDGER (append-only)
# ============================================================================

class ScanEventRow(Base):
    __tablename__ = "scan_events"

    # insertion order
    seq: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(32), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    barcode: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[float] = mapped_column(_QTY, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_scan_events_qty"),
        UniqueConstraint("event_id", name="uq_scan_events_event_id"),
        Index("idx_scan_events_invoice", "invoice_number", "seq"),
    )
