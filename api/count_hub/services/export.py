# count_hub/services/export.py
"""Flatten a reconciliation report into delimited text."""
from __future__ import annotations
import csv
import io
from typing import Optional

from count_hub.models import ReconciliationReport

ROW_HEADERS = [
    "systemCode", "barcode", "name", "invoiceQuantity", "conversionFactor",
    "convertedQuantity", "countedQuantity", "difference", "status",
]
EXTRA_HEADERS = ["systemCode", "barcode", "name", "countedQuantity"]


def _num(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(round(float(value), 6))


def _code(value: Optional[str]) -> str:
    return value or "-"


def report_to_csv(report: ReconciliationReport, delimiter: str = ";") -> str:
    """Rows block, a blank line, then the extras block (only when there are extras)."""
    buf = io.StringIO()
    w = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
    w.writerow(ROW_HEADERS)
    for row in report.rows:
        w.writerow([
            _code(row.system_code),
            _code(row.barcode),
            row.name,
            _num(row.invoice_quantity),
            _num(row.conversion_factor),
            _num(row.converted_quantity),
            _num(row.counted_quantity),
            _num(row.difference),
            row.status.value,
        ])
    if report.extras:
        w.writerow([])
        w.writerow(EXTRA_HEADERS)
        for extra in report.extras:
            w.writerow([
                _code(extra.system_code),
                extra.barcode,
                extra.name,
                _num(extra.counted_quantity),
            ])
    return buf.getvalue()
