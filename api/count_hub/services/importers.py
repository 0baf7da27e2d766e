# count_hub/services/importers.py
"""
Invoice and catalog importers.

- delimited text (";", "," or tab): barcode, system code, name, quantity
  [, conversion factor]; a first row naming the columns is a header
- NF-e XML: ide/nNF is the invoice number, every det/prod is a line
"""
from __future__ import annotations
import csv
import io
import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple

from count_hub.errors import ImportFailed
from count_hub.models import CatalogEntry, InvoiceItem
from count_hub.services.identifiers import normalize_code

logger = logging.getLogger(__name__)

# ---------- Header candidates ----------
_HDR_BARCODE = ["barcode", "ean", "gtin", "cean", "código de barras", "codigo de barras", "código", "codigo"]
_HDR_SYSTEM_CODE = ["systemcode", "system code", "cprod", "código sistema", "codigo sistema", "sku", "ref"]
_HDR_NAME = ["name", "nome", "xprod", "descrição", "descricao", "produto", "product"]
_HDR_QTY = ["quantity", "qty", "quantidade", "qtd", "qcom"]
_HDR_FACTOR = ["conversionfactor", "conversion factor", "fator", "fator de conversão", "fator de conversao", "factor"]

# first-line words that may mark an unrecognized header row
_HEADER_HINTS = ("código", "barcode", "nome")

_NO_GTIN = "SEM GTIN"


# ---------- Helpers ----------
def _detect_delimiter(line: str) -> str:
    counts = {';': line.count(';'), '\t': line.count('\t'), ',': line.count(',')}
    delim = max(counts, key=lambda k: counts[k])
    return delim if counts[delim] > 0 else ';'


def _norm_hdr_name(h: str) -> str:
    s = (h or "").strip().strip('"').strip("'")
    s = s.strip("[]").lower()
    s = re.sub(r"\s+", "", s)
    return s


def _header_index(headers: List[str]) -> Optional[Dict[str, int]]:
    """Column index per field when ``headers`` names the columns, else None."""
    normalized = [_norm_hdr_name(h) for h in headers]

    def find(candidates: List[str]) -> Optional[int]:
        for c in candidates:
            k = _norm_hdr_name(c)
            if k in normalized:
                return normalized.index(k)
        return None

    idx = {
        "barcode": find(_HDR_BARCODE),
        "system_code": find(_HDR_SYSTEM_CODE),
        "name": find(_HDR_NAME),
        "quantity": find(_HDR_QTY),
        "factor": find(_HDR_FACTOR),
    }
    if idx["name"] is None or (idx["barcode"] is None and idx["system_code"] is None):
        return None
    return {k: v for k, v in idx.items() if v is not None}


def _parse_number(raw: str) -> Optional[float]:
    s = (raw or "").strip().replace(" ", "")
    if not s:
        return None
    if "," in s and "." in s:
        # the right-most separator is the decimal one: 1.234,5 or 1,234.5
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    else:
        s = s.replace(",", ".")
    try:
        return float(s)
    except ValueError:
        return None


def _looks_like_header(row: List[str]) -> bool:
    first = " ".join(row).lower()
    return any(hint in first for hint in _HEADER_HINTS)


def _rows(text: str) -> Tuple[List[List[str]], Optional[Dict[str, int]]]:
    """
    Non-empty rows of a delimited text and, if the first row names the
    columns, the header index. An unrecognized first row is kept.
    """
    text = (text or "").lstrip("\ufeff")
    first_line = next((ln for ln in text.splitlines() if ln.strip()), "")
    delim = _detect_delimiter(first_line)

    rows = [
        [str(x or "").strip() for x in row]
        for row in csv.reader(io.StringIO(text), delimiter=delim)
        if row and any(str(x or "").strip() for x in row)
    ]
    if not rows:
        return [], None

    header_idx = _header_index(rows[0])
    if header_idx is not None:
        return rows[1:], header_idx
    return rows, None


def _cell(row: List[str], idx: Dict[str, int], key: str) -> str:
    j = idx.get(key)
    if j is None or j >= len(row):
        return ""
    return row[j]


# ---------- Invoice text ----------
_POSITIONAL = {"barcode": 0, "system_code": 1, "name": 2, "quantity": 3, "factor": 4}


def parse_invoice_text(text: str) -> List[InvoiceItem]:
    """
    Parse a delimited invoice listing.

    Rows without a name, without any code, or with a missing/negative
    quantity are skipped. A missing or non-positive factor means 1.
    """
    rows, header_idx = _rows(text)
    if header_idx is None and rows and _looks_like_header(rows[0]):
        # header we cannot map: its quantity cell is not a number
        if _parse_number(_cell(rows[0], _POSITIONAL, "quantity")) is None:
            rows = rows[1:]
    idx = header_idx or _POSITIONAL
    min_fields = max(idx["name"], idx.get("quantity", 0)) + 1 if header_idx else 4

    items: List[InvoiceItem] = []
    skipped = 0
    for row in rows:
        if len(row) < min_fields:
            skipped += 1
            continue
        barcode = normalize_code(_cell(row, idx, "barcode"))
        system_code = normalize_code(_cell(row, idx, "system_code"))
        name = _cell(row, idx, "name")
        qty = _parse_number(_cell(row, idx, "quantity"))
        if not name or (barcode is None and system_code is None) or qty is None or qty < 0:
            skipped += 1
            continue
        factor = _parse_number(_cell(row, idx, "factor"))
        items.append(InvoiceItem(
            barcode=barcode,
            system_code=system_code,
            name=name,
            invoice_quantity=qty,
            conversion_factor=factor if factor and factor > 0 else 1.0,
        ))

    if skipped:
        logger.info(f"Invoice text import: {len(items)} items, {skipped} rows skipped")
    return items


# ---------- Catalog text ----------
def parse_catalog_text(text: str) -> List[CatalogEntry]:
    """Parse barcode, system code, name rows; rows without barcode or name are skipped."""
    rows, idx = _rows(text)
    if idx is None and rows and _looks_like_header(rows[0]):
        # header we cannot map: no digit in its barcode cell
        if not any(ch.isdigit() for ch in rows[0][0]):
            rows = rows[1:]
    idx = idx or {"barcode": 0, "system_code": 1, "name": 2}

    entries: List[CatalogEntry] = []
    for row in rows:
        barcode = normalize_code(_cell(row, idx, "barcode"))
        name = _cell(row, idx, "name")
        if barcode is None or not name:
            continue
        entries.append(CatalogEntry(
            barcode=barcode,
            system_code=normalize_code(_cell(row, idx, "system_code")),
            name=name,
        ))
    return entries


# ---------- NF-e XML ----------
def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(node: ET.Element, name: str) -> str:
    for child in node:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def _iter_local(root: ET.Element, name: str):
    for el in root.iter():
        if _local(el.tag) == name:
            yield el


def parse_nfe_xml(xml_content: str) -> Tuple[Optional[str], List[InvoiceItem]]:
    """
    Extract (invoice number, items) from an NF-e document.

    cEAN "SEM GTIN" or empty means the line has no barcode. Raises
    ImportFailed when the XML is malformed.
    """
    try:
        root = ET.fromstring((xml_content or "").strip())
    except ET.ParseError as e:
        raise ImportFailed(f"invalid NF-e XML: {e}") from e

    invoice_number = None
    ide = next(_iter_local(root, "ide"), None)
    if ide is not None:
        invoice_number = _child_text(ide, "nNF") or None

    items: List[InvoiceItem] = []
    for det in _iter_local(root, "det"):
        prod = next((c for c in det if _local(c.tag) == "prod"), None)
        if prod is None:
            continue
        ean = _child_text(prod, "cEAN")
        qty = _parse_number(_child_text(prod, "qCom"))
        items.append(InvoiceItem(
            barcode=None if ean.upper() == _NO_GTIN else normalize_code(ean),
            system_code=normalize_code(_child_text(prod, "cProd")),
            name=_child_text(prod, "xProd"),
            invoice_quantity=qty if qty is not None and qty >= 0 else 0.0,
            conversion_factor=1.0,
        ))
    return invoice_number, items
