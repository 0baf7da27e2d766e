"""Tests for identifier normalization and the two-tier resolver."""

import pytest

from conftest import item
from count_hub.services.catalog import Catalog
from count_hub.services.identifiers import normalize_code, resolve


@pytest.mark.parametrize("raw", [None, "", "   ", "-", " - "])
def test_absent_codes_normalize_to_none(raw):
    assert normalize_code(raw) is None


def test_normalize_strips_whitespace():
    assert normalize_code("  123 ") == "123"


def test_direct_match_takes_barcode_total(catalog):
    res = resolve(item(barcode="7890001", system_code="SC-1"), {"7890001": 4.0, "7890002": 6.0}, catalog)
    assert res.counted_quantity == 4.0
    assert res.consumed_barcodes == frozenset({"7890001"})
    assert res.match_method == "barcode"


def test_indirect_match_sums_all_catalog_barcodes_of_system_code(catalog):
    res = resolve(item(system_code="SC-1"), {"7890001": 4.0, "7890002": 6.0, "7890003": 1.0}, catalog)
    assert res.counted_quantity == 10.0
    assert res.consumed_barcodes == frozenset({"7890001", "7890002"})
    assert res.match_method == "system_code"


def test_indirect_used_when_barcode_not_scanned(catalog):
    res = resolve(item(barcode="0000000", system_code="SC-2"), {"7890003": 2.0}, catalog)
    assert res.counted_quantity == 2.0
    assert res.consumed_barcodes == frozenset({"7890003"})


def test_no_match_returns_zero(catalog):
    res = resolve(item(barcode="111", system_code="SC-9"), {"7890001": 3.0}, catalog)
    assert res.counted_quantity == 0
    assert res.consumed_barcodes == frozenset()
    assert not res.matched


def test_sentinel_codes_never_match(catalog):
    # "-" as barcode must not pick up a scan of "-" and "-" as system code
    # must not pull in catalog entries registered without a system code
    res = resolve(item(barcode="-", system_code="-"), {"-": 1.0, "5550001": 2.0}, catalog)
    assert res.counted_quantity == 0
    assert not res.matched


def test_resolver_does_not_mutate_inputs(catalog):
    totals = {"7890001": 4.0}
    before = dict(totals)
    resolve(item(system_code="SC-1"), totals, catalog)
    assert totals == before
    assert len(catalog) == 4


def test_empty_catalog_only_direct():
    res = resolve(item(barcode="1", system_code="SC-1"), {"1": 2.0}, Catalog())
    assert res.counted_quantity == 2.0
    res = resolve(item(system_code="SC-1"), {"1": 2.0}, Catalog())
    assert res.counted_quantity == 0
