"""Tests for the delimited report export."""

from conftest import item, scan
from count_hub.services.export import report_to_csv
from count_hub.services.reconciliation import compute_report


def test_report_with_extras(catalog):
    items = [
        item(barcode="7890001", system_code="SC-1", qty=2, factor=6, name="Coffee"),
        item(system_code="SC-2", qty=1, factor=1.5, name="Sugar"),
    ]
    events = [scan("7890001", 12), scan("7890002", 1), scan("999", 2)]
    text = report_to_csv(compute_report(items, events, catalog))

    assert text.splitlines() == [
        "systemCode;barcode;name;invoiceQuantity;conversionFactor;convertedQuantity;countedQuantity;difference;status",
        "SC-1;7890001;Coffee;2;6;12;12;0;MATCH",
        "SC-2;-;Sugar;1;1.5;1.5;0;-1.5;MISSING",
        "",
        "systemCode;barcode;name;countedQuantity",
        "SC-1;7890002;Coffee 500g (box);1",
        "-;999;unknown;2",
    ]


def test_report_without_extras_has_no_extra_block(catalog):
    items = [item(barcode="7890003", system_code="SC-2", qty=1, name="Sugar")]
    text = report_to_csv(compute_report(items, [scan("7890003", 3)], catalog), delimiter=",")

    lines = text.splitlines()
    assert len(lines) == 2
    assert lines[1] == "SC-2,7890003,Sugar,1,1,1,3,2,SURPLUS"


def test_names_with_delimiter_are_quoted(catalog):
    items = [item(barcode="1", qty=1, name="Tea; green")]
    text = report_to_csv(compute_report(items, [], catalog))
    assert '"Tea; green"' in text.splitlines()[1]
