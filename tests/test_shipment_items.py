"""Tests for shipment item normalization (legacy and list shapes)."""
from decimal import Decimal
from types import SimpleNamespace

from portal.services.shipment_items import (
    UNKNOWN_ITEM,
    ExplicitList,
    SingleImplicit,
    classify_shipment_items,
    normalize_shipment_items,
    summarize_shipment,
)


def legacy_shipment(**fields):
    base = dict(
        items=None,
        product_id=None,
        product_name=None,
        boxes_shipped=None,
        units_for_pricing=None,
        shipped_qty=None,
        pack_of=None,
        unit_price=None,
        remaining_qty=None,
    )
    base.update(fields)
    return SimpleNamespace(**base)


def test_list_shape_wins_when_items_present():
    shipment = legacy_shipment(
        product_name="Legacy",
        boxes_shipped=9,
        items=[{"productName": "Widget", "boxesShipped": 2, "unitPrice": 5}],
    )

    assert isinstance(classify_shipment_items(shipment), ExplicitList)
    items = normalize_shipment_items(shipment)
    assert [item.product_name for item in items] == ["Widget"]


def test_empty_items_list_falls_back_to_legacy():
    shipment = legacy_shipment(items=[], product_name="Widget", boxes_shipped=3, unit_price="4.5")

    assert isinstance(classify_shipment_items(shipment), SingleImplicit)
    (item,) = normalize_shipment_items(shipment)
    assert item.boxes_shipped == Decimal("3")
    assert item.unit_price == Decimal("4.5")
    assert item.pack_of == Decimal("1")


def test_list_entry_defaults():
    shipment = {"items": [{"boxesShipped": "2"}, "junk"]}

    (item,) = normalize_shipment_items(shipment)
    assert item.product_name == UNKNOWN_ITEM
    assert item.boxes_shipped == Decimal("2")
    assert item.shipped_qty == 0
    assert item.pack_of == 1
    assert item.unit_price == 0
    assert item.remaining_qty is None


def test_negative_price_is_zero():
    shipment = {"items": [{"productName": "Widget", "boxesShipped": 1, "unitPrice": -3}]}
    (item,) = normalize_shipment_items(shipment)
    assert item.unit_price == 0


def test_legacy_quantity_fallback_chain():
    (by_units,) = normalize_shipment_items(
        legacy_shipment(product_name="A", boxes_shipped=0, units_for_pricing=6, shipped_qty=60)
    )
    assert by_units.boxes_shipped == 6

    (by_shipped,) = normalize_shipment_items(
        legacy_shipment(product_name="A", shipped_qty=12)
    )
    assert by_shipped.boxes_shipped == 12
    assert by_shipped.shipped_qty == 12


def test_no_product_information_yields_nothing():
    assert normalize_shipment_items(legacy_shipment()) == []
    assert normalize_shipment_items(legacy_shipment(product_name="")) == []
    assert normalize_shipment_items({}) == []


def test_summarize_shipment_titles():
    single = summarize_shipment({"items": [{"productName": "Widget", "boxesShipped": 2, "packOf": 6}]})
    assert single["title"] == "Widget"
    assert single["primary_pack_of"] == 6

    multi = summarize_shipment({"items": [
        {"productName": "Widget", "boxesShipped": 2, "shippedQty": 20},
        {"productName": "Gadget", "boxesShipped": 1, "shippedQty": 5},
        {"productName": "Gizmo", "boxesShipped": 3, "shippedQty": 3},
    ]})
    assert multi["title"] == "Widget + 2 more"
    assert multi["total_boxes"] == 6
    assert multi["total_units"] == 28
    assert multi["total_skus"] == 3
    assert multi["primary_pack_of"] is None
