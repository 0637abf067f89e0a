"""
Shipment Item Normalizer.

Shipments carry their products in one of two shapes:

    SingleImplicit  - legacy records: one product described directly on the
                      shipment (product_name, boxes_shipped, shipped_qty, ...)
    ExplicitList    - current records: an `items` list, one dict per product

Historical records were never migrated, so every consumer goes through
normalize_shipment_items() and gets the same flat list back regardless of
which shape a record uses.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from portal.core.normalizers import to_money, to_number


UNKNOWN_ITEM = "Unknown Item"

# Legacy fields that make a shipment without `items` a billable single item
LEGACY_ITEM_FIELDS = (
    "product_id", "product_name", "boxes_shipped", "units_for_pricing",
    "shipped_qty", "unit_price",
)


@dataclass(frozen=True)
class SingleImplicit:
    fields: Dict[str, Any]


@dataclass(frozen=True)
class ExplicitList:
    items: Sequence[Mapping[str, Any]] = field(default_factory=list)


ShipmentItems = Union[SingleImplicit, ExplicitList]


@dataclass
class NormalizedShipmentItem:
    """One product on a shipment, in the uniform shape billing works with."""
    product_name: str
    boxes_shipped: Decimal
    shipped_qty: Decimal
    pack_of: Decimal
    unit_price: Decimal
    product_id: Optional[str] = None
    remaining_qty: Optional[Decimal] = None


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def classify_shipment_items(shipment: Any) -> ShipmentItems:
    """Decide which item shape a shipment record uses."""
    items = _get(shipment, "items")
    if isinstance(items, (list, tuple)) and len(items) > 0:
        return ExplicitList([item for item in items if isinstance(item, Mapping)])

    fields = {
        name: _get(shipment, name)
        for name in LEGACY_ITEM_FIELDS + ("pack_of", "remaining_qty")
    }
    return SingleImplicit(fields)


def _from_list_entry(entry: Mapping[str, Any]) -> NormalizedShipmentItem:
    remaining = entry.get("remainingQty")
    return NormalizedShipmentItem(
        product_id=_text(entry.get("productId")),
        product_name=_text(entry.get("productName")) or UNKNOWN_ITEM,
        boxes_shipped=to_number(entry.get("boxesShipped")),
        shipped_qty=to_number(entry.get("shippedQty")),
        pack_of=to_number(entry.get("packOf"), 1),
        unit_price=to_money(entry.get("unitPrice")),
        remaining_qty=to_number(remaining) if remaining is not None else None,
    )


def _from_legacy_fields(fields: Mapping[str, Any]) -> List[NormalizedShipmentItem]:
    if all(fields.get(name) in (None, "") for name in LEGACY_ITEM_FIELDS):
        return []

    # First non-zero of boxes / pricing units / shipped units is the billable count
    boxes = (
        to_number(fields.get("boxes_shipped"))
        or to_number(fields.get("units_for_pricing"))
        or to_number(fields.get("shipped_qty"))
    )
    units = to_number(fields.get("shipped_qty"), boxes)
    remaining = fields.get("remaining_qty")

    return [
        NormalizedShipmentItem(
            product_id=_text(fields.get("product_id")),
            product_name=_text(fields.get("product_name")) or UNKNOWN_ITEM,
            boxes_shipped=boxes,
            shipped_qty=units,
            pack_of=to_number(fields.get("pack_of"), 1),
            unit_price=to_money(fields.get("unit_price")),
            remaining_qty=to_number(remaining) if remaining is not None else None,
        )
    ]


def normalize_shipment_items(shipment: Any) -> List[NormalizedShipmentItem]:
    """
    Flatten a shipment's products into a uniform list.

    Accepts an ORM Shipment or a plain mapping with the same field names.
    A shipment with no resolvable product returns an empty list.
    """
    shape = classify_shipment_items(shipment)
    if isinstance(shape, ExplicitList):
        return [_from_list_entry(entry) for entry in shape.items]
    return _from_legacy_fields(shape.fields)


def summarize_shipment(shipment: Any) -> Dict[str, Any]:
    """Totals and a display title for a shipment."""
    items = normalize_shipment_items(shipment)
    total_boxes = sum((item.boxes_shipped for item in items), Decimal("0"))
    total_units = sum((item.shipped_qty for item in items), Decimal("0"))
    total_skus = len(items)

    if total_skus <= 1:
        title = items[0].product_name if items else (_text(_get(shipment, "product_name")) or "Shipment")
    else:
        title = f"{items[0].product_name} + {total_skus - 1} more"

    return {
        "items": items,
        "total_boxes": total_boxes,
        "total_units": total_units,
        "total_skus": total_skus,
        "title": title,
        "primary_pack_of": items[0].pack_of if total_skus == 1 else None,
    }
