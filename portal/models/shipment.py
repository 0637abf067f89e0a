"""Outbound shipment model.

Shipments were recorded in two shapes over the life of the portal:

- legacy: a single product described directly on the shipment
  (product_name, shipped_qty, pack_of, unit_price, ...)
- current: an explicit `items` list, one entry per product

Both shapes are kept as written; portal.services.shipment_items turns either
one into billable line items.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from portal.database import Base
from portal.db_types import UUIDType, JSONType, MoneyType


class Shipment(Base):
    """One outbound fulfillment event for a customer."""
    __tablename__ = "shipments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Raw ship date as imported: ISO string, {seconds, nanoseconds} or datetime text
    date: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    ship_to: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Legacy single-item shape
    product_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    shipped_qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    boxes_shipped: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    units_for_pricing: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    pack_of: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    remaining_qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)

    # Current shape: [{"productId", "productName", "boxesShipped", "shippedQty",
    #                  "packOf", "unitPrice", "remainingQty"}, ...]
    items: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSONType, nullable=True)

    # {"bubbleWrapFeet", "stickerRemovalItems", "warningLabels",
    #  "pricePerFoot", "pricePerItem", "pricePerLabel"}
    additional_services: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Shipment {self.id} customer={self.customer_id}>"
