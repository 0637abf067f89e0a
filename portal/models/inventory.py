"""Customer inventory held in the warehouse."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from portal.database import Base
from portal.db_types import UUIDType, JSONType


IN_STOCK = "In Stock"


class InventoryItem(Base):
    """Current stock of one product for a customer."""
    __tablename__ = "inventory_items"

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

    product_name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(
        String(30),
        default=IN_STOCK,
        nullable=True,
        index=True,
        comment="In Stock, Out of Stock"
    )

    # Raw date the stock arrived, same shapes as Shipment.date
    date_added: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
