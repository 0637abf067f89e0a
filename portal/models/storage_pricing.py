"""Storage pricing records.

A customer may accumulate several pricing records over time; the one with the
most recent updated_at / created_at is authoritative.
"""
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from portal.database import Base
from portal.db_types import UUIDType, JSONType, MoneyType


class StoragePricing(Base):
    """Per-item or per-pallet storage price for a customer."""
    __tablename__ = "storage_pricing"

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

    price: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    pallet_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Raw timestamps as imported
    created_at: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    updated_at: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
