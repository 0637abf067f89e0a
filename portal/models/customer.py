"""Customer (client account) model."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.database import Base
from portal.db_types import UUIDType


class CustomerStatus(str, Enum):
    """Account approval status."""
    PENDING = "pending"
    APPROVED = "approved"
    DELETED = "deleted"


class StorageType(str, Enum):
    """How monthly storage is billed for a customer."""
    PRODUCT_BASE = "product_base"  # per in-stock unit
    PALLET_BASE = "pallet_base"    # per configured pallet


class Customer(Base):
    """
    A client of the warehouse. Owns shipments, inventory, storage pricing
    records and invoices.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="pending, approved, deleted; NULL on legacy accounts"
    )
    storage_type: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        comment="product_base, pallet_base"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def display_name(self) -> str:
        return self.name or self.company_name or "Client"

    def __repr__(self) -> str:
        return f"<Customer {self.display_name} ({self.status})>"
