"""Invoice models for shipment and storage billing.

Invoices are append-only: line items are written together with the header
and never edited afterwards. The only allowed mutation is the payment status
transition pending -> paid.
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Date, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.database import Base
from portal.db_types import UUIDType, JSONType, MoneyType, QuantityType

if TYPE_CHECKING:
    from portal.models.customer import Customer


class InvoiceStatus(str, Enum):
    """Payment status. PAID is terminal."""
    PENDING = "pending"
    PAID = "paid"


class InvoiceType(str, Enum):
    """What an invoice bills for."""
    SHIPMENT = "shipment"
    STORAGE = "storage"


class Invoice(Base):
    """One billing document for a customer."""
    __tablename__ = "invoices"
    __table_args__ = (
        Index("ix_invoices_customer_type_month", "customer_id", "invoice_type", "invoice_month"),
    )

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

    # Identification
    invoice_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="e.g. INV-20251121-123"
    )
    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="ORD-YYYYMMDD-NNNN or STOR-YYYYMMDD-NNNN"
    )
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    invoice_type: Mapped[str] = mapped_column(
        String(20),
        default=InvoiceType.SHIPMENT.value,
        nullable=False,
        comment="shipment, storage"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=InvoiceStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, paid"
    )

    # Bill-to snapshot taken at generation time: {name, email, phone, address}
    sold_to: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    fbm: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Fulfilment label: Standard Shipping, Storage Fee"
    )

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    additional_services: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Usage, unit prices and total of bubble wrap / sticker removal / warning labels"
    )

    # Storage invoices
    invoice_month: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
        comment="YYYY-MM, or YYYY-MM-test-YYYYMMDD-HHMMSS for test runs"
    )
    storage_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    item_count: Mapped[Optional[Decimal]] = mapped_column(QuantityType, nullable=True)
    pallet_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Generation metadata
    auto_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_test: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    test_of_invoice_month: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    generated_by: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="Admin who triggered a test invoice"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    items: Mapped[List["InvoiceLineItem"]] = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.line_number"
    )
    customer: Mapped["Customer"] = relationship("Customer")

    @property
    def additional_services_total(self) -> Decimal:
        return (self.grand_total or Decimal("0")) - (self.subtotal or Decimal("0"))

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.status} {self.grand_total}>"


class InvoiceLineItem(Base):
    """A single billable row on an invoice."""
    __tablename__ = "invoice_line_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ship_date: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    ship_to: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    packaging: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Reference to the billed shipment; read back by the billing ledger.
    # Plain string, not a foreign key: storage lines carry none.
    shipment_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
