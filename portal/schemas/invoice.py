"""
Invoice Schemas.

Pydantic schemas for invoice reads, admin actions and the per-customer
outcome records returned by the generation triggers.
"""
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from portal.schemas.base import BaseResponseSchema, BaseCreateSchema


class GenerationStatus(str, Enum):
    """Outcome of one customer's invoice generation."""
    INVOICE_CREATED = "invoice_created"
    # Shipment invoices
    SKIPPED_NO_SHIPMENTS = "skipped_no_shipments"
    SKIPPED_ALL_INVOICED = "skipped_all_invoiced"
    SKIPPED_NO_BILLABLE_ITEMS = "skipped_no_billable_items"
    SKIPPED_ZERO_TOTAL = "skipped_zero_total"
    # Storage invoices
    SKIPPED_USER_NOT_APPROVED = "skipped_user_not_approved"
    SKIPPED_NO_STORAGE_TYPE = "skipped_no_storage_type"
    SKIPPED_NO_STORAGE_PRICING = "skipped_no_storage_pricing"
    SKIPPED_INVALID_PRICE = "skipped_invalid_price"
    SKIPPED_INVOICE_EXISTS = "skipped_invoice_exists"
    SKIPPED_NO_CHARGE = "skipped_no_charge"
    ERROR = "error"


class CustomerOutcome(BaseModel):
    """What happened for one customer in a generation run."""
    customer_id: UUID
    status: GenerationStatus
    invoice_id: Optional[UUID] = None
    invoice_number: Optional[str] = None
    shipments_processed: Optional[int] = None
    items_processed: Optional[int] = None
    total: Optional[Decimal] = None
    invoice_month: Optional[str] = None
    storage_type: Optional[str] = None
    item_count: Optional[Decimal] = None
    is_test: Optional[bool] = None
    detail: Optional[str] = None

    @field_serializer("total", "item_count")
    def serialize_amount(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None

    @property
    def created(self) -> bool:
        return self.status == GenerationStatus.INVOICE_CREATED


class BatchResult(BaseModel):
    """Aggregated response of a generation trigger."""
    success: bool = True
    invoice_date: Optional[date] = None
    invoice_month: Optional[str] = None
    results: List[CustomerOutcome] = Field(default_factory=list)
    summary: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_outcomes(cls, outcomes: List[CustomerOutcome], **kwargs) -> "BatchResult":
        summary: Dict[str, int] = {}
        for outcome in outcomes:
            summary[outcome.status.value] = summary.get(outcome.status.value, 0) + 1
        return cls(results=outcomes, summary=summary, **kwargs)


class StorageTestInvoiceRequest(BaseCreateSchema):
    """Admin request for a one-off test storage invoice."""
    customer_id: UUID
    month: Optional[str] = Field(None, description="YYYY-MM, defaults to the current month")

    @field_validator("month")
    @classmethod
    def blank_month_is_current(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class StorageTestInvoiceResponse(BaseModel):
    success: bool = True
    invoice_id: UUID
    invoice_number: str
    invoice_month: str
    total: Decimal

    @field_serializer("total")
    def serialize_total(self, value: Decimal) -> float:
        return float(value)


class InvoiceLineItemResponse(BaseResponseSchema):
    line_number: int
    quantity: Decimal
    product_name: str
    sku: Optional[str] = None
    ship_date: Optional[str] = None
    ship_to: Optional[str] = None
    packaging: Optional[str] = None
    unit_price: Decimal
    amount: Decimal
    shipment_id: Optional[str] = None


class InvoiceResponse(BaseResponseSchema):
    id: UUID
    customer_id: UUID
    invoice_number: str
    order_number: str
    invoice_date: date
    invoice_type: str
    status: str
    sold_to: Dict[str, Any]
    fbm: Optional[str] = None
    subtotal: Decimal
    grand_total: Decimal
    additional_services: Optional[Dict[str, Any]] = None
    invoice_month: Optional[str] = None
    storage_type: Optional[str] = None
    item_count: Optional[Decimal] = None
    pallet_count: Optional[int] = None
    auto_generated: bool
    auto_generated_at: Optional[datetime] = None
    is_test: bool
    test_of_invoice_month: Optional[str] = None
    generated_by: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    items: List[InvoiceLineItemResponse] = Field(default_factory=list)


class InvoiceListResponse(BaseModel):
    items: List[InvoiceResponse]
    total: int
