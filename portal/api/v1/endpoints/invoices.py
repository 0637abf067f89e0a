"""
Invoice API Endpoints.

- Generation triggers for shipment invoices and monthly storage invoices
  (called by the scheduler, cron, or an operator)
- Invoice reads
- pending -> paid transition
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from portal.api.deps import DB, Locks, AdminUser, verify_trigger_secret
from portal.models.invoice import InvoiceStatus, InvoiceType
from portal.schemas.invoice import BatchResult, InvoiceListResponse, InvoiceResponse
from portal.services.invoice_service import InvoiceService, InvoiceStateError
from portal.services.shipment_invoice_service import ShipmentInvoiceService
from portal.services.storage_fee_service import StorageFeeService, parse_invoice_month

logger = logging.getLogger(__name__)

router = APIRouter()


def _batch_failure(message: str, error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message, "details": str(error) or "Unknown error"},
    )


# ============================================================================
# GENERATION TRIGGERS
# ============================================================================

@router.api_route(
    "/invoices/generate-daily",
    methods=["GET", "POST"],
    response_model=BatchResult,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_trigger_secret)],
    summary="Generate shipment invoices for all customers"
)
async def generate_daily_invoices(db: DB, locks: Locks):
    """
    Bill every shipment not yet on an invoice, one invoice per customer.

    Safe to call repeatedly: already invoiced shipments are skipped.
    """
    service = ShipmentInvoiceService(db, locks)
    try:
        outcomes = await service.generate_for_all()
    except Exception as e:
        logger.exception("Auto invoice generation failed")
        return _batch_failure("Auto invoice generation failed", e)

    return BatchResult.from_outcomes(
        outcomes, invoice_date=service.clock().date()
    )


@router.api_route(
    "/invoices/generate-monthly-storage",
    methods=["GET", "POST"],
    response_model=BatchResult,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_trigger_secret)],
    summary="Generate monthly storage invoices"
)
async def generate_monthly_storage_invoices(
    db: DB,
    locks: Locks,
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to current month"),
    customer_id: Optional[UUID] = None,
    test: bool = False,
    force: bool = False,
):
    """Storage invoices for every approved customer with storage pricing."""
    service = StorageFeeService(db, locks)
    billing_month = parse_invoice_month(month, service.clock())
    try:
        outcomes = await service.generate_for_all(
            billing_month, customer_id=customer_id, test=test, force=force
        )
    except Exception as e:
        logger.exception("Monthly storage invoice generation failed")
        return _batch_failure("Monthly storage invoice generation failed", e)

    return BatchResult.from_outcomes(outcomes, invoice_month=billing_month.label)


# ============================================================================
# INVOICES
# ============================================================================

@router.get(
    "/customers/{customer_id}/invoices",
    response_model=InvoiceListResponse,
    summary="List a customer's invoices"
)
async def list_customer_invoices(
    customer_id: UUID,
    db: DB,
    invoice_type: Optional[InvoiceType] = None,
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    service = InvoiceService(db)
    invoices, total = await service.list_invoices(
        customer_id,
        invoice_type=invoice_type,
        status=invoice_status,
        skip=skip,
        limit=limit
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(invoice) for invoice in invoices],
        total=total
    )


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Get invoice"
)
async def get_invoice(invoice_id: UUID, db: DB):
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@router.post(
    "/invoices/{invoice_id}/mark-paid",
    response_model=InvoiceResponse,
    summary="Mark invoice as paid"
)
async def mark_invoice_paid(invoice_id: UUID, db: DB, admin: AdminUser):
    """Pending -> paid. Paid invoices cannot change again."""
    try:
        invoice = await InvoiceService(db).mark_paid(invoice_id, datetime.now(timezone.utc))
    except InvoiceStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    logger.info(f"Invoice {invoice.invoice_number} marked paid by {admin}")
    return invoice
