"""
Admin API Endpoints.

One-off test storage invoice for a single customer and month.
"""
import logging

from fastapi import APIRouter, HTTPException, status

from portal.api.deps import DB, Locks, AdminUser
from portal.schemas.invoice import StorageTestInvoiceRequest, StorageTestInvoiceResponse
from portal.services.storage_fee_service import (
    StorageFeeService, StorageInvoiceError, StorageCustomerNotFoundError, parse_invoice_month
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/storage-invoices/test",
    response_model=StorageTestInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a test storage invoice"
)
async def generate_storage_test_invoice(
    data: StorageTestInvoiceRequest,
    db: DB,
    locks: Locks,
    admin: AdminUser,
):
    """
    Bill one customer's storage for a month as a test invoice.

    Test invoices never block the real monthly run for the same month.
    """
    service = StorageFeeService(db, locks)
    month = parse_invoice_month(data.month, service.clock())

    try:
        outcome = await service.generate_test_invoice(data.customer_id, month, generated_by=admin)
    except StorageCustomerNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except StorageInvoiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Test storage invoice {outcome.invoice_number} generated by {admin}")
    return StorageTestInvoiceResponse(
        invoice_id=outcome.invoice_id,
        invoice_number=outcome.invoice_number,
        invoice_month=outcome.invoice_month,
        total=outcome.total,
    )
