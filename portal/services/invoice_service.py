"""Invoice reads and the pending -> paid status transition."""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.models.invoice import Invoice, InvoiceStatus, InvoiceType


logger = logging.getLogger(__name__)


class InvoiceStateError(Exception):
    """Raised on a status change the invoice lifecycle does not allow."""
    pass


class InvoiceService:
    """Service for invoice management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_invoice(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        """Get invoice by ID with its line items."""
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.id == invoice_id)
        )
        return result.scalar_one_or_none()

    async def list_invoices(
        self,
        customer_id: uuid.UUID,
        invoice_type: Optional[InvoiceType] = None,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[Invoice], int]:
        """List a customer's invoices, newest first."""
        query = select(Invoice).where(Invoice.customer_id == customer_id)

        if invoice_type:
            query = query.where(Invoice.invoice_type == invoice_type.value)
        if status:
            query = query.where(Invoice.status == status.value)

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query) or 0

        query = (
            query.options(selectinload(Invoice.items))
            .order_by(Invoice.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def mark_paid(
        self,
        invoice_id: uuid.UUID,
        paid_at: Optional[datetime] = None
    ) -> Optional[Invoice]:
        """
        Move a pending invoice to paid.

        Returns None if the invoice does not exist. Paid is terminal, so
        paying an already paid invoice raises InvoiceStateError.
        """
        invoice = await self.get_invoice(invoice_id)
        if not invoice:
            return None

        if invoice.status != InvoiceStatus.PENDING.value:
            raise InvoiceStateError(
                f"Invoice {invoice.invoice_number} is {invoice.status}, only pending invoices can be paid"
            )

        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_at = paid_at or datetime.now(timezone.utc)

        await self.db.commit()
        logger.info(f"Invoice {invoice.invoice_number} marked paid")
        return invoice
