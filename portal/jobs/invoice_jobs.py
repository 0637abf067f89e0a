"""
Invoice Generation Jobs

Scheduled runs of the same generation paths the HTTP triggers use:
- Shipment invoices for every customer (daily)
- Storage invoices for the current month (monthly)
"""

import logging
from typing import Any, Dict, List
from datetime import datetime, timezone

from portal.core.locks import customer_locks
from portal.database import get_db_session
from portal.schemas.invoice import CustomerOutcome, GenerationStatus

logger = logging.getLogger(__name__)


def _summarize(outcomes: List[CustomerOutcome], start_time: datetime) -> Dict[str, Any]:
    return {
        "customers": len(outcomes),
        "invoices_created": sum(1 for o in outcomes if o.created),
        "errors": sum(1 for o in outcomes if o.status == GenerationStatus.ERROR),
        "duration_seconds": (datetime.now(timezone.utc) - start_time).total_seconds(),
    }


async def run_daily_invoice_job() -> Dict[str, Any]:
    """Invoice every customer's unbilled shipments."""
    from portal.services.shipment_invoice_service import ShipmentInvoiceService

    logger.info("Starting daily shipment invoice run...")
    start_time = datetime.now(timezone.utc)

    async with get_db_session() as session:
        outcomes = await ShipmentInvoiceService(session, customer_locks).generate_for_all()

    result = _summarize(outcomes, start_time)
    logger.info(
        f"Daily invoice run completed: {result['invoices_created']} invoices, "
        f"{result['errors']} errors across {result['customers']} customers"
    )
    return result


async def run_monthly_storage_job() -> Dict[str, Any]:
    """Storage invoices for the current month."""
    from portal.services.storage_fee_service import StorageFeeService, BillingMonth

    logger.info("Starting monthly storage invoice run...")
    start_time = datetime.now(timezone.utc)

    async with get_db_session() as session:
        service = StorageFeeService(session, customer_locks)
        month = BillingMonth.of(service.clock())
        outcomes = await service.generate_for_all(month)

    result = _summarize(outcomes, start_time)
    result["invoice_month"] = month.label
    logger.info(
        f"Storage invoice run for {month.label} completed: {result['invoices_created']} invoices, "
        f"{result['errors']} errors across {result['customers']} customers"
    )
    return result
