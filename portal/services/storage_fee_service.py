"""
Storage Fee Service - monthly storage invoices.

Runs once per customer per month against the current inventory snapshot,
independently of shipment invoicing. Billing mode comes from the customer's
storage_type:

- product_base: in-stock units x price per item. Units added during the
  target month are free (first month free).
- pallet_base: configured pallet count x price per pallet.

A customer can have several pricing records; the most recently updated one
is authoritative. A month that already has a storage invoice is skipped
unless the run is forced or is a test run.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.locks import CustomerLockRegistry, customer_locks
from portal.core.normalizers import ZERO, resolve_instant, to_epoch_ms, to_money
from portal.models.customer import Customer, CustomerStatus, StorageType
from portal.models.inventory import InventoryItem, IN_STOCK
from portal.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from portal.models.storage_pricing import StoragePricing
from portal.schemas.invoice import CustomerOutcome, GenerationStatus
from portal.services.invoice_numbering import (
    generate_invoice_number, generate_order_number, stamp_test_invoice_month
)
from portal.services.shipment_invoice_service import (
    format_quantity, round_money, round_quantity, sold_to_snapshot
)


logger = logging.getLogger(__name__)

STORAGE_FBM = "Storage Fee"

# Admin-facing messages for outcomes that stop a test invoice
SKIP_MESSAGES = {
    GenerationStatus.SKIPPED_USER_NOT_APPROVED: "User is not approved",
    GenerationStatus.SKIPPED_NO_STORAGE_TYPE: "User has no storageType",
    GenerationStatus.SKIPPED_NO_STORAGE_PRICING: "No storage pricing configured",
    GenerationStatus.SKIPPED_INVALID_PRICE: "Invalid storage price",
    GenerationStatus.SKIPPED_INVOICE_EXISTS: "Storage invoice already exists for this month",
    GenerationStatus.SKIPPED_NO_CHARGE: "No charge for this month (0 items/pallets)",
}


class StorageInvoiceError(Exception):
    """Exception raised when a storage invoice cannot be generated."""

    def __init__(self, message: str, status: Optional[GenerationStatus] = None):
        super().__init__(message)
        self.status = status


class StorageCustomerNotFoundError(StorageInvoiceError):
    pass


class UnsupportedStorageTypeError(StorageInvoiceError):
    pass


@dataclass(frozen=True)
class BillingMonth:
    year: int
    month: int

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)

    @property
    def end(self) -> datetime:
        """Start of the following month (exclusive bound)."""
        if self.month == 12:
            return datetime(self.year + 1, 1, 1, tzinfo=timezone.utc)
        return datetime(self.year, self.month + 1, 1, tzinfo=timezone.utc)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @classmethod
    def of(cls, instant: datetime) -> "BillingMonth":
        return cls(instant.year, instant.month)


def parse_invoice_month(value: Optional[str], now: datetime) -> BillingMonth:
    """YYYY-MM -> BillingMonth; absent or malformed values mean the current month."""
    if value:
        parts = value.strip().split("-")
        if len(parts) == 2 and len(parts[0]) == 4 and len(parts[1]) == 2 \
                and parts[0].isdigit() and parts[1].isdigit():
            year, month = int(parts[0]), int(parts[1])
            if 1 <= month <= 12:
                return BillingMonth(year, month)
        logger.warning(f"Ignoring malformed invoice month {value!r}, using current month")
    return BillingMonth.of(now)


def select_latest_pricing(records: Iterable[Any]) -> Optional[Any]:
    """Most recently updated pricing record; the first one wins a tie."""
    latest = None
    latest_ms = -1
    for record in records:
        stamp = max(to_epoch_ms(record.updated_at), to_epoch_ms(record.created_at))
        if stamp > latest_ms:
            latest, latest_ms = record, stamp
    return latest


@dataclass
class StorageFee:
    storage_type: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    description: str
    pallet_count: Optional[int] = None


def count_billable_units(inventory: Iterable[Any], month: BillingMonth, now: datetime) -> Decimal:
    """
    In-stock units that were already in the warehouse before the target month.

    Stock with an unreadable date_added is dated `now`.
    """
    count = ZERO
    for item in inventory:
        if getattr(item, "status", None) != IN_STOCK:
            continue
        added = resolve_instant(item.date_added) or now
        if month.contains(added):
            continue
        count += to_money(item.quantity)
    return count


def calculate_storage_fee(
    storage_type: Optional[str],
    price: Decimal,
    pallet_count: Optional[int],
    inventory: Iterable[Any],
    month: BillingMonth,
    now: datetime,
) -> StorageFee:
    """Storage charge for one customer and month. Pure; raises on unknown modes."""
    price = round_money(price)

    if storage_type == StorageType.PRODUCT_BASE.value:
        units = round_quantity(count_billable_units(inventory, month, now))
        return StorageFee(
            storage_type=storage_type,
            quantity=units,
            unit_price=price,
            amount=round_money(units * price),
            description=f"Storage - Product Base ({format_quantity(units)} items)",
        )

    if storage_type == StorageType.PALLET_BASE.value:
        pallets = int(pallet_count or 1)
        return StorageFee(
            storage_type=storage_type,
            quantity=Decimal(pallets),
            unit_price=price,
            amount=round_money(pallets * price),
            description=f"Storage - Pallet Base ({pallets} pallet{'s' if pallets > 1 else ''})",
            pallet_count=pallets,
        )

    raise UnsupportedStorageTypeError(f"Unsupported storageType: {storage_type}")


class StorageFeeService:
    """Service for monthly storage invoicing."""

    def __init__(
        self,
        db: AsyncSession,
        locks: Optional[CustomerLockRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.locks = locks or customer_locks
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def list_customer_ids(self, customer_id: Optional[uuid.UUID] = None) -> List[uuid.UUID]:
        query = select(Customer.id).order_by(Customer.created_at)
        if customer_id:
            query = query.where(Customer.id == customer_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _load_pricing(self, customer_id: uuid.UUID) -> List[StoragePricing]:
        result = await self.db.execute(
            select(StoragePricing).where(StoragePricing.customer_id == customer_id)
        )
        return list(result.scalars().all())

    async def _load_in_stock(self, customer_id: uuid.UUID) -> List[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem).where(
                and_(
                    InventoryItem.customer_id == customer_id,
                    InventoryItem.status == IN_STOCK
                )
            )
        )
        return list(result.scalars().all())

    async def _month_already_invoiced(self, customer_id: uuid.UUID, invoice_month: str) -> bool:
        existing = await self.db.scalar(
            select(Invoice.id).where(
                and_(
                    Invoice.customer_id == customer_id,
                    Invoice.invoice_type == InvoiceType.STORAGE.value,
                    Invoice.invoice_month == invoice_month
                )
            ).limit(1)
        )
        return existing is not None

    async def _unique_invoice_number(self, now: datetime) -> str:
        for attempt in range(5):
            candidate = generate_invoice_number(now, salt=attempt > 0)
            exists = await self.db.scalar(
                select(Invoice.id).where(Invoice.invoice_number == candidate)
            )
            if exists is None:
                return candidate
        raise StorageInvoiceError("Could not allocate a unique invoice number")

    async def _persist(
        self,
        customer: Customer,
        fee: StorageFee,
        month: BillingMonth,
        invoice_month: str,
        now: datetime,
        test: bool,
        generated_by: Optional[str],
    ) -> Invoice:
        invoice = Invoice(
            customer_id=customer.id,
            invoice_number=await self._unique_invoice_number(now),
            order_number=generate_order_number(now, "STOR"),
            invoice_date=now.date(),
            invoice_type=InvoiceType.STORAGE.value,
            status=InvoiceStatus.PENDING.value,
            sold_to=sold_to_snapshot(customer),
            fbm=STORAGE_FBM,
            subtotal=fee.amount,
            grand_total=fee.amount,
            invoice_month=invoice_month,
            storage_type=fee.storage_type,
            item_count=fee.quantity,
            pallet_count=fee.pallet_count,
            auto_generated=True,
            auto_generated_at=now,
            is_test=test,
            test_of_invoice_month=month.label if test else None,
            generated_by=generated_by,
            created_at=now,
        )
        invoice.items = [
            InvoiceLineItem(
                line_number=1,
                quantity=fee.quantity,
                product_name=fee.description,
                ship_date=month.label,
                ship_to="N/A",
                packaging="Storage",
                unit_price=fee.unit_price,
                amount=fee.amount,
            )
        ]
        self.db.add(invoice)
        await self.db.commit()
        return invoice

    async def generate_for_customer(
        self,
        customer_id: uuid.UUID,
        month: BillingMonth,
        test: bool = False,
        force: bool = False,
        generated_by: Optional[str] = None,
    ) -> CustomerOutcome:
        """Generate the storage invoice for one customer and month."""
        async with self.locks.acquire(customer_id, scope="storage"):
            customer = await self.db.get(Customer, customer_id)
            if customer is None:
                raise StorageCustomerNotFoundError(f"Customer {customer_id} not found")

            def skipped(status: GenerationStatus, **extra) -> CustomerOutcome:
                return CustomerOutcome(customer_id=customer_id, status=status, **extra)

            if customer.status and customer.status != CustomerStatus.APPROVED.value:
                return skipped(GenerationStatus.SKIPPED_USER_NOT_APPROVED)

            if not customer.storage_type:
                return skipped(GenerationStatus.SKIPPED_NO_STORAGE_TYPE)

            pricing = select_latest_pricing(await self._load_pricing(customer_id))
            if pricing is None:
                logger.warning(f"Customer {customer_id} has storage type but no pricing")
                return skipped(GenerationStatus.SKIPPED_NO_STORAGE_PRICING)

            price = to_money(pricing.price)
            if price <= 0:
                logger.warning(f"Customer {customer_id} has invalid storage price {pricing.price!r}")
                return skipped(GenerationStatus.SKIPPED_INVALID_PRICE)

            now = self.clock()
            invoice_month = stamp_test_invoice_month(month.label, now) if test else month.label

            if not force and not test and await self._month_already_invoiced(customer_id, invoice_month):
                return skipped(GenerationStatus.SKIPPED_INVOICE_EXISTS, invoice_month=invoice_month)

            inventory = []
            if customer.storage_type == StorageType.PRODUCT_BASE.value:
                inventory = await self._load_in_stock(customer_id)

            fee = calculate_storage_fee(
                customer.storage_type, price, pricing.pallet_count, inventory, month, now
            )
            if fee.amount <= 0:
                return skipped(GenerationStatus.SKIPPED_NO_CHARGE, item_count=fee.quantity)

            invoice = await self._persist(
                customer, fee, month, invoice_month, now, test, generated_by
            )

        logger.info(
            f"Storage invoice {invoice.invoice_number} ({invoice_month}) created for "
            f"customer {customer_id}: {fee.storage_type} x{fee.quantity}, total {fee.amount}"
        )
        return CustomerOutcome(
            customer_id=customer_id,
            status=GenerationStatus.INVOICE_CREATED,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            storage_type=fee.storage_type,
            item_count=fee.quantity,
            total=fee.amount,
            invoice_month=invoice_month,
            is_test=True if test else None,
        )

    async def generate_for_all(
        self,
        month: BillingMonth,
        customer_id: Optional[uuid.UUID] = None,
        test: bool = False,
        force: bool = False,
    ) -> List[CustomerOutcome]:
        """Storage invoicing for every customer (or just one), sequentially."""
        customer_ids = await self.list_customer_ids(customer_id)
        outcomes: List[CustomerOutcome] = []

        for cid in customer_ids:
            try:
                outcome = await self.generate_for_customer(cid, month, test=test, force=force)
            except Exception as e:
                await self.db.rollback()
                logger.exception(f"Storage invoicing failed for customer {cid}")
                outcome = CustomerOutcome(
                    customer_id=cid,
                    status=GenerationStatus.ERROR,
                    detail=str(e) or e.__class__.__name__,
                )
            outcomes.append(outcome)

        created = sum(1 for o in outcomes if o.created)
        logger.info(
            f"Storage invoicing for {month.label} finished: "
            f"{created}/{len(outcomes)} customers invoiced"
        )
        return outcomes

    async def generate_test_invoice(
        self,
        customer_id: uuid.UUID,
        month: BillingMonth,
        generated_by: str,
    ) -> CustomerOutcome:
        """
        Admin path: one test storage invoice for one customer.

        Every outcome other than a created invoice is raised as
        StorageInvoiceError so the caller can report why nothing was billed.
        """
        outcome = await self.generate_for_customer(
            customer_id, month, test=True, generated_by=generated_by
        )
        if not outcome.created:
            raise StorageInvoiceError(
                SKIP_MESSAGES.get(outcome.status, outcome.status.value),
                status=outcome.status,
            )
        return outcome
