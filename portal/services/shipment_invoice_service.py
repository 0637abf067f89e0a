"""
Shipment Invoice Service - per-customer invoicing of shipped goods.

For each customer, collects shipments that no invoice references yet, turns
them into line items, adds additional-service charges (bubble wrap, sticker
removal, warning labels) and writes one pending invoice.

Flow per customer (all under the customer's lock):
    1. read shipments, invoice history, inventory
    2. ledger filter: drop shipments already on an invoice
    3. normalize items, amount = quantity x unit price, drop quantity <= 0
    4. enrich SKU from inventory by product reference
    5. product subtotal + additional services = grand total
    6. grand total <= 0 -> skip, nothing is written
    7. persist invoice + line items in one commit

Re-running over unchanged data is a no-op: every billed shipment id is on a
line item, and the ledger is rebuilt from those on each run.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.locks import CustomerLockRegistry, customer_locks
from portal.core.normalizers import ZERO, format_ship_date, resolve_instant, to_money
from portal.models.customer import Customer
from portal.models.inventory import InventoryItem
from portal.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from portal.models.shipment import Shipment
from portal.schemas.invoice import CustomerOutcome, GenerationStatus
from portal.services.invoice_ledger import billed_shipment_ids, partition_shipments
from portal.services.invoice_numbering import generate_invoice_number, generate_order_number
from portal.services.shipment_items import normalize_shipment_items


logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")
SHIPMENT_FBM = "Standard Shipping"


class InvoiceGenerationError(Exception):
    """Exception raised when invoice generation fails."""
    pass


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def format_quantity(value: Decimal) -> str:
    """10.000 -> '10', 2.50 -> '2.5'."""
    return format(value.normalize(), "f")


def sold_to_snapshot(customer: Any) -> Dict[str, str]:
    """Bill-to details copied onto the invoice at generation time."""
    return {
        "name": customer.name or customer.company_name or "Client",
        "email": customer.email or "",
        "phone": customer.phone or "",
        "address": customer.address or "",
    }


@dataclass
class LineItemDraft:
    quantity: Decimal
    product_name: str
    unit_price: Decimal
    amount: Decimal
    ship_date: str
    packaging: str
    shipment_id: Optional[str] = None
    ship_to: Optional[str] = None
    sku: Optional[str] = None


@dataclass
class AdditionalServices:
    """
    Service usage summed over the invoiced shipments.

    Unit prices are stored on each shipment but treated as customer-wide:
    the first non-zero price seen wins.
    """
    bubble_wrap_feet: Decimal = ZERO
    sticker_removal_items: Decimal = ZERO
    warning_labels: Decimal = ZERO
    price_per_foot: Decimal = ZERO
    price_per_item: Decimal = ZERO
    price_per_label: Decimal = ZERO

    def add(self, services: Optional[Mapping[str, Any]]) -> None:
        if not isinstance(services, Mapping):
            return
        self.bubble_wrap_feet += to_money(services.get("bubbleWrapFeet"))
        self.sticker_removal_items += to_money(services.get("stickerRemovalItems"))
        self.warning_labels += to_money(services.get("warningLabels"))
        if not self.price_per_foot:
            self.price_per_foot = to_money(services.get("pricePerFoot"))
        if not self.price_per_item:
            self.price_per_item = to_money(services.get("pricePerItem"))
        if not self.price_per_label:
            self.price_per_label = to_money(services.get("pricePerLabel"))

    @property
    def total(self) -> Decimal:
        return round_money(
            self.bubble_wrap_feet * self.price_per_foot
            + self.sticker_removal_items * self.price_per_item
            + self.warning_labels * self.price_per_label
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "bubbleWrapFeet": float(self.bubble_wrap_feet),
            "stickerRemovalItems": float(self.sticker_removal_items),
            "warningLabels": float(self.warning_labels),
            "pricePerFoot": float(self.price_per_foot),
            "pricePerItem": float(self.price_per_item),
            "pricePerLabel": float(self.price_per_label),
            "total": float(self.total),
        }


@dataclass
class ShipmentInvoiceDraft:
    items: List[LineItemDraft]
    product_subtotal: Decimal
    additional_services: AdditionalServices
    grand_total: Decimal
    shipments_processed: int
    shipment_ids: List[str] = field(default_factory=list)


def _shipment_sort_key(shipment: Any) -> Tuple[bool, datetime]:
    # Oldest first; shipments with an unreadable date go last
    resolved = resolve_instant(getattr(shipment, "date", None))
    return (resolved is None, resolved or datetime.min.replace(tzinfo=timezone.utc))


def build_sku_lookup(inventory: Iterable[Any]) -> Dict[str, str]:
    """Inventory id -> SKU, for items that have one."""
    lookup: Dict[str, str] = {}
    for item in inventory:
        sku = (getattr(item, "sku", None) or "").strip()
        if sku:
            lookup[str(item.id)] = sku
    return lookup


def build_shipment_invoice(
    shipments: List[Any],
    invoices: List[Any],
    inventory: Iterable[Any] = (),
) -> Tuple[GenerationStatus, Optional[ShipmentInvoiceDraft]]:
    """
    Compute the next shipment invoice for one customer without touching storage.

    Returns the outcome status and, when an invoice should be created, the draft.
    """
    if not shipments:
        return GenerationStatus.SKIPPED_NO_SHIPMENTS, None

    partition = partition_shipments(shipments, billed_shipment_ids(invoices))
    if not partition.billable:
        return GenerationStatus.SKIPPED_ALL_INVOICED, None

    sku_lookup = build_sku_lookup(inventory)
    services = AdditionalServices()
    items: List[LineItemDraft] = []
    included: List[str] = []

    for shipment in sorted(partition.billable, key=_shipment_sort_key):
        shipment_id = str(shipment.id)
        ship_date = format_ship_date(shipment.date, "N/A")
        shipment_lines = 0

        for product in normalize_shipment_items(shipment):
            # Stored at column precision; amount is computed from the stored values
            quantity = round_quantity(product.boxes_shipped)
            if quantity <= 0:
                continue
            unit_price = round_money(product.unit_price)

            items.append(LineItemDraft(
                quantity=quantity,
                product_name=product.product_name,
                unit_price=unit_price,
                amount=round_money(quantity * unit_price),
                ship_date=ship_date,
                packaging=f"{format_quantity(product.pack_of)} Nos.",
                shipment_id=shipment_id,
                ship_to=shipment.ship_to,
                sku=sku_lookup.get(product.product_id) if product.product_id else None,
            ))
            shipment_lines += 1

        # Services ride along only with shipments that put a line on this invoice
        if shipment_lines:
            services.add(shipment.additional_services)
            included.append(shipment_id)

    if not items:
        return GenerationStatus.SKIPPED_NO_BILLABLE_ITEMS, None

    product_subtotal = sum((item.amount for item in items), ZERO)
    grand_total = product_subtotal + services.total

    if grand_total <= 0:
        return GenerationStatus.SKIPPED_ZERO_TOTAL, None

    return GenerationStatus.INVOICE_CREATED, ShipmentInvoiceDraft(
        items=items,
        product_subtotal=product_subtotal,
        additional_services=services,
        grand_total=grand_total,
        shipments_processed=len(partition.billable),
        shipment_ids=included,
    )


class ShipmentInvoiceService:
    """Service for automatic shipment invoicing."""

    def __init__(
        self,
        db: AsyncSession,
        locks: Optional[CustomerLockRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.locks = locks or customer_locks
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # READS
    # =========================================================================

    async def list_customer_ids(self) -> List[uuid.UUID]:
        result = await self.db.execute(select(Customer.id).order_by(Customer.created_at))
        return list(result.scalars().all())

    async def _load_shipments(self, customer_id: uuid.UUID) -> List[Shipment]:
        result = await self.db.execute(
            select(Shipment).where(Shipment.customer_id == customer_id)
        )
        return list(result.scalars().all())

    async def _load_invoices(self, customer_id: uuid.UUID) -> List[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.customer_id == customer_id)
        )
        return list(result.scalars().all())

    async def _load_inventory(self, customer_id: uuid.UUID) -> List[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem).where(InventoryItem.customer_id == customer_id)
        )
        return list(result.scalars().all())

    async def _unique_invoice_number(self, now: datetime) -> str:
        for attempt in range(5):
            candidate = generate_invoice_number(now, salt=attempt > 0)
            exists = await self.db.scalar(
                select(Invoice.id).where(Invoice.invoice_number == candidate)
            )
            if exists is None:
                return candidate
        raise InvoiceGenerationError("Could not allocate a unique invoice number")

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def _persist(
        self,
        customer: Customer,
        draft: ShipmentInvoiceDraft,
        now: datetime
    ) -> Invoice:
        services_total = draft.additional_services.total
        invoice = Invoice(
            customer_id=customer.id,
            invoice_number=await self._unique_invoice_number(now),
            order_number=generate_order_number(now, "ORD"),
            invoice_date=now.date(),
            invoice_type=InvoiceType.SHIPMENT.value,
            status=InvoiceStatus.PENDING.value,
            sold_to=sold_to_snapshot(customer),
            fbm=SHIPMENT_FBM,
            subtotal=draft.product_subtotal,
            grand_total=draft.grand_total,
            additional_services=draft.additional_services.as_dict() if services_total > 0 else None,
            auto_generated=True,
            auto_generated_at=now,
            created_at=now,
        )
        invoice.items = [
            InvoiceLineItem(
                line_number=line_number,
                quantity=item.quantity,
                product_name=item.product_name,
                sku=item.sku,
                ship_date=item.ship_date,
                ship_to=item.ship_to,
                packaging=item.packaging,
                unit_price=item.unit_price,
                amount=item.amount,
                shipment_id=item.shipment_id,
            )
            for line_number, item in enumerate(draft.items, start=1)
        ]

        self.db.add(invoice)
        await self.db.commit()
        return invoice

    async def generate_for_customer(self, customer_id: uuid.UUID) -> CustomerOutcome:
        """
        Generate at most one shipment invoice for a customer.

        Raises InvoiceGenerationError if the customer does not exist; read and
        write errors propagate to the caller.
        """
        async with self.locks.acquire(customer_id):
            customer = await self.db.get(Customer, customer_id)
            if customer is None:
                raise InvoiceGenerationError(f"Customer {customer_id} not found")

            shipments = await self._load_shipments(customer_id)
            invoices = await self._load_invoices(customer_id)
            inventory = await self._load_inventory(customer_id) if shipments else []

            status, draft = build_shipment_invoice(shipments, invoices, inventory)
            if draft is None:
                logger.debug(f"Customer {customer_id}: {status.value}")
                return CustomerOutcome(customer_id=customer_id, status=status)

            now = self.clock()
            invoice = await self._persist(customer, draft, now)

        logger.info(
            f"Invoice {invoice.invoice_number} created for customer {customer_id}: "
            f"{draft.shipments_processed} shipments, {len(draft.items)} items, total {draft.grand_total}"
        )
        return CustomerOutcome(
            customer_id=customer_id,
            status=GenerationStatus.INVOICE_CREATED,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            shipments_processed=draft.shipments_processed,
            items_processed=len(draft.items),
            total=draft.grand_total,
        )

    async def generate_for_all(self) -> List[CustomerOutcome]:
        """
        Run shipment invoicing for every customer, one at a time.

        A failure for one customer is recorded as that customer's error
        outcome and the batch moves on. Failure to list customers propagates.
        """
        customer_ids = await self.list_customer_ids()
        outcomes: List[CustomerOutcome] = []

        for customer_id in customer_ids:
            try:
                outcome = await self.generate_for_customer(customer_id)
            except Exception as e:
                await self.db.rollback()
                logger.exception(f"Shipment invoicing failed for customer {customer_id}")
                outcome = CustomerOutcome(
                    customer_id=customer_id,
                    status=GenerationStatus.ERROR,
                    detail=str(e) or e.__class__.__name__,
                )
            outcomes.append(outcome)

        created = sum(1 for o in outcomes if o.created)
        logger.info(f"Shipment invoicing finished: {created}/{len(outcomes)} customers invoiced")
        return outcomes
