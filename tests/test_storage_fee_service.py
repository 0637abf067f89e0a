"""Tests for monthly storage invoicing."""
import re
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from portal.schemas.invoice import GenerationStatus
from portal.services.invoice_service import InvoiceService
from portal.services.storage_fee_service import (
    BillingMonth,
    StorageCustomerNotFoundError,
    StorageFeeService,
    StorageInvoiceError,
    UnsupportedStorageTypeError,
    calculate_storage_fee,
    count_billable_units,
    parse_invoice_month,
    select_latest_pricing,
)
from tests.conftest import FIXED_NOW, fixed_clock


NOVEMBER = BillingMonth(2025, 11)
LAST_MONTH = "2025-10-15T09:00:00Z"
THIS_MONTH = "2025-11-03T09:00:00Z"


@pytest.fixture
def service(db, locks):
    return StorageFeeService(db, locks, clock=fixed_clock)


# ============================================================================
# PURE CALCULATION
# ============================================================================

def test_billing_month_bounds():
    december = BillingMonth(2025, 12)
    assert december.label == "2025-12"
    assert december.end.year == 2026 and december.end.month == 1
    assert NOVEMBER.contains(FIXED_NOW)
    assert not NOVEMBER.contains(december.start)


def test_parse_invoice_month():
    assert parse_invoice_month("2025-09", FIXED_NOW) == BillingMonth(2025, 9)
    assert parse_invoice_month(None, FIXED_NOW) == NOVEMBER
    assert parse_invoice_month("2025-13", FIXED_NOW) == NOVEMBER
    assert parse_invoice_month("Sept 2025", FIXED_NOW) == NOVEMBER


def test_select_latest_pricing():
    older = SimpleNamespace(price=1, created_at="2025-01-01", updated_at="2025-06-01")
    newer = SimpleNamespace(price=2, created_at={"seconds": 1756684800}, updated_at=None)  # 2025-09-01
    undated = SimpleNamespace(price=3, created_at=None, updated_at=None)

    assert select_latest_pricing([older, newer, undated]) is newer
    assert select_latest_pricing([]) is None


def test_select_latest_pricing_tie_keeps_first():
    first = SimpleNamespace(price=1, created_at="2025-06-01", updated_at=None)
    second = SimpleNamespace(price=2, created_at="2025-06-01", updated_at=None)
    assert select_latest_pricing([first, second]) is first


def test_count_billable_units_first_month_free():
    inventory = [
        SimpleNamespace(status="In Stock", quantity=5, date_added=LAST_MONTH),
        SimpleNamespace(status="In Stock", quantity=3, date_added=THIS_MONTH),
        SimpleNamespace(status="Out of Stock", quantity=7, date_added=LAST_MONTH),
        SimpleNamespace(status="In Stock", quantity=4, date_added=None),  # dated now
        SimpleNamespace(status="In Stock", quantity=-2, date_added=LAST_MONTH),
    ]
    assert count_billable_units(inventory, NOVEMBER, FIXED_NOW) == 5


def test_pallet_fee_defaults_to_one_pallet():
    fee = calculate_storage_fee("pallet_base", Decimal("20"), None, [], NOVEMBER, FIXED_NOW)
    assert fee.quantity == 1
    assert fee.amount == Decimal("20.00")
    assert fee.description == "Storage - Pallet Base (1 pallet)"


def test_fee_uses_stored_price_precision():
    fee = calculate_storage_fee("pallet_base", Decimal("20.005"), 3, [], NOVEMBER, FIXED_NOW)
    assert fee.unit_price == Decimal("20.01")
    assert fee.amount == fee.quantity * fee.unit_price


def test_unsupported_storage_type_raises():
    with pytest.raises(UnsupportedStorageTypeError):
        calculate_storage_fee("volume_base", Decimal("5"), 1, [], NOVEMBER, FIXED_NOW)


# ============================================================================
# GENERATION
# ============================================================================

async def test_pallet_base_invoice(service, db, make_customer, make_pricing):
    customer = await make_customer(storage_type="pallet_base")
    await make_pricing(customer, 20, pallet_count=3, created_at="2025-01-01")

    outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert outcome.status == GenerationStatus.INVOICE_CREATED
    assert outcome.total == Decimal("60")
    assert outcome.invoice_month == "2025-11"

    invoice = await InvoiceService(db).get_invoice(outcome.invoice_id)
    assert invoice.invoice_type == "storage"
    assert invoice.fbm == "Storage Fee"
    assert invoice.grand_total == Decimal("60")
    assert invoice.subtotal == invoice.grand_total
    assert invoice.pallet_count == 3
    assert invoice.is_test is False
    assert re.match(r"^STOR-20251121-\d{4}$", invoice.order_number)

    (line,) = invoice.items
    assert line.quantity == 3
    assert line.unit_price == 20
    assert line.amount == 60
    assert line.product_name == "Storage - Pallet Base (3 pallets)"
    assert line.ship_date == "2025-11"
    assert line.packaging == "Storage"
    assert line.shipment_id is None


async def test_product_base_excludes_current_month_stock(service, db, make_customer, make_pricing, make_inventory):
    customer = await make_customer(storage_type="product_base")
    await make_pricing(customer, 2)
    await make_inventory(customer, 5, LAST_MONTH)
    await make_inventory(customer, 3, THIS_MONTH)

    outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert outcome.status == GenerationStatus.INVOICE_CREATED
    assert outcome.item_count == 5
    assert outcome.total == Decimal("10")

    invoice = await InvoiceService(db).get_invoice(outcome.invoice_id)
    assert invoice.items[0].product_name == "Storage - Product Base (5 items)"


async def test_latest_pricing_record_is_used(service, make_customer, make_pricing):
    customer = await make_customer(storage_type="pallet_base")
    await make_pricing(customer, 50, pallet_count=1, created_at="2025-01-01")
    await make_pricing(customer, 30, pallet_count=2, created_at="2025-01-01", updated_at="2025-10-01")

    outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert outcome.total == Decimal("60")


async def test_only_new_stock_means_no_charge(service, db, make_customer, make_pricing, make_inventory):
    customer = await make_customer(storage_type="product_base")
    await make_pricing(customer, 2)
    await make_inventory(customer, 3, THIS_MONTH)

    outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert outcome.status == GenerationStatus.SKIPPED_NO_CHARGE
    assert outcome.invoice_id is None


async def test_month_is_billed_once(service, make_customer, make_pricing):
    customer = await make_customer(storage_type="pallet_base")
    await make_pricing(customer, 20, pallet_count=1)

    first = await service.generate_for_customer(customer.id, NOVEMBER)
    second = await service.generate_for_customer(customer.id, NOVEMBER)
    forced = await service.generate_for_customer(customer.id, NOVEMBER, force=True)
    other_month = await service.generate_for_customer(customer.id, BillingMonth(2025, 10))

    assert first.status == GenerationStatus.INVOICE_CREATED
    assert second.status == GenerationStatus.SKIPPED_INVOICE_EXISTS
    assert forced.status == GenerationStatus.INVOICE_CREATED
    assert other_month.status == GenerationStatus.INVOICE_CREATED


async def test_test_run_does_not_block_real_run(service, db, make_customer, make_pricing):
    customer = await make_customer(storage_type="pallet_base")
    await make_pricing(customer, 20, pallet_count=2)

    test_outcome = await service.generate_test_invoice(customer.id, NOVEMBER, generated_by="ops@warehouse.test")
    real_outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert test_outcome.is_test is True
    assert test_outcome.invoice_month == "2025-11-test-20251121-143000"
    assert real_outcome.status == GenerationStatus.INVOICE_CREATED
    assert real_outcome.invoice_month == "2025-11"

    test_invoice = await InvoiceService(db).get_invoice(test_outcome.invoice_id)
    assert test_invoice.is_test is True
    assert test_invoice.test_of_invoice_month == "2025-11"
    assert test_invoice.generated_by == "ops@warehouse.test"


@pytest.mark.parametrize("fields, pricing, expected", [
    ({"status": "pending", "storage_type": "pallet_base"}, 20, GenerationStatus.SKIPPED_USER_NOT_APPROVED),
    ({"storage_type": None}, 20, GenerationStatus.SKIPPED_NO_STORAGE_TYPE),
    ({"storage_type": "pallet_base"}, None, GenerationStatus.SKIPPED_NO_STORAGE_PRICING),
    ({"storage_type": "pallet_base"}, 0, GenerationStatus.SKIPPED_INVALID_PRICE),
])
async def test_skip_reasons(service, make_customer, make_pricing, fields, pricing, expected):
    customer = await make_customer(**fields)
    if pricing is not None:
        await make_pricing(customer, pricing, pallet_count=1)

    outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert outcome.status == expected


async def test_missing_status_counts_as_approved(service, make_customer, make_pricing):
    customer = await make_customer(status=None, storage_type="pallet_base")
    assert customer.status is None
    await make_pricing(customer, 20, pallet_count=1)

    outcome = await service.generate_for_customer(customer.id, NOVEMBER)

    assert outcome.status == GenerationStatus.INVOICE_CREATED


async def test_test_invoice_reports_skip_reason(service, make_customer):
    customer = await make_customer(status="pending", storage_type="pallet_base")

    with pytest.raises(StorageInvoiceError) as exc_info:
        await service.generate_test_invoice(customer.id, NOVEMBER, generated_by="ops")

    assert str(exc_info.value) == "User is not approved"
    assert exc_info.value.status == GenerationStatus.SKIPPED_USER_NOT_APPROVED


async def test_test_invoice_unknown_customer(service):
    with pytest.raises(StorageCustomerNotFoundError):
        await service.generate_test_invoice(uuid.uuid4(), NOVEMBER, generated_by="ops")


async def test_batch_records_unsupported_mode_as_error(service, locks, make_customer, make_pricing):
    odd = await make_customer(name="Odd Co", storage_type="volume_base")
    await make_pricing(odd, 5, pallet_count=1)
    pallets = await make_customer(name="Pallet Co", storage_type="pallet_base")
    await make_pricing(pallets, 20, pallet_count=1)
    odd_id, pallets_id = odd.id, pallets.id

    outcomes = {o.customer_id: o for o in await service.generate_for_all(NOVEMBER)}

    assert outcomes[odd_id].status == GenerationStatus.ERROR
    assert "volume_base" in outcomes[odd_id].detail
    assert outcomes[pallets_id].status == GenerationStatus.INVOICE_CREATED
    assert not locks.is_locked(odd_id, scope="storage")


async def test_batch_for_single_customer(service, make_customer, make_pricing):
    first = await make_customer(storage_type="pallet_base")
    second = await make_customer(storage_type="pallet_base")
    await make_pricing(first, 20, pallet_count=1)
    await make_pricing(second, 20, pallet_count=1)

    outcomes = await service.generate_for_all(NOVEMBER, customer_id=second.id)

    assert [o.customer_id for o in outcomes] == [second.id]
