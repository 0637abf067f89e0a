"""HTTP tests: trigger authorization, batch responses, invoice reads and admin actions."""

import pytest

from portal.config import Settings
from tests.conftest import CRON_SECRET, widget_items


TRIGGER_HEADERS = {"Authorization": f"Bearer {CRON_SECRET}"}


# ============================================================================
# TRIGGER AUTHORIZATION
# ============================================================================

async def test_trigger_rejects_missing_secret(client):
    response = await client.post("/api/v1/invoices/generate-daily")
    assert response.status_code == 401


async def test_trigger_rejects_wrong_secret(client):
    response = await client.get(
        "/api/v1/invoices/generate-daily",
        headers={"Authorization": "Bearer nope"},
    )
    assert response.status_code == 401


async def test_trigger_accepts_query_secret(client):
    response = await client.get(f"/api/v1/invoices/generate-daily?secret={CRON_SECRET}")
    assert response.status_code == 200


async def test_trigger_unconfigured_secret(client, app_settings):
    app_settings.INVOICE_CRON_SECRET = None
    response = await client.post("/api/v1/invoices/generate-daily", headers=TRIGGER_HEADERS)
    assert response.status_code == 503


async def test_trigger_auth_can_be_disabled(client, app_settings):
    app_settings.INVOICE_TRIGGER_AUTH_REQUIRED = False
    app_settings.INVOICE_CRON_SECRET = None
    response = await client.post("/api/v1/invoices/generate-daily")
    assert response.status_code == 200


# ============================================================================
# BATCH RESPONSES
# ============================================================================

async def test_generate_daily(client, make_customer, make_shipment):
    customer = await make_customer()
    await make_shipment(customer, items=widget_items(boxes=2, price=5))
    idle = await make_customer(name="Idle Co")

    response = await client.post("/api/v1/invoices/generate-daily", headers=TRIGGER_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "invoice_date" in body
    assert body["summary"] == {"invoice_created": 1, "skipped_no_shipments": 1}

    results = {r["customer_id"]: r for r in body["results"]}
    created = results[str(customer.id)]
    assert created["status"] == "invoice_created"
    assert created["total"] == 10.0
    assert created["invoice_number"].startswith("INV-")
    assert results[str(idle.id)] == {"customer_id": str(idle.id), "status": "skipped_no_shipments"}

    rerun = await client.post("/api/v1/invoices/generate-daily", headers=TRIGGER_HEADERS)
    assert rerun.json()["summary"] == {"skipped_all_invoiced": 1, "skipped_no_shipments": 1}


async def test_generate_monthly_storage(client, make_customer, make_pricing):
    customer = await make_customer(storage_type="pallet_base")
    await make_pricing(customer, 20, pallet_count=3)

    response = await client.get(
        "/api/v1/invoices/generate-monthly-storage",
        params={"month": "2025-10", "secret": CRON_SECRET},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["invoice_month"] == "2025-10"
    (result,) = body["results"]
    assert result["status"] == "invoice_created"
    assert result["storage_type"] == "pallet_base"
    assert result["total"] == 60.0
    assert result["item_count"] == 3.0

    again = await client.post(
        "/api/v1/invoices/generate-monthly-storage",
        params={"month": "2025-10", "customer_id": str(customer.id)},
        headers=TRIGGER_HEADERS,
    )
    assert again.json()["summary"] == {"skipped_invoice_exists": 1}

    forced = await client.post(
        "/api/v1/invoices/generate-monthly-storage",
        params={"month": "2025-10", "force": "true"},
        headers=TRIGGER_HEADERS,
    )
    assert forced.json()["summary"] == {"invoice_created": 1}


async def test_customer_listing_failure_returns_500(client, monkeypatch):
    from portal.services.shipment_invoice_service import ShipmentInvoiceService

    async def broken(self):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(ShipmentInvoiceService, "list_customer_ids", broken)

    response = await client.post("/api/v1/invoices/generate-daily", headers=TRIGGER_HEADERS)

    assert response.status_code == 500
    assert response.json() == {
        "error": "Auto invoice generation failed",
        "details": "database unavailable",
    }


# ============================================================================
# INVOICES
# ============================================================================

async def test_invoice_reads_and_mark_paid(client, make_customer, make_shipment, admin_headers):
    customer = await make_customer()
    await make_shipment(customer, items=widget_items())
    await client.post("/api/v1/invoices/generate-daily", headers=TRIGGER_HEADERS)

    listing = await client.get(f"/api/v1/customers/{customer.id}/invoices")
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    invoice_id = listing.json()["items"][0]["id"]

    detail = await client.get(f"/api/v1/invoices/{invoice_id}")
    assert detail.status_code == 200
    assert detail.json()["status"] == "pending"
    assert len(detail.json()["items"]) == 1

    unauthorized = await client.post(f"/api/v1/invoices/{invoice_id}/mark-paid")
    assert unauthorized.status_code == 401

    paid = await client.post(f"/api/v1/invoices/{invoice_id}/mark-paid", headers=admin_headers)
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["paid_at"] is not None

    again = await client.post(f"/api/v1/invoices/{invoice_id}/mark-paid", headers=admin_headers)
    assert again.status_code == 409


async def test_unknown_invoice(client, random_id, admin_headers):
    assert (await client.get(f"/api/v1/invoices/{random_id}")).status_code == 404
    response = await client.post(f"/api/v1/invoices/{random_id}/mark-paid", headers=admin_headers)
    assert response.status_code == 404


# ============================================================================
# ADMIN
# ============================================================================

async def test_admin_test_storage_invoice(client, make_customer, make_pricing, admin_headers):
    customer = await make_customer(storage_type="pallet_base")
    await make_pricing(customer, 20, pallet_count=2)

    response = await client.post(
        "/api/v1/admin/storage-invoices/test",
        json={"customer_id": str(customer.id), "month": "2025-10"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["invoice_month"].startswith("2025-10-test-")
    assert body["total"] == 40.0

    detail = await client.get(f"/api/v1/invoices/{body['invoice_id']}")
    assert detail.json()["is_test"] is True
    assert detail.json()["generated_by"] == "ops@warehouse.test"


async def test_admin_test_storage_invoice_errors(client, make_customer, random_id, admin_headers):
    pending = await make_customer(status="pending", storage_type="pallet_base")

    not_approved = await client.post(
        "/api/v1/admin/storage-invoices/test",
        json={"customer_id": str(pending.id)},
        headers=admin_headers,
    )
    assert not_approved.status_code == 400
    assert not_approved.json()["detail"] == "User is not approved"

    missing = await client.post(
        "/api/v1/admin/storage-invoices/test",
        json={"customer_id": str(random_id)},
        headers=admin_headers,
    )
    assert missing.status_code == 404


@pytest.mark.parametrize("headers, expected", [
    ({}, 401),
    ({"Authorization": "Bearer wrong", "X-Admin-User": "ops"}, 401),
    ({"Authorization": "Bearer admin-token"}, 400),
])
async def test_admin_guard(client, random_id, headers, expected):
    response = await client.post(
        "/api/v1/admin/storage-invoices/test",
        json={"customer_id": str(random_id)},
        headers=headers,
    )
    assert response.status_code == expected


def test_trigger_auth_required_by_default():
    assert Settings().INVOICE_TRIGGER_AUTH_REQUIRED is True
