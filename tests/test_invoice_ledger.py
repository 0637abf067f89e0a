"""Tests for the already-billed shipment ledger."""
import uuid
from types import SimpleNamespace

from portal.services.invoice_ledger import (
    billed_shipment_ids,
    partition_shipments,
    shipment_reference,
)


def invoice(*shipment_ids):
    return SimpleNamespace(items=[SimpleNamespace(shipment_id=sid) for sid in shipment_ids])


def test_shipment_reference():
    sid = uuid.uuid4()
    assert shipment_reference(sid) == str(sid)
    assert shipment_reference("  abc ") == "abc"
    assert shipment_reference("") is None
    assert shipment_reference(None) is None
    assert shipment_reference(True) is None
    assert shipment_reference({"id": 1}) is None


def test_billed_ids_across_invoice_history():
    invoices = [
        invoice("s1", "s2"),
        invoice(None),  # storage line
        SimpleNamespace(items=None),
        {"items": [{"shipment_id": "s3"}]},
    ]
    assert billed_shipment_ids(invoices) == {"s1", "s2", "s3"}


def test_partition_keeps_late_shipments_billable():
    billed = billed_shipment_ids([invoice("s1")])
    shipments = [SimpleNamespace(id="s1"), SimpleNamespace(id="s0-late"), SimpleNamespace(id=None)]

    partition = partition_shipments(shipments, billed)

    assert [s.id for s in partition.already_billed] == ["s1"]
    assert [s.id for s in partition.billable] == ["s0-late", None]


def test_uuid_and_string_references_match():
    sid = uuid.uuid4()
    partition = partition_shipments([SimpleNamespace(id=sid)], billed_shipment_ids([invoice(str(sid))]))
    assert partition.billable == []
