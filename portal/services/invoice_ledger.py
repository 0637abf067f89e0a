"""
Billing ledger: which shipments have already been invoiced.

The ledger is derived on every run by scanning the customer's full invoice
history for shipment references on line items. There is no stored "last
invoiced" pointer, so a shipment recorded late (dated before shipments that
are already billed) is still picked up by the next run, and re-running
generation over unchanged data bills nothing twice.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class LedgerPartition:
    billable: List[Any] = field(default_factory=list)
    already_billed: List[Any] = field(default_factory=list)


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def shipment_reference(value: Any) -> Optional[str]:
    """Canonical string form of a shipment id, or None if unusable."""
    if value is None or isinstance(value, (bool, dict, list, tuple, set)):
        return None
    reference = str(value).strip()
    return reference or None


def billed_shipment_ids(invoices: Iterable[Any]) -> Set[str]:
    """Collect every shipment reference found on any invoice line item."""
    billed: Set[str] = set()
    for invoice in invoices:
        items = _get(invoice, "items")
        if not items:
            continue
        for item in items:
            reference = shipment_reference(_get(item, "shipment_id"))
            if reference is not None:
                billed.add(reference)
    return billed


def partition_shipments(shipments: Iterable[Any], billed: Set[str]) -> LedgerPartition:
    """Split shipments into those still billable and those already invoiced."""
    partition = LedgerPartition()
    for shipment in shipments:
        reference = shipment_reference(_get(shipment, "id"))
        if reference is not None and reference in billed:
            partition.already_billed.append(shipment)
        else:
            partition.billable.append(shipment)
    return partition
