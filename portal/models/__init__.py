from portal.models.customer import Customer, CustomerStatus, StorageType
from portal.models.shipment import Shipment
from portal.models.inventory import InventoryItem, IN_STOCK
from portal.models.storage_pricing import StoragePricing
from portal.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType

__all__ = [
    "Customer",
    "CustomerStatus",
    "StorageType",
    "Shipment",
    "InventoryItem",
    "IN_STOCK",
    "StoragePricing",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "InvoiceType",
]
