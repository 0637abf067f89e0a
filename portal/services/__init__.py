# Services module
from portal.services.shipment_invoice_service import ShipmentInvoiceService, InvoiceGenerationError
from portal.services.storage_fee_service import StorageFeeService, StorageInvoiceError
from portal.services.invoice_service import InvoiceService, InvoiceStateError

__all__ = [
    "ShipmentInvoiceService",
    "InvoiceGenerationError",
    "StorageFeeService",
    "StorageInvoiceError",
    "InvoiceService",
    "InvoiceStateError",
]
