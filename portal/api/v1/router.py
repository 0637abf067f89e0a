from fastapi import APIRouter

from portal.api.v1.endpoints import (
    # Invoice generation, reads, payment status
    invoices,
    # Admin tools
    admin,
)

api_router = APIRouter()

api_router.include_router(invoices.router, tags=["Invoices"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
