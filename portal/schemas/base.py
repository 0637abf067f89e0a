"""
Base Schema Classes for Pydantic Models

Response schemas that read from ORM models inherit from BaseResponseSchema.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas that read from ORM models.

    Usage:
        class InvoiceResponse(BaseResponseSchema):
            id: UUID
            invoice_number: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Accepts string UUIDs from the client and converts them to UUID objects.
    """
    model_config = ConfigDict(
        extra='ignore',
    )
