"""
Base schemas and mixins for all models.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class TimestampMixin(BaseModel):
    """Server-managed timestamps on stored records."""
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None


class Address(BaseSchema):
    """Postal address used for orders, shipments and the ship-from record."""

    name: Optional[str] = None
    company_name: Optional[str] = None
    street1: str = ""
    street2: Optional[str] = None
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "US"
    phone: Optional[str] = None


class MessageResponse(BaseModel):
    """Simple success acknowledgement."""
    success: bool = True
    message: str
