"""
Base schema classes.

Response schemas that read from ORM rows inherit from BaseResponseSchema;
input schemas inherit from BaseCreateSchema / BaseUpdateSchema.
"""
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas that read from ORM models.

    - from_attributes for ORM compatibility
    - UUIDs as strings, money as floats in JSON output
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            Decimal: float,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Base class for create/input schemas. Unknown fields are ignored."""
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """Base class for partial updates; all fields optional."""
    model_config = ConfigDict(
        extra='ignore',
    )
