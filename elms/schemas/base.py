"""
Base Schema Classes for Pydantic Models

Response schemas that read from ORM rows inherit from BaseResponseSchema;
request bodies inherit from BaseCreateSchema / BaseUpdateSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class TeamResponse(BaseResponseSchema):
            id: UUID
            name: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored so older clients keep working.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; only the fields a client actually sent
    (``model_dump(exclude_unset=True)``) are considered for the update.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str
