"""
Base classes for the order API schemas.

Response schemas read straight from ORM rows; request schemas ignore
unknown fields so older clients keep working.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """Response built from an ORM object; UUIDs and datetimes serialise as strings."""
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    model_config = ConfigDict(extra='ignore')
