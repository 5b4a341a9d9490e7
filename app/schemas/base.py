"""Base schema shared by request and response models."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Reads ORM objects and plain dataclasses alike."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
