"""Shared schema building blocks.

Every successful response is wrapped as ``{"success": true, "data": ...}``
and every JSON field is exposed in camelCase.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class APIModel(BaseModel):
    """Base model with camelCase aliases, also accepting snake_case input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[DataT]):
    """Success envelope."""

    success: bool = True
    data: DataT


class StatusRequest(APIModel):
    """Request schema for switching a record between active and inactive."""

    status: str = Field(..., description="active or inactive")


class MessageResponse(APIModel):
    """Plain acknowledgement."""

    message: str
