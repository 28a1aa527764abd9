"""Pydantic request and response schemas for the API."""

from lettertrack.api.schemas.common import APIModel, Envelope, MessageResponse, StatusRequest
from lettertrack.api.schemas.couriers import (
    CourierResponse,
    CreateCourierRequest,
    UpdateCourierRequest,
)
from lettertrack.api.schemas.departments import (
    CreateDepartmentRequest,
    DepartmentResponse,
    UpdateDepartmentRequest,
)
from lettertrack.api.schemas.letters import (
    CourierTrackingPageResponse,
    CourierTrackingResponse,
    LetterPageResponse,
    LetterResponse,
    LetterStatusRequest,
    StatsResponse,
)

__all__ = [
    "APIModel",
    "CourierResponse",
    "CourierTrackingPageResponse",
    "CourierTrackingResponse",
    "CreateCourierRequest",
    "CreateDepartmentRequest",
    "DepartmentResponse",
    "Envelope",
    "LetterPageResponse",
    "LetterResponse",
    "LetterStatusRequest",
    "MessageResponse",
    "StatsResponse",
    "StatusRequest",
    "UpdateCourierRequest",
    "UpdateDepartmentRequest",
]
