"""Test data factories for the letter tracking service.

Use these to build consistent, valid test objects without duplicating
data structures across tests. Every factory takes keyword overrides.
"""

from itertools import count
from typing import Any

from lettertrack.services.couriers import CourierFields

_sequence = count(1)


def _next() -> int:
    return next(_sequence)


def department_data(**overrides: Any) -> dict[str, Any]:
    """Fields for ``DepartmentDirectory.create_with_account``.

    Usernames are unique per call so several departments can coexist.
    """
    n = _next()
    data = {
        "name": f"Department {n}",
        "code": f"D{n:03d}",
        "head": "Ada Lovelace",
        "contact": "ext. 4411",
        "username": f"dept{n}",
        "password": "s3cret-pass",
    }
    data.update(overrides)
    return data


def courier_data(**overrides: Any) -> dict[str, Any]:
    """Courier fields, also usable as a JSON request body."""
    n = _next()
    data = {
        "service_name": f"Courier {n}",
        "code": f"C{n:03d}",
        "contact_person": "Grace Hopper",
        "email": f"dispatch{n}@couriers.example.com",
        "phone": "+1 555 0100",
        "address": "1 Harbour Road",
    }
    data.update(overrides)
    return data


def courier_fields(**overrides: Any) -> CourierFields:
    return CourierFields(**courier_data(**overrides))


def letter_data(**overrides: Any) -> dict[str, Any]:
    """Fields for ``LetterTrackingEngine.create``."""
    n = _next()
    data = {
        "from_department": "RD",
        "to": "Ministry of Finance",
        "priority": "medium",
        "qr_code": f"QR-{n:05d}",
        "subject": f"Letter {n}",
    }
    data.update(overrides)
    return data


def letter_form(**overrides: Any) -> dict[str, str]:
    """Multipart form fields for ``POST /outgoing``."""
    n = _next()
    data = {
        "from": "RD",
        "to": "Ministry of Finance",
        "priority": "high",
        "qrCode": f"QR-F{n:05d}",
    }
    data.update(overrides)
    return data
