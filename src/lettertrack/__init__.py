"""Outgoing letter tracking service.

Tracks letters leaving the organization through courier services, each
identified by a unique QR code, along with the department directory and
the courier directory.
"""

__version__ = "0.1.0"
