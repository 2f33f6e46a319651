"""
Subsync exception hierarchy.

All domain-specific exceptions inherit from SubsyncError, so a job entry
point can catch every engine failure with a single base class while the
error classifier still tells them apart.

Hierarchy::

    SubsyncError
    ├── ConfigurationError        - missing/invalid config, mirror_id not set
    ├── ConnectionNotFoundError   - named connection not registered
    ├── StateStoreError           - checkpoint store read/write
    ├── MirrorError               - tabular mirror read/write
    └── RemoteAPIError            - remote membership API call failed
        └── QuotaExhaustedError   - account-wide quota exceeded
"""

from __future__ import annotations


class SubsyncError(Exception):
    """Base exception for all subsync errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(SubsyncError):
    """Raised when configuration is missing or invalid.

    Covers the setup precondition of a job (e.g. no mirror configured). These
    are surfaced to an operator and never auto-recovered.
    """


class ConnectionNotFoundError(SubsyncError):
    """Raised when a named connection is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Connection not found: {name}", details={"connection": name})
        self.connection_name = name


# --- Storage -----------------------------------------------------------------


class StateStoreError(SubsyncError):
    """Raised when the checkpoint store cannot be read or written."""


class MirrorError(SubsyncError):
    """Raised when the tabular mirror cannot be read or written."""


# --- Remote API --------------------------------------------------------------


class RemoteAPIError(SubsyncError):
    """Raised when a call to the remote membership API fails.

    ``reason`` carries the API's machine-readable error code (for example
    ``quotaExceeded``) when the response body provides one.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        reason: str | None = None,
        details: dict | None = None,
    ) -> None:
        merged = {"status": status, "reason": reason, **(details or {})}
        super().__init__(message, details=merged)
        self.status = status
        self.reason = reason

    def __str__(self) -> str:
        parts = [self.message]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.reason:
            parts.append(f"reason={self.reason}")
        return " ".join(parts)


class QuotaExhaustedError(RemoteAPIError):
    """Raised when the remote account's daily quota is used up."""
