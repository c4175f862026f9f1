"""Shared fleetcore errors."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class FleetcoreError(Exception):
    """Base class for all fleetcore errors."""


class SchemaViolation(FleetcoreError, ValueError):
    """Raised when a known field of a declarative spec has the wrong shape."""

    def __init__(self, path: str, value: Any, expected: str):
        self.path = path
        self.value = value
        self.expected = expected
        super().__init__(f"{path}: expected {expected}, got {value!r}")


class ProviderLookup(str, Enum):
    """Why a provider could not be resolved."""

    UNKNOWN = "unknown"
    LOAD_FAILED = "load-failed"


class ProviderNotFoundError(FleetcoreError, RuntimeError):
    """Raised when a provider name cannot be resolved to a service."""

    def __init__(self, provider: str, reason: ProviderLookup, hint: str = ""):
        self.provider = provider
        self.reason = reason
        self.hint = hint
        message = f"No provider found for {provider}."
        if hint:
            message = f"{message}  {hint}"
        super().__init__(message)


class UnsupportedOperation(FleetcoreError):
    """Raised when a service lacks the capability an operation needs."""

    def __init__(self, service: Any, operation: str):
        self.service = service
        self.operation = operation
        super().__init__(f"Unsupported operation {operation} for {service!r}")


class TransportFailure(FleetcoreError):
    """A remote command, stream or connection failed."""

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        exit: Optional[int] = None,
        output: str = "",
    ):
        self.command = command
        self.exit = exit
        self.output = output
        super().__init__(message)


class UploadFailed(FleetcoreError):
    """A file upload could not be completed on the remote node."""

    def __init__(self, message: str, *, status: Any = None, output: str = ""):
        self.status = status
        self.output = output
        super().__init__(message)


class ChannelClosedError(FleetcoreError, RuntimeError):
    """Raised when a result is written to a channel that already has one."""
