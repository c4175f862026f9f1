"""Remote shell transports."""

from fleetcore.transport.base import (
    Connection,
    ConnectionFactory,
    Endpoint,
    ExecResult,
    factory,
    register_factory,
    with_connection,
)

__all__ = [
    "Connection",
    "ConnectionFactory",
    "Endpoint",
    "ExecResult",
    "factory",
    "register_factory",
    "with_connection",
]
