"""Remote transport interfaces and the connection factory registry."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, BinaryIO, Callable, Dict, Optional, Protocol

from fleetcore.compute.base import Node, User

logger = logging.getLogger(__name__)


@dataclass
class ExecResult:
    """Outcome of a remote script."""

    exit: int
    out: str = ""
    err: str = ""


@dataclass
class Endpoint:
    server: str
    port: int = 22


class Connection(Protocol):
    """An open connection to one node as one user."""

    endpoint: Endpoint

    async def exec(self, script: str) -> ExecResult:
        """Run ``script`` with the remote shell."""

    async def send_stream(
        self, reader: BinaryIO, remote_path: str, mode: Optional[int] = None
    ) -> None:
        """Copy everything readable from ``reader`` to ``remote_path``."""

    async def send_text(
        self, text: str, remote_path: str, mode: Optional[int] = None
    ) -> None:
        """Write ``text`` to ``remote_path``."""

    async def receive(self, remote_path: str, local_path: str) -> None:
        """Copy ``remote_path`` to ``local_path``."""

    async def close(self) -> None:
        """Release the connection."""


class ConnectionFactory(Protocol):
    async def connect(self, node: Node, user: User) -> Connection:
        """Open a connection to ``node`` as ``user``."""


_FACTORIES: Dict[str, Callable[..., ConnectionFactory]] = {}


def register_factory(kind: str, constructor: Callable[..., ConnectionFactory]) -> None:
    """Register a connection factory constructor for ``kind``."""
    _FACTORIES[kind] = constructor


def factory(kind: str, **options: Any) -> ConnectionFactory:
    """Return a connection factory of ``kind`` configured with ``options``."""
    if kind not in _FACTORIES:
        _load_builtin_factories()
    if kind not in _FACTORIES:
        raise ValueError(
            f"Unknown transport: {kind}. Available: {sorted(_FACTORIES)}"
        )
    return _FACTORIES[kind](**options)


def _load_builtin_factories() -> None:
    if "ssh" not in _FACTORIES:
        from fleetcore.transport.ssh import SshConnectionFactory

        register_factory("ssh", SshConnectionFactory)


@asynccontextmanager
async def with_connection(
    connection_factory: ConnectionFactory, node: Node, user: User
) -> AsyncIterator[Connection]:
    """Open a connection for the duration of a block."""
    connection = await connection_factory.connect(node, user)
    try:
        yield connection
    finally:
        await connection.close()
