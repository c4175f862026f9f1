"""Compute service capability interfaces and the node model.

A provider implements :class:`ComputeService` and any subset of the optional
capabilities below. Capabilities are checked against the instance at call
time, so a backend can expose a different set depending on how it was
configured (a read-only mode, for example).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable


@dataclass
class Node:
    """A compute node as reported by a provider."""

    id: str
    name: str
    group_name: Optional[str] = None
    primary_ip: Optional[str] = None
    private_ip: Optional[str] = None
    hostname: Optional[str] = None
    os_family: Optional[str] = None
    os_version: Optional[str] = None
    ssh_port: int = 22
    running: bool = True
    tags: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        known = {f.name for f in fields(cls)}
        values = {k.replace("-", "_"): v for k, v in data.items()}
        values = {k: v for k, v in values.items() if k in known}
        name = values.get("name") or values.get("hostname") or values.get("primary_ip")
        if not name:
            raise ValueError(f"Node needs a name, hostname or primary_ip: {data!r}")
        values.setdefault("name", name)
        values.setdefault("id", name)
        values["tags"] = dict(values.get("tags") or {})
        return cls(**values)

    @property
    def address(self) -> str:
        """Address used to reach the node over the network."""
        return self.primary_ip or self.hostname or self.name


@dataclass
class User:
    """Remote login identity used for provisioning and file transfer."""

    username: str
    sudo_user: Optional[str] = None
    private_key_path: Optional[str] = None
    password: Optional[str] = None

    def effective_username(self) -> str:
        return self.sudo_user or self.username


@runtime_checkable
class ComputeService(Protocol):
    """Base interface every provider implements."""

    provider: str

    async def nodes(self) -> List[Node]:
        """Return the nodes currently known to the service."""

    async def tag_nodes(self, nodes: Sequence[Node], tags: Dict[str, str]) -> Any:
        """Attach ``tags`` to each of ``nodes``."""

    def service_properties(self) -> Dict[str, Any]:
        """Service details; contains a ``provider`` key at a minimum."""


@runtime_checkable
class NodeCreateDestroy(Protocol):
    async def create_nodes(
        self, node_spec: Any, user: User, node_count: int, options: Dict[str, Any]
    ) -> Any:
        """Create ``node_count`` nodes matching ``node_spec``."""

    async def destroy_nodes(self, nodes: Sequence[Node]) -> List[str]:
        """Destroy ``nodes``, returning the ids that were destroyed."""

    async def images(self) -> List[Any]:
        """Return the images available for new nodes."""


@runtime_checkable
class NodeStop(Protocol):
    async def restart_nodes(self, nodes: Sequence[Node]) -> Any: ...

    async def stop_nodes(self, nodes: Sequence[Node]) -> Any: ...


@runtime_checkable
class NodeSuspend(Protocol):
    async def suspend_nodes(self, nodes: Sequence[Node]) -> Any: ...

    async def resume_nodes(self, nodes: Sequence[Node]) -> Any: ...


@runtime_checkable
class NodeBaseName(Protocol):
    def matches_base_name(self, node_name: str, base_name: str) -> bool: ...


@runtime_checkable
class Closeable(Protocol):
    def close(self) -> None: ...


CAPABILITIES = {
    "compute": ComputeService,
    "create-destroy": NodeCreateDestroy,
    "stop": NodeStop,
    "suspend": NodeSuspend,
    "base-name": NodeBaseName,
    "closeable": Closeable,
}


def _operations(capability: type) -> List[str]:
    return [
        name
        for name, value in vars(capability).items()
        if callable(value) and not name.startswith("_")
    ]


def supports(service: Any, capability: type) -> bool:
    """Return whether ``service`` implements ``capability``.

    An instance withdraws a capability by setting one of its operations to
    None, which the structural check alone does not see.
    """
    if not isinstance(service, capability):
        return False
    return all(callable(getattr(service, name, None)) for name in _operations(capability))


def capabilities(service: Any) -> List[str]:
    """Names of the capabilities ``service`` implements right now."""
    return [name for name, proto in CAPABILITIES.items() if supports(service, proto)]


def base_name_matches(node_name: str, base_name: str) -> bool:
    """Default base-name rule: ``web`` matches ``web`` and ``web-3``."""
    return node_name == base_name or node_name.startswith(f"{base_name}-")
