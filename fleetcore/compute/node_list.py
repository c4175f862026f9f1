"""Static node-list provider.

Serves a fixed list of existing machines. Nodes cannot be created or
destroyed through it; it only lists and tags them.
"""

from __future__ import annotations

import logging
import platform
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from fleetcore.compute.base import Node, base_name_matches

logger = logging.getLogger(__name__)


def _as_node(entry: Any) -> Node:
    """Build a Node from a Node, a mapping, or a (name, group, ip, os) row."""
    if isinstance(entry, Node):
        return entry
    if isinstance(entry, Mapping):
        return Node.from_dict(dict(entry))
    if isinstance(entry, (list, tuple)) and entry:
        name, group_name, primary_ip, os_family = (list(entry) + [None] * 4)[:4]
        return Node(
            id=name,
            name=name,
            group_name=group_name,
            primary_ip=primary_ip,
            os_family=os_family,
        )
    raise ValueError(f"Cannot build a node from {entry!r}")


class NodeListService:
    """Compute service over a static list of nodes."""

    provider = "node-list"

    def __init__(
        self,
        nodes: Iterable[Any] = (),
        environment: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._nodes: List[Node] = [_as_node(n) for n in nodes]
        self.environment = dict(environment or {})
        self._closed = False

    def __repr__(self) -> str:
        return f"<NodeListService {len(self._nodes)} nodes>"

    async def nodes(self) -> List[Node]:
        return list(self._nodes)

    async def tag_nodes(self, nodes: Sequence[Node], tags: Dict[str, str]) -> List[str]:
        tagged = []
        for node in nodes:
            for known in self._nodes:
                if known.id == node.id:
                    known.tags.update(tags)
                    tagged.append(known.id)
        return tagged

    def matches_base_name(self, node_name: str, base_name: str) -> bool:
        return base_name_matches(node_name, base_name)

    def service_properties(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "node_list": [n.name for n in self._nodes],
            "environment": dict(self.environment),
        }

    def close(self) -> None:
        logger.debug("Closing %r", self)
        self._closed = True


def node_list_service(
    node_list: Optional[Iterable[Any]] = None,
    environment: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> NodeListService:
    return NodeListService(node_list or (), environment=environment)


def localhost_service(
    environment: Optional[Dict[str, Any]] = None, **options: Any
) -> NodeListService:
    """A node-list service holding just the local machine."""
    node = Node(
        id="localhost",
        name=options.get("name", "localhost"),
        group_name=options.get("group_name", "local"),
        primary_ip="127.0.0.1",
        hostname="localhost",
        os_family=platform.system().lower(),
    )
    service = NodeListService([node], environment=environment)
    service.provider = "localhost"
    return service
