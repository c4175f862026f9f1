"""Hybrid provider combining several compute services into one."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fleetcore.compute.base import Closeable, ComputeService, Node, supports

logger = logging.getLogger(__name__)


class HybridService:
    """Lists the nodes of all sub-services and routes tags to their owner."""

    provider = "hybrid"

    def __init__(self, sub_services: Sequence[ComputeService]) -> None:
        self.sub_services = list(sub_services)
        # id(node) -> (node, owning service), from the latest listing.
        self._owners: Dict[int, Tuple[Node, ComputeService]] = {}

    def __repr__(self) -> str:
        return f"<HybridService {[s.provider for s in self.sub_services]}>"

    async def nodes(self) -> List[Node]:
        listed = await asyncio.gather(*(s.nodes() for s in self.sub_services))
        owners: Dict[int, Tuple[Node, ComputeService]] = {}
        result: List[Node] = []
        for service, nodes in zip(self.sub_services, listed):
            for node in nodes:
                owners[id(node)] = (node, service)
                result.append(node)
        self._owners = owners
        return result

    def _owner(self, node: Node) -> Optional[ComputeService]:
        entry = self._owners.get(id(node))
        if entry is not None and entry[0] is node:
            return entry[1]
        # A copy of a listed node: only an unambiguous id identifies its owner.
        candidates = {id(s): s for n, s in self._owners.values() if n.id == node.id}
        if len(candidates) == 1:
            return next(iter(candidates.values()))
        return None

    async def tag_nodes(self, nodes: Sequence[Node], tags: Dict[str, str]) -> List[Any]:
        if any(self._owner(n) is None for n in nodes):
            await self.nodes()
        by_service: Dict[int, List[Node]] = {}
        for node in nodes:
            owner = self._owner(node)
            if owner is None:
                raise KeyError(f"No single sub-service owns node {node.id}")
            by_service.setdefault(id(owner), []).append(node)
        results: List[Any] = []
        for service in self.sub_services:
            owned = by_service.get(id(service))
            if owned:
                results.append(await service.tag_nodes(owned, tags))
        return results

    def service_properties(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "sub_services": [s.service_properties() for s in self.sub_services],
        }

    def close(self) -> None:
        for service in self.sub_services:
            if supports(service, Closeable):
                service.close()


def hybrid_service(
    sub_services: Optional[Sequence[Any]] = None, **options: Any
) -> HybridService:
    """Build a hybrid service.

    ``sub_services`` holds compute services, or mappings with a ``provider``
    key and that provider's options, which are instantiated here.
    """
    from fleetcore.compute.registry import instantiate_provider

    services: List[ComputeService] = []
    for sub in sub_services or ():
        if isinstance(sub, dict):
            sub = dict(sub)
            services.append(instantiate_provider(sub.pop("provider"), **sub))
        else:
            services.append(sub)
    logger.debug("Hybrid service over %d sub-services", len(services))
    return HybridService(services)
