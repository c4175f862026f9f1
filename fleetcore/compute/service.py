"""Public compute operations.

Each lifecycle operation checks that the service implements the capability
it needs before contacting the provider, raising UnsupportedOperation
immediately when it does not. The provider call is then scheduled on the
running event loop and its single outcome written to the caller's channel.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from fleetcore.compute.base import (
    Closeable,
    ComputeService,
    Node,
    NodeBaseName,
    NodeCreateDestroy,
    NodeStop,
    NodeSuspend,
    User,
    supports,
)
from fleetcore.compute.spec import NodeSpec, validate
from fleetcore.shared.channel import AsyncResult, ResultChannel, blocking_result, compose, dispatch
from fleetcore.shared.errors import SchemaViolation, UnsupportedOperation

logger = logging.getLogger(__name__)


def _require(capability: type, service: Any, operation: str) -> None:
    if not supports(service, capability):
        logger.debug("%r does not support %s", service, operation)
        raise UnsupportedOperation(service, operation)


def nodes(compute: ComputeService, ch: ResultChannel) -> None:
    """Deliver the nodes in the compute service."""
    _require(ComputeService, compute, "nodes")
    dispatch(ch, compute.nodes)


def targets(compute: ComputeService, ch: ResultChannel) -> None:
    """Deliver the nodes of the compute service wrapped as targets."""
    _require(ComputeService, compute, "targets")
    compose(
        ch,
        lambda inner: nodes(compute, inner),
        lambda listed: [{"node": n} for n in listed],
    )


def create_nodes(
    compute: ComputeService,
    node_spec: Any,
    user: User,
    node_count: int,
    options: Optional[Dict[str, Any]],
    ch: ResultChannel,
) -> None:
    """Create ``node_count`` nodes matching ``node_spec`` in the compute service.

    The node-spec is validated locally first; a malformed spec raises
    SchemaViolation without contacting the provider.
    """
    if not isinstance(node_spec, (Mapping, NodeSpec)):
        raise SchemaViolation("node_spec", node_spec, "a mapping")
    spec = validate(node_spec)
    _require(NodeCreateDestroy, compute, "create_nodes")
    dispatch(ch, lambda: compute.create_nodes(spec, user, node_count, dict(options or {})))


def destroy_nodes(compute: ComputeService, nodes: Sequence[Node], ch: ResultChannel) -> None:
    """Destroy ``nodes``; delivers the ids of the destroyed nodes."""
    _require(NodeCreateDestroy, compute, "destroy_nodes")
    dispatch(ch, lambda: compute.destroy_nodes(nodes))


def images(compute: ComputeService, ch: ResultChannel) -> None:
    """Deliver the images available in the compute service."""
    _require(NodeCreateDestroy, compute, "images")
    dispatch(ch, compute.images)


def restart_nodes(compute: ComputeService, nodes: Sequence[Node], ch: ResultChannel) -> None:
    _require(NodeStop, compute, "restart_nodes")
    dispatch(ch, lambda: compute.restart_nodes(nodes))


def stop_nodes(compute: ComputeService, nodes: Sequence[Node], ch: ResultChannel) -> None:
    _require(NodeStop, compute, "stop_nodes")
    dispatch(ch, lambda: compute.stop_nodes(nodes))


def suspend_nodes(compute: ComputeService, nodes: Sequence[Node], ch: ResultChannel) -> None:
    _require(NodeSuspend, compute, "suspend_nodes")
    dispatch(ch, lambda: compute.suspend_nodes(nodes))


def resume_nodes(compute: ComputeService, nodes: Sequence[Node], ch: ResultChannel) -> None:
    _require(NodeSuspend, compute, "resume_nodes")
    dispatch(ch, lambda: compute.resume_nodes(nodes))


def tag_nodes(
    compute: ComputeService,
    nodes: Sequence[Node],
    tags: Dict[str, str],
    ch: Optional[ResultChannel] = None,
) -> Optional[AsyncResult]:
    """Set ``tags`` on all ``nodes``.

    With a channel the result is delivered to it. Without one the call
    blocks and returns the (value, error) result.
    """
    _require(ComputeService, compute, "tag_nodes")
    if ch is None:
        return blocking_result(tag_nodes, compute, nodes, tags)
    dispatch(ch, lambda: compute.tag_nodes(nodes, tags))
    return None


def matches_base_name(compute: ComputeService, node_name: str, base_name: str) -> bool:
    """Predicate for ``node_name`` being derived from ``base_name``."""
    _require(NodeBaseName, compute, "matches_base_name")
    return compute.matches_base_name(node_name, base_name)


def close(compute: ComputeService) -> None:
    """Close the compute service, releasing any acquired resources."""
    if not supports(compute, Closeable):
        logger.debug("%r is not closeable, nothing to release", compute)
        return
    compute.close()


def service_properties(compute: ComputeService) -> Dict[str, Any]:
    """Return a mapping of service details.

    Contains a ``provider`` key at a minimum; may contain current
    credentials.
    """
    _require(ComputeService, compute, "service_properties")
    return compute.service_properties()
