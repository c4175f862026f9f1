"""Provider-agnostic compute service abstraction."""

from fleetcore.compute.base import (
    Closeable,
    ComputeService,
    Node,
    NodeBaseName,
    NodeCreateDestroy,
    NodeStop,
    NodeSuspend,
    User,
    capabilities,
    supports,
)
from fleetcore.compute.registry import (
    get_provider_registry,
    instantiate_provider,
    is_compute_service,
    register_provider,
    supported_providers,
)
from fleetcore.compute.service import (
    close,
    create_nodes,
    destroy_nodes,
    images,
    matches_base_name,
    nodes,
    restart_nodes,
    resume_nodes,
    service_properties,
    stop_nodes,
    suspend_nodes,
    tag_nodes,
    targets,
)
from fleetcore.compute.spec import (
    NodeSpec,
    NodeSpecMeta,
    matches_selectors,
    node_spec,
    node_spec_meta,
    validate,
)

__all__ = [
    "Closeable",
    "ComputeService",
    "Node",
    "NodeBaseName",
    "NodeCreateDestroy",
    "NodeSpec",
    "NodeSpecMeta",
    "NodeStop",
    "NodeSuspend",
    "User",
    "capabilities",
    "close",
    "create_nodes",
    "destroy_nodes",
    "get_provider_registry",
    "images",
    "instantiate_provider",
    "is_compute_service",
    "matches_base_name",
    "matches_selectors",
    "node_spec",
    "node_spec_meta",
    "nodes",
    "register_provider",
    "restart_nodes",
    "resume_nodes",
    "service_properties",
    "stop_nodes",
    "supported_providers",
    "supports",
    "suspend_nodes",
    "tag_nodes",
    "targets",
    "validate",
]
