"""Registry resolving provider names to compute services."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any, Callable, Dict, List, Optional

from fleetcore.compute.base import ComputeService, supports
from fleetcore.shared.errors import ProviderLookup, ProviderNotFoundError

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "fleetcore.providers"

ProviderFactory = Callable[..., ComputeService]

# Built-in providers, imported on first use.
_BUILTIN_PROVIDERS: Dict[str, str] = {
    "node-list": "fleetcore.compute.node_list:node_list_service",
    "localhost": "fleetcore.compute.node_list:localhost_service",
    "hybrid": "fleetcore.compute.hybrid:hybrid_service",
}


@dataclass
class ProviderEntry:
    factory: Optional[ProviderFactory] = None
    target: Optional[str] = None
    entry_point: Any = None


class ProviderRegistry:
    """Maps provider names to factories, loading them lazily."""

    def __init__(self) -> None:
        self._providers: Dict[str, ProviderEntry] = {}
        self._discovered = False

    def register(self, name: str, factory: ProviderFactory) -> None:
        self._providers[name] = ProviderEntry(factory=factory)

    def register_lazy(self, name: str, target: str) -> None:
        """Register a ``module:attribute`` factory imported on first use."""
        self._providers.setdefault(name, ProviderEntry(target=target))

    def _discover(self) -> None:
        if self._discovered:
            return
        self._discovered = True
        for name, target in _BUILTIN_PROVIDERS.items():
            self.register_lazy(name, target)
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            self._providers.setdefault(ep.name, ProviderEntry(entry_point=ep))

    def available(self) -> List[str]:
        self._discover()
        return sorted(self._providers)

    def has_provider(self, name: str) -> bool:
        self._discover()
        return name in self._providers

    def factory(self, name: str) -> ProviderFactory:
        """Return the factory for ``name``, importing it if necessary."""
        self._discover()
        entry = self._providers.get(name)
        if entry is None:
            raise ProviderNotFoundError(
                name,
                ProviderLookup.UNKNOWN,
                f"Available providers: {', '.join(sorted(self._providers))}.",
            )
        if entry.factory is None:
            entry.factory = self._load(name, entry)
        return entry.factory

    def _load(self, name: str, entry: ProviderEntry) -> ProviderFactory:
        try:
            if entry.entry_point is not None:
                return entry.entry_point.load()
            module_name, _, attr = (entry.target or "").partition(":")
            return getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as exc:
            missing = getattr(exc, "name", None) or str(exc)
            logger.debug("Provider %s failed to load: %s", name, exc)
            raise ProviderNotFoundError(
                name,
                ProviderLookup.LOAD_FAILED,
                f"Possible missing dependency ({missing}).",
            ) from exc


_REGISTRY: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = ProviderRegistry()
    return _REGISTRY


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Register a provider factory under ``name``."""
    get_provider_registry().register(name, factory)


def supported_providers() -> List[str]:
    """Return the provider names that can be passed to instantiate_provider."""
    return get_provider_registry().available()


def instantiate_provider(provider_name: str, **options: Any) -> ComputeService:
    """Instantiate a compute service.

    Options are flat keywords:

       - identity     username or key
       - credential   password or secret
       - extensions   extension modules for the provider
       - node_list    a list of nodes for the "node-list" provider
       - endpoint     service endpoint URL
       - environment  a mapping with service specific values
       - sub_services services combined by the "hybrid" provider

    Provider specific options are passed through unchanged.
    """
    factory = get_provider_registry().factory(provider_name)
    logger.debug(
        "Instantiating provider %s with options %s",
        provider_name,
        sorted(k for k in options if options[k] is not None),
    )
    return factory(**options)


def is_compute_service(obj: Any) -> bool:
    """Predicate for an object implementing the ComputeService interface."""
    return supports(obj, ComputeService)
