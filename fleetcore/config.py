"""Configuration for compute services and file uploads.

Configuration lives in a YAML file, ``$FLEETCORE_CONFIG`` or
``$XDG_CONFIG_HOME/fleetcore/config.yaml``::

    upload_root: /tmp
    services:
      lab:
        provider: node-list
        node_list:
          - {name: web-1, primary_ip: 10.0.0.5, group_name: web}
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from fleetcore.compute.base import ComputeService
from fleetcore.compute.registry import instantiate_provider

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_ROOT = "/tmp"


class ConfigManager:
    """Loads and saves the fleetcore configuration file."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = Path(config_path) if config_path else self._default_path()

    @staticmethod
    def _default_path() -> Path:
        explicit = os.environ.get("FLEETCORE_CONFIG")
        if explicit:
            return Path(explicit)
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / "fleetcore" / "config.yaml"

    def load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        with open(self.config_path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.config_path}: expected a mapping at the top level")
        return data

    def save_config(self, config: Dict[str, Any]) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            yaml.safe_dump(config, f, sort_keys=True)

    def list_services(self) -> List[str]:
        return sorted(self.load_config().get("services") or {})

    def get_service_options(self, name: str) -> Dict[str, Any]:
        services = self.load_config().get("services") or {}
        if name not in services:
            raise KeyError(f"Service '{name}' is not configured in {self.config_path}")
        return dict(services[name] or {})

    def set_service(self, name: str, provider: str, **options: Any) -> None:
        config = self.load_config()
        config.setdefault("services", {})[name] = {"provider": provider, **options}
        self.save_config(config)

    def get_upload_root(self) -> str:
        return (
            os.environ.get("FLEETCORE_UPLOAD_ROOT")
            or self.load_config().get("upload_root")
            or DEFAULT_UPLOAD_ROOT
        )

    def compute_service(self, name: str) -> ComputeService:
        """Instantiate the compute service configured as ``name``."""
        options = self.get_service_options(name)
        provider = options.pop("provider", None)
        if not provider:
            raise ValueError(f"Service '{name}' has no provider")
        logger.debug("Creating service %s with provider %s", name, provider)
        return instantiate_provider(provider, **options)


def get_config_manager() -> ConfigManager:
    return ConfigManager()


def compute_service_from_config(name: str) -> ComputeService:
    return get_config_manager().compute_service(name)
