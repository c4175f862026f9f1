"""Node specifications and their structural validation.

A node-spec is a loose description: it selects an image, hardware, location,
network and quality-of-service options for new nodes. Only the shape of the
fields we know about is checked here; everything else is kept in ``extras``
and left for the provider to interpret.
"""

from __future__ import annotations

import numbers
import re
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Mapping, Optional, Tuple, Type, TypeVar, Union

from fleetcore.shared.errors import SchemaViolation

P = TypeVar("P", bound="_Predicate")

_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _field_name(key: Any) -> str:
    """Normalise ``min-cores``/``minCores``/``min_cores`` to ``min_cores``."""
    return _CAMEL.sub(r"_\1", str(key).replace("-", "_")).lower()


def _string(path: str, value: Any) -> str:
    if not isinstance(value, str):
        raise SchemaViolation(path, value, "a string")
    return value


def _number(path: str, value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, numbers.Number):
        raise SchemaViolation(path, value, "a number")
    return value


def _boolean(path: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise SchemaViolation(path, value, "a boolean")
    return value


def _mapping(path: str, value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise SchemaViolation(path, value, "a mapping")
    return MappingProxyType(dict(value))


class _Predicate:
    """Shared mapping conversion for the node-spec records."""

    _path: ClassVar[str] = "node_spec"
    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {}

    @classmethod
    def from_dict(cls: Type[P], data: Any, path: str = "") -> P:
        path = path or cls._path
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise SchemaViolation(path, data, "a mapping")
        kwargs: Dict[str, Any] = {}
        extras: Dict[Any, Any] = {}
        for key, value in data.items():
            name = _field_name(key)
            check = cls._checks.get(name)
            if check is None:
                extras[key] = value
            else:
                kwargs[name] = check(f"{path}.{name}", value)
        return cls(**kwargs, extras=MappingProxyType(extras))  # type: ignore[call-arg]

    def __post_init__(self) -> None:
        # Fields left at None are absent; anything else must have its shape.
        for name, check in self._checks.items():
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, check(f"{self._path}.{name}", value))
        object.__setattr__(self, "extras", MappingProxyType(dict(self.extras)))  # type: ignore[attr-defined]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name == "extras":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, _Predicate):
                value = value.to_dict()
            elif isinstance(value, tuple):
                value = [v.to_dict() if isinstance(v, InboundPort) else v for v in value]
            elif isinstance(value, Mapping):
                value = dict(value)
            out[f.name] = value
        out.update(getattr(self, "extras", {}))
        return out


@dataclass(frozen=True)
class ImagePredicate(_Predicate):
    image_id: Optional[str] = None
    image_description_matches: Optional[str] = None
    image_name_matches: Optional[str] = None
    image_version_matches: Optional[str] = None
    os_family: Optional[str] = None
    os_64_bit: Optional[bool] = None
    os_arch_matches: Optional[str] = None
    os_description_matches: Optional[str] = None
    os_name_matches: Optional[str] = None
    os_version_matches: Optional[str] = None
    hypervisor_matches: Optional[str] = None
    override_login_user: Optional[str] = None
    extras: Mapping[Any, Any] = field(default_factory=dict)

    _path: ClassVar[str] = "node_spec.image"
    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {
        "image_id": _string,
        "image_description_matches": _string,
        "image_name_matches": _string,
        "image_version_matches": _string,
        "os_family": _string,
        "os_64_bit": _boolean,
        "os_arch_matches": _string,
        "os_description_matches": _string,
        "os_name_matches": _string,
        "os_version_matches": _string,
        "hypervisor_matches": _string,
        "override_login_user": _string,
    }


@dataclass(frozen=True)
class LocationPredicate(_Predicate):
    location_id: Optional[str] = None
    extras: Mapping[Any, Any] = field(default_factory=dict)

    _path: ClassVar[str] = "node_spec.location"
    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {"location_id": _string}


@dataclass(frozen=True)
class HardwarePredicate(_Predicate):
    hardware_id: Optional[str] = None
    min_ram: Optional[float] = None
    min_cores: Optional[float] = None
    min_disk: Optional[float] = None
    extras: Mapping[Any, Any] = field(default_factory=dict)

    _path: ClassVar[str] = "node_spec.hardware"
    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {
        "hardware_id": _string,
        "min_ram": _number,
        "min_cores": _number,
        "min_disk": _number,
    }


@dataclass(frozen=True)
class InboundPort:
    """A port, or a port range, to open for inbound traffic."""

    start_port: int
    end_port: Optional[int] = None
    protocol: Optional[str] = None

    def __post_init__(self) -> None:
        _number("inbound_port.start_port", self.start_port)
        if self.end_port is not None:
            _number("inbound_port.end_port", self.end_port)
        if self.protocol is not None:
            _string("inbound_port.protocol", self.protocol)

    @classmethod
    def parse(cls, value: Any, path: str = "inbound_port") -> Union[int, "InboundPort"]:
        if isinstance(value, InboundPort):
            return value
        if isinstance(value, Mapping):
            data = {_field_name(k): v for k, v in value.items()}
            if "start_port" not in data:
                raise SchemaViolation(f"{path}.start_port", None, "a number")
            unknown = set(data) - {"start_port", "end_port", "protocol"}
            if unknown:
                raise SchemaViolation(path, value, "only start_port, end_port and protocol")
            return cls(
                start_port=_number(f"{path}.start_port", data["start_port"]),
                end_port=(
                    None
                    if data.get("end_port") is None
                    else _number(f"{path}.end_port", data["end_port"])
                ),
                protocol=(
                    None
                    if data.get("protocol") is None
                    else _string(f"{path}.protocol", data["protocol"])
                ),
            )
        return _number(path, value)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"start_port": self.start_port}
        if self.end_port is not None:
            out["end_port"] = self.end_port
        if self.protocol is not None:
            out["protocol"] = self.protocol
        return out


def _inbound_ports(path: str, value: Any) -> Tuple[Union[int, InboundPort], ...]:
    if isinstance(value, (str, bytes, Mapping)) or not hasattr(value, "__iter__"):
        raise SchemaViolation(path, value, "a list of ports")
    return tuple(InboundPort.parse(v, f"{path}[{i}]") for i, v in enumerate(value))


@dataclass(frozen=True)
class NetworkConfig(_Predicate):
    inbound_ports: Optional[Tuple[Union[int, InboundPort], ...]] = None
    extras: Mapping[Any, Any] = field(default_factory=dict)

    _path: ClassVar[str] = "node_spec.network"
    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {
        "inbound_ports": _inbound_ports,
    }


@dataclass(frozen=True)
class QoSConfig(_Predicate):
    spot_price: Optional[float] = None
    enable_monitoring: Optional[bool] = None
    extras: Mapping[Any, Any] = field(default_factory=dict)

    _path: ClassVar[str] = "node_spec.qos"
    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {
        "spot_price": _number,
        "enable_monitoring": _boolean,
    }


@dataclass(frozen=True)
class NodeSpec(_Predicate):
    """Image, hardware, location, network and QoS selectors for new nodes."""

    image: Optional[ImagePredicate] = None
    location: Optional[LocationPredicate] = None
    hardware: Optional[HardwarePredicate] = None
    network: Optional[NetworkConfig] = None
    qos: Optional[QoSConfig] = None
    provider: Optional[Mapping[str, Any]] = None
    extras: Mapping[Any, Any] = field(default_factory=dict)

    _checks: ClassVar[Dict[str, Callable[[str, Any], Any]]] = {
        "image": lambda path, v: ImagePredicate.from_dict(v, path),
        "location": lambda path, v: LocationPredicate.from_dict(v, path),
        "hardware": lambda path, v: HardwarePredicate.from_dict(v, path),
        "network": lambda path, v: NetworkConfig.from_dict(v, path),
        "qos": lambda path, v: QoSConfig.from_dict(v, path),
        "provider": _mapping,
    }


def validate(spec: Any) -> NodeSpec:
    """Return ``spec`` as a NodeSpec, raising SchemaViolation on a bad shape."""
    return NodeSpec.from_dict(spec, "node_spec")


def node_spec(options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> NodeSpec:
    """Create a node-spec.

    Defines the compute image and hardware selector template used to filter
    a provider's image and hardware lists when creating nodes.

    ``image``
        predicate for matching an image: os_family, os_name_matches,
        os_version_matches, os_description_matches, os_64_bit,
        image_version_matches, image_name_matches,
        image_description_matches, image_id
    ``location``
        predicate for matching a location: location_id
    ``hardware``
        predicate for matching hardware: min_cores, min_ram, min_disk,
        hardware_id
    ``network``
        connectivity options: inbound_ports
    ``qos``
        quality of service options: spot_price, enable_monitoring
    """
    merged: Dict[str, Any] = dict(options or {})
    merged.update(kwargs)
    return validate(merged)


def _selectors(path: str, value: Any) -> FrozenSet[str]:
    if not isinstance(value, (set, frozenset)):
        raise SchemaViolation(path, value, "a set of selectors")
    for item in value:
        _string(path, item)
    return frozenset(value)


@dataclass(frozen=True)
class NodeSpecMeta:
    """A node-spec with the selectors, name and group suffix it applies to."""

    node_spec: NodeSpec
    selectors: FrozenSet[str] = frozenset()
    name: Optional[str] = None
    group_suffix: Optional[str] = None

    def __post_init__(self) -> None:
        spec = NodeSpec.from_dict(self.node_spec, "node_spec_meta.node_spec")
        object.__setattr__(self, "node_spec", spec)
        selectors = _selectors("node_spec_meta.selectors", self.selectors)
        object.__setattr__(self, "selectors", selectors)
        if self.name is not None:
            _string("node_spec_meta.name", self.name)
        if self.group_suffix is not None:
            _string("node_spec_meta.group_suffix", self.group_suffix)


def node_spec_meta(data: Any) -> NodeSpecMeta:
    """Validate and build a NodeSpecMeta from a mapping."""
    if isinstance(data, NodeSpecMeta):
        return data
    if not isinstance(data, Mapping):
        raise SchemaViolation("node_spec_meta", data, "a mapping")
    values = {_field_name(k): v for k, v in data.items()}
    if "node_spec" not in values:
        raise SchemaViolation("node_spec_meta.node_spec", None, "a node-spec")
    unknown = set(values) - {"node_spec", "selectors", "name", "group_suffix"}
    if unknown:
        raise SchemaViolation(
            "node_spec_meta", data, f"no keys besides node_spec, selectors, name, group_suffix (got {sorted(unknown)})"
        )
    return NodeSpecMeta(
        node_spec=values["node_spec"],
        selectors=values.get("selectors", frozenset()),
        name=values.get("name"),
        group_suffix=values.get("group_suffix"),
    )


def matches_selectors(selectors: Any, meta: Any) -> bool:
    """Return whether any of ``selectors`` is one of the meta's selectors.

    Both arguments must be well formed; a malformed ``meta`` raises
    SchemaViolation rather than counting as a non-match.
    """
    wanted = _selectors("selectors", selectors)
    return bool(wanted & node_spec_meta(meta).selectors)
