"""
Resource model: typed property bags keyed by a resource type.

Property ids are qualified names of the form ``category/name`` where the
category may itself be nested (``metrics/cpu/user`` lives in ``metrics/cpu``).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any


class ResourceType(str, Enum):
    CLUSTER = "Cluster"
    SERVICE = "Service"
    HOST = "Host"
    COMPONENT = "Component"
    HOST_COMPONENT = "HostComponent"


def property_id(category: str | None, name: str) -> str:
    """Build a qualified property id from a category and a name."""
    if not category:
        return name
    return f"{category}/{name}"


def category_of(prop_id: str) -> str | None:
    """Category part of a property id, or None for a bare name."""
    index = prop_id.rfind("/")
    return prop_id[:index] if index >= 0 else None


def name_of(prop_id: str) -> str:
    index = prop_id.rfind("/")
    return prop_id[index + 1:] if index >= 0 else prop_id


def is_category_of(category: str, prop_id: str) -> bool:
    """True when ``prop_id`` sits anywhere under ``category``."""
    return prop_id.startswith(category.rstrip("/") + "/")


def expand_property_ids(requested: Iterable[str], owned: Iterable[str]) -> set[str]:
    """
    Resolve requested ids against an owned id set.

    A requested id selects an owned id either by exact match or by naming one
    of its categories. Requested ids matching nothing are dropped.
    """
    owned_ids = set(owned)
    selected: set[str] = set()
    for requested_id in requested:
        if requested_id in owned_ids:
            selected.add(requested_id)
            continue
        selected.update(pid for pid in owned_ids if is_category_of(requested_id, pid))
    return selected


def unsupported_property_ids(requested: Iterable[str], owned: Iterable[str]) -> set[str]:
    """Requested ids that match no owned id, exactly or as a category."""
    owned_ids = set(owned)
    return {
        requested_id
        for requested_id in requested
        if requested_id not in owned_ids
        and not any(is_category_of(requested_id, pid) for pid in owned_ids)
    }


# Key property ids per resource type. The mapping value order defines the
# identity tuple returned by ``Resource.key``.
KEY_PROPERTY_IDS: Mapping[ResourceType, Mapping[ResourceType, str]] = MappingProxyType({
    ResourceType.CLUSTER: MappingProxyType({
        ResourceType.CLUSTER: "Clusters/cluster_name",
    }),
    ResourceType.SERVICE: MappingProxyType({
        ResourceType.CLUSTER: "ServiceInfo/cluster_name",
        ResourceType.SERVICE: "ServiceInfo/service_name",
    }),
    ResourceType.HOST: MappingProxyType({
        ResourceType.CLUSTER: "Hosts/cluster_name",
        ResourceType.HOST: "Hosts/host_name",
    }),
    ResourceType.COMPONENT: MappingProxyType({
        ResourceType.CLUSTER: "ServiceComponentInfo/cluster_name",
        ResourceType.SERVICE: "ServiceComponentInfo/service_name",
        ResourceType.COMPONENT: "ServiceComponentInfo/component_name",
    }),
    ResourceType.HOST_COMPONENT: MappingProxyType({
        ResourceType.CLUSTER: "HostRoles/cluster_name",
        ResourceType.HOST: "HostRoles/host_name",
        ResourceType.COMPONENT: "HostRoles/component_name",
    }),
})


def key_property_ids(resource_type: ResourceType) -> Mapping[ResourceType, str]:
    return KEY_PROPERTY_IDS[resource_type]


class Resource:
    """
    A typed mapping of property id to value.

    An absent property and a property whose value is None are different: the
    former was never populated, the latter was populated with null.
    """

    __slots__ = ("_type", "_properties")

    def __init__(self, resource_type: ResourceType, properties: Mapping[str, Any] | None = None):
        self._type = resource_type
        self._properties: dict[str, Any] = dict(properties or {})

    @property
    def type(self) -> ResourceType:
        return self._type

    @property
    def properties(self) -> Mapping[str, Any]:
        return MappingProxyType(self._properties)

    def set_property(self, prop_id: str, value: Any) -> None:
        self._properties[prop_id] = value

    def get_property(self, prop_id: str, default: Any = None) -> Any:
        return self._properties.get(prop_id, default)

    def has_property(self, prop_id: str) -> bool:
        return prop_id in self._properties

    def properties_in_category(self, category: str) -> dict[str, Any]:
        return {
            pid: value
            for pid, value in self._properties.items()
            if is_category_of(category, pid)
        }

    @property
    def key_property_ids(self) -> Mapping[ResourceType, str]:
        return key_property_ids(self._type)

    @property
    def key(self) -> tuple[Any, ...]:
        """Identity tuple built from the key property values, in key order."""
        return tuple(self._properties.get(pid) for pid in self.key_property_ids.values())

    def has_valid_key(self) -> bool:
        """True when every key property is present and non-null."""
        return all(
            self._properties.get(pid) is not None for pid in self.key_property_ids.values()
        )

    def copy(self) -> Resource:
        return Resource(self._type, self._properties)

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __contains__(self, prop_id: object) -> bool:
        return prop_id in self._properties

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return self._type == other._type and self._properties == other._properties

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Resource(type={self._type.value}, properties={self._properties!r})"
