"""
Lookup-key derivation for monitoring backends.

A lookup key is the (namespace, host) pair under which the monitoring backend
files a resource's metrics. Derivation is a pure function of the resource type
and its key properties, supplied to the shared metric engine as a strategy.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import NamedTuple, Optional, Protocol

from clusterview.modules.resources.domain.resource import (
    Resource,
    ResourceType,
    key_property_ids,
)
from clusterview.shared.core.config import Settings

# Components report cluster-wide aggregates under this synthetic host.
SUMMARY_HOST = "__SummaryInfo__"

DEFAULT_COMPONENT_NAMESPACES: Mapping[str, str] = MappingProxyType({
    "NAMENODE": "HDPNameNode",
    "SECONDARY_NAMENODE": "HDPNameNode",
    "DATANODE": "HDPSlaves",
    "JOBTRACKER": "HDPJobTracker",
    "TASKTRACKER": "HDPSlaves",
    "HBASE_MASTER": "HDPHBaseMaster",
    "HBASE_REGIONSERVER": "HDPSlaves",
    "HBASE_CLIENT": "HDPSlaves",
    "ZOOKEEPER_SERVER": "HDPSlaves",
})


class LookupKey(NamedTuple):
    namespace: str
    host: str


class ClusterNamespaceTable:
    """Immutable component-name to monitoring-namespace table."""

    def __init__(
        self,
        component_namespaces: Mapping[str, str] = DEFAULT_COMPONENT_NAMESPACES,
        host_namespace: str = "HDPSlaves",
        default_cluster_namespace: str = "HDPSlaves",
        cluster_namespaces: Optional[Mapping[str, str]] = None,
    ):
        self._components = MappingProxyType(dict(component_namespaces))
        self._clusters = MappingProxyType(dict(cluster_namespaces or {}))
        self.host_namespace = host_namespace
        self.default_cluster_namespace = default_cluster_namespace

    @classmethod
    def from_settings(cls, settings: Settings) -> ClusterNamespaceTable:
        components = {**DEFAULT_COMPONENT_NAMESPACES, **settings.GANGLIA_COMPONENT_NAMESPACES}
        return cls(
            component_namespaces=components,
            host_namespace=settings.GANGLIA_HOST_NAMESPACE,
            default_cluster_namespace=settings.GANGLIA_DEFAULT_CLUSTER_NAMESPACE,
            cluster_namespaces=settings.GANGLIA_CLUSTER_NAMESPACES,
        )

    def for_component(self, component_name: Optional[str]) -> Optional[str]:
        if not component_name:
            return None
        return self._components.get(component_name)

    def for_cluster(self, cluster_name: Optional[str]) -> str:
        if cluster_name and cluster_name in self._clusters:
            return self._clusters[cluster_name]
        return self.default_cluster_namespace

    @property
    def component_namespaces(self) -> Mapping[str, str]:
        return self._components


class LookupKeyStrategy(Protocol):
    @property
    def resource_type(self) -> ResourceType: ...

    def lookup_key(self, resource: Resource) -> Optional[LookupKey]:
        """None when the resource has no place in the monitoring backend."""
        ...


def _key_value(resource: Resource, part: ResourceType) -> Optional[str]:
    value = resource.get_property(key_property_ids(resource.type)[part])
    return str(value) if value is not None else None


@dataclass(frozen=True)
class ComponentLookupStrategy:
    """Cluster-wide component aggregates: summary host, component namespace."""

    namespaces: ClusterNamespaceTable

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType.COMPONENT

    def lookup_key(self, resource: Resource) -> Optional[LookupKey]:
        namespace = self.namespaces.for_component(_key_value(resource, ResourceType.COMPONENT))
        if namespace is None:
            return None
        return LookupKey(namespace, SUMMARY_HOST)


@dataclass(frozen=True)
class HostComponentLookupStrategy:
    """One component instance: its real host inside the component namespace."""

    namespaces: ClusterNamespaceTable

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType.HOST_COMPONENT

    def lookup_key(self, resource: Resource) -> Optional[LookupKey]:
        namespace = self.namespaces.for_component(_key_value(resource, ResourceType.COMPONENT))
        host = _key_value(resource, ResourceType.HOST)
        if namespace is None or host is None:
            return None
        return LookupKey(namespace, host)


@dataclass(frozen=True)
class HostLookupStrategy:
    namespaces: ClusterNamespaceTable

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType.HOST

    def lookup_key(self, resource: Resource) -> Optional[LookupKey]:
        host = _key_value(resource, ResourceType.HOST)
        if host is None:
            return None
        return LookupKey(self.namespaces.host_namespace, host)


@dataclass(frozen=True)
class ClusterLookupStrategy:
    namespaces: ClusterNamespaceTable

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType.CLUSTER

    def lookup_key(self, resource: Resource) -> Optional[LookupKey]:
        cluster_name = _key_value(resource, ResourceType.CLUSTER)
        if cluster_name is None:
            return None
        return LookupKey(self.namespaces.for_cluster(cluster_name), SUMMARY_HOST)
