"""
Global pytest fixtures for the ClusterView test suite.

Provides:
- Test environment settings
- A seeded in-memory backing store
- A scriptable monitoring backend double
- Default metric descriptors and namespace table
"""
import asyncio
import os
from collections.abc import Iterable
from typing import Any, Optional

import pytest

# Set test environment BEFORE any clusterview imports
os.environ["TESTING"] = "true"
os.environ["GANGLIA_COLLECTOR_URL"] = "http://ganglia.test"

from clusterview.modules.resources.domain.lookup import ClusterNamespaceTable
from clusterview.modules.resources.domain.metrics import (
    DEFAULT_DESCRIPTORS_PATH,
    MetricDescriptorTable,
)
from clusterview.modules.resources.domain.ports import MetricSeries
from clusterview.modules.resources.domain.request import TemporalInfo
from clusterview.modules.resources.domain.resource import ResourceType
from clusterview.shared.adapters.store import InMemoryBackingStore
from clusterview.shared.core.config import get_settings


@pytest.fixture(autouse=True)
def reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Backing store fixtures
# ============================================================================

CLUSTER_SEED: dict[ResourceType, list[dict[str, Any]]] = {
    ResourceType.CLUSTER: [
        {"Clusters/cluster_name": "c1", "Clusters/cluster_id": 1, "Clusters/version": "HDP-1.2.0"},
    ],
    ResourceType.HOST: [
        {"Hosts/cluster_name": "c1", "Hosts/host_name": "h1", "Hosts/cpu_count": 4, "Hosts/os_type": "centos6"},
        {"Hosts/cluster_name": "c1", "Hosts/host_name": "h2", "Hosts/cpu_count": 8, "Hosts/os_type": "centos6"},
    ],
    ResourceType.COMPONENT: [
        {
            "ServiceComponentInfo/cluster_name": "c1",
            "ServiceComponentInfo/service_name": "HDFS",
            "ServiceComponentInfo/component_name": "NAMENODE",
            "ServiceComponentInfo/state": "STARTED",
        },
        {
            "ServiceComponentInfo/cluster_name": "c1",
            "ServiceComponentInfo/service_name": "HDFS",
            "ServiceComponentInfo/component_name": "DATANODE",
            "ServiceComponentInfo/state": "STARTED",
        },
        {
            "ServiceComponentInfo/cluster_name": "c1",
            "ServiceComponentInfo/service_name": "MAPREDUCE",
            "ServiceComponentInfo/component_name": "JOBTRACKER",
            "ServiceComponentInfo/state": "INSTALLED",
        },
    ],
    ResourceType.HOST_COMPONENT: [
        {"HostRoles/cluster_name": "c1", "HostRoles/host_name": "h1", "HostRoles/component_name": "NAMENODE"},
        {"HostRoles/cluster_name": "c1", "HostRoles/host_name": "h1", "HostRoles/component_name": "DATANODE"},
        {"HostRoles/cluster_name": "c1", "HostRoles/host_name": "h2", "HostRoles/component_name": "DATANODE"},
    ],
}


@pytest.fixture
def store() -> InMemoryBackingStore:
    return InMemoryBackingStore(CLUSTER_SEED)


# ============================================================================
# Monitoring backend fixtures
# ============================================================================

class FakeMonitoringBackend:
    """Monitoring backend double with per-namespace data, failures and delays."""

    def __init__(self, start: int = 1_000, step: int = 15):
        self.start = start
        self.step = step
        self.series: dict[str, dict[tuple[str, str], list[Optional[float]]]] = {}
        self.failures: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def add(self, namespace: str, host: str, metric: str, values: list[Optional[float]]) -> None:
        self.series.setdefault(namespace, {})[(host, metric)] = values

    async def query(
        self,
        namespace: str,
        hosts: Iterable[str],
        metrics: Iterable[str],
        temporal_info: Optional[TemporalInfo] = None,
    ) -> dict[tuple[str, str], MetricSeries]:
        hosts, metrics = set(hosts), set(metrics)
        self.calls.append(
            {"namespace": namespace, "hosts": hosts, "metrics": metrics, "temporal_info": temporal_info}
        )
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if namespace in self.delays:
                await asyncio.sleep(self.delays[namespace])
        finally:
            self.in_flight -= 1
        if namespace in self.failures:
            raise self.failures[namespace]
        return {
            (host, metric): MetricSeries(
                namespace=namespace,
                host=host,
                metric=metric,
                start=self.start,
                step=self.step,
                values=tuple(values),
            )
            for (host, metric), values in self.series.get(namespace, {}).items()
            if host in hosts and metric in metrics
        }


@pytest.fixture
def monitoring() -> FakeMonitoringBackend:
    backend = FakeMonitoringBackend()
    backend.add("HDPNameNode", "__SummaryInfo__", "cpu_user", [10.0, 12.5])
    backend.add("HDPNameNode", "__SummaryInfo__", "mem_free", [2048.0])
    backend.add("HDPSlaves", "__SummaryInfo__", "cpu_user", [40.0, None])
    backend.add("HDPJobTracker", "__SummaryInfo__", "cpu_user", [3.0])
    backend.add("HDPSlaves", "h1", "cpu_user", [20.0, 21.0])
    backend.add("HDPSlaves", "h2", "cpu_user", [30.0, 31.0])
    return backend


@pytest.fixture
def descriptors() -> MetricDescriptorTable:
    return MetricDescriptorTable.load(DEFAULT_DESCRIPTORS_PATH)


@pytest.fixture
def namespaces() -> ClusterNamespaceTable:
    return ClusterNamespaceTable()
