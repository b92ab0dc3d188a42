"""
Controller Factory

Builds the provider registration table once at startup. The table, the
namespace table and the metric descriptors are immutable afterwards.
"""

from typing import Optional

import structlog

from clusterview.modules.resources.adapters.metric_provider import MetricPropertyProvider
from clusterview.modules.resources.adapters.store_provider import StoreResourceProvider
from clusterview.modules.resources.domain.controller import ClusterController, ProviderModule
from clusterview.modules.resources.domain.lookup import (
    ClusterLookupStrategy,
    ClusterNamespaceTable,
    ComponentLookupStrategy,
    HostComponentLookupStrategy,
    HostLookupStrategy,
    LookupKeyStrategy,
)
from clusterview.modules.resources.domain.metrics import (
    MetricDescriptorTable,
    get_metric_descriptors,
)
from clusterview.modules.resources.domain.ports import BackingStore, MonitoringBackend
from clusterview.modules.resources.domain.resource import ResourceType
from clusterview.shared.adapters.ganglia import GangliaClient
from clusterview.shared.core.config import Settings, get_settings

logger = structlog.get_logger()


def lookup_strategies(namespaces: ClusterNamespaceTable) -> dict[ResourceType, LookupKeyStrategy]:
    """Metric lookup strategy per resource type that reports metrics."""
    return {
        ResourceType.CLUSTER: ClusterLookupStrategy(namespaces),
        ResourceType.HOST: HostLookupStrategy(namespaces),
        ResourceType.COMPONENT: ComponentLookupStrategy(namespaces),
        ResourceType.HOST_COMPONENT: HostComponentLookupStrategy(namespaces),
    }


def build_controller(
    store: BackingStore,
    backend: Optional[MonitoringBackend] = None,
    descriptors: Optional[MetricDescriptorTable] = None,
    namespaces: Optional[ClusterNamespaceTable] = None,
    settings: Optional[Settings] = None,
) -> ClusterController:
    settings = settings or get_settings()
    backend = backend or GangliaClient(
        base_url=settings.GANGLIA_COLLECTOR_URL, timeout=settings.GANGLIA_TIMEOUT_SECONDS
    )
    descriptors = descriptors or get_metric_descriptors()
    namespaces = namespaces or ClusterNamespaceTable.from_settings(settings)
    strategies = lookup_strategies(namespaces)

    modules: dict[ResourceType, ProviderModule] = {}
    for resource_type in ResourceType:
        property_providers = []
        strategy = strategies.get(resource_type)
        if strategy is not None and descriptors.for_type(resource_type):
            property_providers.append(
                MetricPropertyProvider(
                    strategy,
                    backend,
                    descriptors,
                    max_concurrency=settings.GANGLIA_MAX_CONCURRENCY,
                    timeout=settings.GANGLIA_TIMEOUT_SECONDS,
                )
            )
        modules[resource_type] = ProviderModule(
            resource_provider=StoreResourceProvider(
                resource_type, store, timeout=settings.STORE_TIMEOUT_SECONDS
            ),
            property_providers=tuple(property_providers),
        )

    logger.info(
        "cluster_controller_built",
        resource_types=[t.value for t in modules],
        property_providers=sum(len(m.property_providers) for m in modules.values()),
    )
    return ClusterController(modules)
