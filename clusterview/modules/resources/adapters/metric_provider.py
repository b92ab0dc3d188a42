"""
Metric property provider.

One enrichment engine serves every resource type; the type-specific part
(how a resource maps to a monitoring namespace and host) is a
LookupKeyStrategy. Resources are grouped by namespace so the monitoring
backend is queried once per namespace, and the batches run concurrently on a
bounded pool. A batch that times out, cannot reach the backend or gets
malformed data leaves its resources without metric properties.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Sequence
from typing import Any, Optional

import structlog

from clusterview.modules.resources.domain.lookup import LookupKeyStrategy
from clusterview.modules.resources.domain.metrics import MetricDescriptor, MetricDescriptorTable
from clusterview.modules.resources.domain.ports import (
    MetricSeries,
    MonitoringBackend,
    PropertyProvider,
)
from clusterview.modules.resources.domain.predicate import Predicate
from clusterview.modules.resources.domain.request import Request, TemporalInfo
from clusterview.modules.resources.domain.resource import (
    Resource,
    ResourceType,
    expand_property_ids,
)
from clusterview.shared.core.config import get_settings
from clusterview.shared.core.exceptions import ProviderError
from clusterview.shared.core.timeout import TimeoutManager

logger = structlog.get_logger()


class MetricPropertyProvider(PropertyProvider):
    def __init__(
        self,
        strategy: LookupKeyStrategy,
        backend: MonitoringBackend,
        descriptors: MetricDescriptorTable,
        max_concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self._strategy = strategy
        self._backend = backend
        self._descriptors = descriptors.for_type(strategy.resource_type)
        self._max_concurrency = max(1, max_concurrency or settings.GANGLIA_MAX_CONCURRENCY)
        self._timeouts = TimeoutManager("monitoring", timeout=timeout)

    @property
    def resource_type(self) -> ResourceType:
        return self._strategy.resource_type

    @property
    def property_ids(self) -> frozenset[str]:
        return frozenset(self._descriptors)

    def wanted_property_ids(
        self, request: Request, predicate: Optional[Predicate] = None
    ) -> set[str]:
        """Owned ids named by the request (empty = all) or referenced by the predicate."""
        if request.is_all_properties:
            wanted = set(self.property_ids)
        else:
            wanted = expand_property_ids(request.property_ids, self.property_ids)
        if predicate is not None:
            wanted |= expand_property_ids(predicate.property_ids, self.property_ids)
        return wanted

    async def populate_resources(
        self,
        resources: Sequence[Resource],
        request: Request,
        predicate: Optional[Predicate] = None,
    ) -> list[Resource]:
        wanted = self.wanted_property_ids(request, predicate)
        if not wanted or not resources:
            return list(resources)

        metric_ids: dict[str, list[str]] = defaultdict(list)
        for prop_id in sorted(wanted):
            metric_ids[self._descriptors[prop_id].metric].append(prop_id)

        batches: dict[str, list[tuple[Resource, str]]] = defaultdict(list)
        for resource in resources:
            lookup = self._strategy.lookup_key(resource)
            if lookup is None:
                logger.debug(
                    "metric_lookup_key_unresolved",
                    resource_type=self.resource_type.value,
                    key=list(resource.key),
                )
                continue
            batches[lookup.namespace].append((resource, lookup.host))

        if not batches:
            return list(resources)

        semaphore = asyncio.Semaphore(min(len(batches), self._max_concurrency))

        async def _bounded_batch(namespace: str, members: list[tuple[Resource, str]]) -> bool:
            async with semaphore:
                return await self._run_batch(
                    namespace, members, metric_ids, request.temporal_info
                )

        outcomes = await asyncio.gather(
            *(_bounded_batch(namespace, members) for namespace, members in batches.items())
        )

        logger.info(
            "metrics_populated",
            resource_type=self.resource_type.value,
            namespaces=len(batches),
            degraded_namespaces=outcomes.count(False),
            metrics=len(metric_ids),
        )
        return list(resources)

    async def _run_batch(
        self,
        namespace: str,
        members: list[tuple[Resource, str]],
        metric_ids: dict[str, list[str]],
        temporal_info: Optional[TemporalInfo],
    ) -> bool:
        hosts = {host for _, host in members}
        try:
            series = await self._timeouts.execute_with_timeout(
                self._backend.query, namespace, hosts, list(metric_ids), temporal_info
            )
        except ProviderError as exc:
            logger.warning(
                "metric_batch_degraded",
                resource_type=self.resource_type.value,
                namespace=namespace,
                resources=len(members),
                error=exc.message,
                code=exc.code,
            )
            return False
        except Exception as exc:
            logger.error(
                "metric_batch_failed",
                resource_type=self.resource_type.value,
                namespace=namespace,
                resources=len(members),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False

        for resource, host in members:
            for metric, prop_ids in metric_ids.items():
                found = series.get((host, metric))
                if found is None:
                    continue
                for prop_id in prop_ids:
                    value = self._value(self._descriptors[prop_id], found, temporal_info)
                    if value is not None:
                        resource.set_property(prop_id, value)
        return True

    @staticmethod
    def _value(
        descriptor: MetricDescriptor, series: MetricSeries, temporal_info: Optional[TemporalInfo]
    ) -> Any:
        if temporal_info is not None and descriptor.temporal:
            points = series.datapoints()
            return points or None
        if descriptor.point_in_time:
            return series.latest()
        return None
