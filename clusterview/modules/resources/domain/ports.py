"""
Provider contracts and the external collaborators they consume.

Resource providers own identity and configuration state; property providers
overlay a disjoint family of externally sourced values. The backing store and
monitoring backend are reached only through the narrow protocols below.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from clusterview.modules.resources.domain.predicate import Predicate
from clusterview.modules.resources.domain.request import Request, RequestStatus, TemporalInfo
from clusterview.modules.resources.domain.resource import (
    Resource,
    ResourceType,
    unsupported_property_ids,
)


class ResourceProvider(ABC):
    """Per-resource-type CRUD adapter over the durable store."""

    @property
    @abstractmethod
    def resource_type(self) -> ResourceType:
        raise NotImplementedError()

    @property
    @abstractmethod
    def property_ids(self) -> frozenset[str]:
        """Every property id this provider owns."""
        raise NotImplementedError()

    @property
    @abstractmethod
    def key_property_ids(self) -> Mapping[ResourceType, str]:
        raise NotImplementedError()

    @abstractmethod
    async def create_resources(self, request: Request) -> RequestStatus:
        raise NotImplementedError()

    @abstractmethod
    async def get_resources(
        self, request: Request, predicate: Optional[Predicate] = None
    ) -> list[Resource]:
        """
        Resources carrying their key properties plus the requested store properties.

        Filtering by ``predicate`` may be partial; the caller re-applies it.
        """
        raise NotImplementedError()

    @abstractmethod
    async def update_resources(
        self, request: Request, predicate: Optional[Predicate] = None
    ) -> RequestStatus:
        raise NotImplementedError()

    @abstractmethod
    async def delete_resources(self, predicate: Optional[Predicate] = None) -> RequestStatus:
        raise NotImplementedError()

    def check_property_ids(self, property_ids: Iterable[str]) -> set[str]:
        """Ids (or categories) in ``property_ids`` this provider cannot serve."""
        return unsupported_property_ids(property_ids, self.property_ids)


class PropertyProvider(ABC):
    """Enriches already-identified resources with one property family."""

    @property
    @abstractmethod
    def resource_type(self) -> ResourceType:
        raise NotImplementedError()

    @property
    @abstractmethod
    def property_ids(self) -> frozenset[str]:
        raise NotImplementedError()

    @abstractmethod
    async def populate_resources(
        self,
        resources: Sequence[Resource],
        request: Request,
        predicate: Optional[Predicate] = None,
    ) -> list[Resource]:
        """
        Fill in this provider's properties on ``resources``.

        Ids outside this provider's family are ignored. Backend failures leave
        the affected resources without the family's properties.
        """
        raise NotImplementedError()

    def check_property_ids(self, property_ids: Iterable[str]) -> set[str]:
        return unsupported_property_ids(property_ids, self.property_ids)


@dataclass
class StoreResult:
    """Records affected by a store mutation, plus a handle when it completes later."""

    records: list[dict[str, Any]] = field(default_factory=list)
    task_id: Optional[str] = None


class BackingStore(Protocol):
    async def read(
        self, resource_type: ResourceType, predicate: Optional[Predicate] = None
    ) -> list[dict[str, Any]]: ...

    async def create(
        self, resource_type: ResourceType, records: Sequence[Mapping[str, Any]]
    ) -> StoreResult: ...

    async def update(
        self,
        resource_type: ResourceType,
        values: Mapping[str, Any],
        predicate: Optional[Predicate] = None,
    ) -> StoreResult: ...

    async def delete(
        self, resource_type: ResourceType, predicate: Optional[Predicate] = None
    ) -> StoreResult: ...


@dataclass(frozen=True)
class MetricSeries:
    """One metric time series returned by a monitoring backend."""

    namespace: str
    host: str
    metric: str
    start: int
    step: int
    values: tuple[Optional[float], ...] = ()
    ds_name: str = "sum"

    def datapoints(self) -> list[list[float]]:
        """Non-null points as ``[value, timestamp]`` pairs."""
        return [
            [value, self.start + index * self.step]
            for index, value in enumerate(self.values)
            if value is not None
        ]

    def latest(self) -> Optional[float]:
        for value in reversed(self.values):
            if value is not None:
                return value
        return None


class MonitoringBackend(Protocol):
    async def query(
        self,
        namespace: str,
        hosts: Iterable[str],
        metrics: Iterable[str],
        temporal_info: Optional[TemporalInfo] = None,
    ) -> dict[tuple[str, str], MetricSeries]:
        """Series keyed by ``(host, metric)``; metrics with no data are absent."""
        ...
