"""
Resource providers backed by the durable configuration store.

One provider per resource type owns that type's identity and configuration
properties. Reads push down whatever part of the predicate the provider can
evaluate; exact filtering is left to the controller.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Optional

import structlog

from clusterview.modules.resources.domain.ports import BackingStore, ResourceProvider, StoreResult
from clusterview.modules.resources.domain.predicate import Predicate
from clusterview.modules.resources.domain.request import Request, RequestStatus
from clusterview.modules.resources.domain.resource import (
    Resource,
    ResourceType,
    expand_property_ids,
    key_property_ids,
)
from clusterview.shared.core.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    UnsupportedPropertyError,
)
from clusterview.shared.core.timeout import TimeoutManager

logger = structlog.get_logger()

STORE_PROPERTY_IDS: Mapping[ResourceType, frozenset[str]] = MappingProxyType({
    ResourceType.CLUSTER: frozenset({
        "Clusters/cluster_name",
        "Clusters/cluster_id",
        "Clusters/version",
        "Clusters/state",
    }),
    ResourceType.SERVICE: frozenset({
        "ServiceInfo/cluster_name",
        "ServiceInfo/service_name",
        "ServiceInfo/state",
    }),
    ResourceType.HOST: frozenset({
        "Hosts/cluster_name",
        "Hosts/host_name",
        "Hosts/ip",
        "Hosts/cpu_count",
        "Hosts/total_mem",
        "Hosts/os_type",
        "Hosts/rack_info",
        "Hosts/host_status",
    }),
    ResourceType.COMPONENT: frozenset({
        "ServiceComponentInfo/cluster_name",
        "ServiceComponentInfo/service_name",
        "ServiceComponentInfo/component_name",
        "ServiceComponentInfo/state",
        "ServiceComponentInfo/category",
    }),
    ResourceType.HOST_COMPONENT: frozenset({
        "HostRoles/cluster_name",
        "HostRoles/host_name",
        "HostRoles/component_name",
        "HostRoles/state",
        "HostRoles/desired_state",
    }),
})


class StoreResourceProvider(ResourceProvider):
    def __init__(
        self,
        resource_type: ResourceType,
        store: BackingStore,
        property_ids: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
    ):
        self._type = resource_type
        self._store = store
        self._keys = key_property_ids(resource_type)
        self._property_ids = frozenset(
            property_ids if property_ids is not None else STORE_PROPERTY_IDS[resource_type]
        )
        missing_keys = set(self._keys.values()) - self._property_ids
        if missing_keys:
            raise ConfigurationError(
                f"{resource_type.value} provider must own its key properties",
                details={"missing": sorted(missing_keys)},
            )
        self._timeouts = TimeoutManager("store", timeout=timeout)

    @property
    def resource_type(self) -> ResourceType:
        return self._type

    @property
    def property_ids(self) -> frozenset[str]:
        return self._property_ids

    @property
    def key_property_ids(self) -> Mapping[ResourceType, str]:
        return self._keys

    # ----- reads -----

    async def get_resources(
        self, request: Request, predicate: Optional[Predicate] = None
    ) -> list[Resource]:
        self._reject_unsupported(request.property_ids)

        selected = (
            set(self._property_ids)
            if request.is_all_properties
            else expand_property_ids(request.property_ids, self._property_ids)
        )
        selected.update(self._keys.values())
        pushdown = predicate.restrict_to(self._property_ids) if predicate is not None else None

        records = await self._timeouts.execute_with_timeout(self._store.read, self._type, pushdown)

        resources: list[Resource] = []
        for record in records:
            resource = Resource(
                self._type, {pid: value for pid, value in record.items() if pid in selected}
            )
            if not resource.has_valid_key():
                logger.warning(
                    "store_record_missing_key",
                    resource_type=self._type.value,
                    key=list(resource.key),
                )
                continue
            resources.append(resource)

        logger.debug(
            "store_resources_fetched",
            resource_type=self._type.value,
            count=len(resources),
            pushdown=str(pushdown) if pushdown is not None else None,
        )
        return resources

    # ----- mutations -----

    async def create_resources(self, request: Request) -> RequestStatus:
        if not request.properties:
            raise InvalidRequestError(f"Create {self._type.value} requires property values")
        self._reject_unsupported(request.referenced_property_ids)

        for values in request.properties:
            missing = [pid for pid in self._keys.values() if values.get(pid) is None]
            if missing:
                raise InvalidRequestError(
                    f"Create {self._type.value} is missing key properties",
                    details={"missing": missing},
                )

        result = await self._timeouts.execute_with_timeout(
            self._store.create, self._type, list(request.properties)
        )
        logger.info("resources_created", resource_type=self._type.value, count=len(result.records))
        return self._status(result)

    async def update_resources(
        self, request: Request, predicate: Optional[Predicate] = None
    ) -> RequestStatus:
        values: dict[str, Any] = {}
        for update in request.properties:
            values.update(update)
        if not values:
            raise InvalidRequestError(f"Update {self._type.value} requires property values")
        self._reject_unsupported(values)
        self._reject_unsupported(predicate.property_ids if predicate is not None else ())

        changed_keys = sorted(set(values) & set(self._keys.values()))
        if changed_keys:
            raise InvalidRequestError(
                f"Key properties of {self._type.value} cannot be updated",
                details={"property_ids": changed_keys},
            )

        result = await self._timeouts.execute_with_timeout(
            self._store.update, self._type, values, predicate
        )
        logger.info("resources_updated", resource_type=self._type.value, count=len(result.records))
        return self._status(result)

    async def delete_resources(self, predicate: Optional[Predicate] = None) -> RequestStatus:
        self._reject_unsupported(predicate.property_ids if predicate is not None else ())

        result = await self._timeouts.execute_with_timeout(self._store.delete, self._type, predicate)
        logger.info("resources_deleted", resource_type=self._type.value, count=len(result.records))
        return self._status(result)

    # ----- helpers -----

    def _reject_unsupported(self, property_ids: Iterable[str]) -> None:
        unsupported = self.check_property_ids(property_ids)
        if unsupported:
            raise UnsupportedPropertyError(unsupported, resource_type=self._type)

    def _status(self, result: StoreResult) -> RequestStatus:
        resources = [Resource(self._type, record) for record in result.records]
        if result.task_id is not None:
            return RequestStatus.in_progress(result.task_id, resources)
        return RequestStatus.complete(resources)
