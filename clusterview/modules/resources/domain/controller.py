"""
Cluster Controller: provider composition.

Per read request the controller resolves the providers registered for the
resource type, fetches base resources from the resource provider, lets every
relevant property provider enrich its own copies concurrently, merges the
copies back by resource key and finally applies the full predicate. That last
step is the only filtering that is trusted.

Base fetch failures abort the request. Property provider failures are logged
and leave that provider's properties absent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional

import structlog

from clusterview.modules.resources.domain.ports import PropertyProvider, ResourceProvider
from clusterview.modules.resources.domain.predicate import Predicate
from clusterview.modules.resources.domain.request import Request, RequestStatus
from clusterview.modules.resources.domain.resource import (
    Resource,
    ResourceType,
    expand_property_ids,
    unsupported_property_ids,
)
from clusterview.shared.core.exceptions import (
    ConfigurationError,
    UnsupportedPropertyError,
    UnsupportedResourceTypeError,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderModule:
    """The providers serving one resource type."""

    resource_provider: ResourceProvider
    property_providers: tuple[PropertyProvider, ...] = field(default_factory=tuple)

    @property
    def property_ids(self) -> frozenset[str]:
        ids = set(self.resource_provider.property_ids)
        for provider in self.property_providers:
            ids.update(provider.property_ids)
        return frozenset(ids)


def _validate_module(resource_type: ResourceType, module: ProviderModule) -> None:
    providers: list[Any] = [module.resource_provider, *module.property_providers]
    for provider in providers:
        if provider.resource_type != resource_type:
            raise ConfigurationError(
                f"{type(provider).__name__} serves {provider.resource_type.value}, "
                f"registered for {resource_type.value}"
            )

    seen: dict[str, int] = {}
    for index, provider in enumerate(providers):
        for prop_id in provider.property_ids:
            owner = seen.setdefault(prop_id, index)
            if owner != index:
                raise ConfigurationError(
                    f"Property {prop_id} of {resource_type.value} is claimed by both "
                    f"{type(providers[owner]).__name__} and {type(provider).__name__}",
                    details={"property_id": prop_id, "resource_type": resource_type.value},
                )


class ClusterController:
    def __init__(self, modules: Mapping[ResourceType, ProviderModule]):
        for resource_type, module in modules.items():
            _validate_module(resource_type, module)
        self._modules: Mapping[ResourceType, ProviderModule] = MappingProxyType(dict(modules))

    # ----- introspection -----

    @property
    def resource_types(self) -> list[ResourceType]:
        return list(self._modules)

    def get_resource_provider(self, resource_type: ResourceType) -> ResourceProvider:
        return self._module(resource_type).resource_provider

    def get_property_providers(self, resource_type: ResourceType) -> tuple[PropertyProvider, ...]:
        return self._module(resource_type).property_providers

    def get_property_ids(self, resource_type: ResourceType) -> frozenset[str]:
        return self._module(resource_type).property_ids

    def get_key_property_ids(self, resource_type: ResourceType) -> Mapping[ResourceType, str]:
        return self._module(resource_type).resource_provider.key_property_ids

    # ----- reads -----

    async def get_resources(
        self,
        resource_type: ResourceType,
        request: Optional[Request] = None,
        predicate: Optional[Predicate] = None,
    ) -> list[Resource]:
        """
        Fully populated resources of ``resource_type`` matching ``predicate``.

        Result order is unspecified.
        """
        request = request or Request()
        module = self._module(resource_type)
        predicate_ids = predicate.property_ids if predicate is not None else frozenset()

        # Dispatch
        unsupported = unsupported_property_ids(
            request.property_ids | predicate_ids, module.property_ids
        )
        if unsupported:
            raise UnsupportedPropertyError(unsupported, resource_type=resource_type)

        # BaseFetch
        base_request = self._base_request(module.resource_provider, request, predicate_ids)
        resources = await module.resource_provider.get_resources(base_request, predicate)

        # Enrich
        providers = self._relevant_providers(module, request, predicate_ids)
        if providers and resources:
            await self._enrich(resource_type, resources, providers, request, predicate)

        # Filter
        results = [
            resource
            for resource in self._with_valid_keys(resources)
            if predicate is None or predicate.evaluate(resource)
        ]
        logger.debug(
            "resources_resolved",
            resource_type=resource_type.value,
            fetched=len(resources),
            returned=len(results),
            property_providers=len(providers),
        )
        return results

    @staticmethod
    def _base_request(
        provider: ResourceProvider, request: Request, predicate_ids: Iterable[str]
    ) -> Request:
        if request.is_all_properties:
            return request
        # Predicate ids the store owns are fetched so the final filter can see them.
        base_ids = expand_property_ids(
            set(request.property_ids) | set(predicate_ids), provider.property_ids
        )
        base_ids.update(provider.key_property_ids.values())
        return request.with_property_ids(base_ids)

    @staticmethod
    def _relevant_providers(
        module: ProviderModule, request: Request, predicate_ids: frozenset[str]
    ) -> list[PropertyProvider]:
        if request.is_all_properties:
            return list(module.property_providers)
        wanted = request.property_ids | predicate_ids
        return [
            provider
            for provider in module.property_providers
            if expand_property_ids(wanted, provider.property_ids)
        ]

    async def _enrich(
        self,
        resource_type: ResourceType,
        resources: Sequence[Resource],
        providers: Sequence[PropertyProvider],
        request: Request,
        predicate: Optional[Predicate],
    ) -> None:
        async def _run(provider: PropertyProvider) -> Optional[list[Resource]]:
            copies = [resource.copy() for resource in resources]
            try:
                return await provider.populate_resources(copies, request, predicate)
            except Exception as exc:
                logger.warning(
                    "property_provider_failed",
                    resource_type=resource_type.value,
                    provider=type(provider).__name__,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return None

        outcomes = await asyncio.gather(*(_run(provider) for provider in providers))

        by_key = {resource.key: resource for resource in resources}
        for provider, enriched in zip(providers, outcomes):
            if enriched is None:
                continue
            owned = provider.property_ids
            for enriched_resource in enriched:
                target = by_key.get(enriched_resource.key)
                if target is None:
                    continue
                for prop_id, value in enriched_resource.properties.items():
                    if prop_id in owned:
                        target.set_property(prop_id, value)

        if all(outcome is None for outcome in outcomes):
            logger.warning(
                "enrichment_unavailable",
                resource_type=resource_type.value,
                providers=[type(p).__name__ for p in providers],
            )

    @staticmethod
    def _with_valid_keys(resources: Iterable[Resource]) -> Iterable[Resource]:
        for resource in resources:
            if resource.has_valid_key():
                yield resource
            else:
                logger.warning(
                    "resource_missing_key_dropped",
                    resource_type=resource.type.value,
                    key=list(resource.key),
                )

    # ----- mutations -----

    async def create_resources(self, resource_type: ResourceType, request: Request) -> RequestStatus:
        module = self._module(resource_type)
        self._reject_non_writable(module, resource_type, request.referenced_property_ids)
        return await module.resource_provider.create_resources(request)

    async def update_resources(
        self,
        resource_type: ResourceType,
        request: Request,
        predicate: Optional[Predicate] = None,
    ) -> RequestStatus:
        module = self._module(resource_type)
        predicate_ids = predicate.property_ids if predicate is not None else frozenset()
        self._reject_non_writable(
            module, resource_type, request.referenced_property_ids | predicate_ids
        )
        return await module.resource_provider.update_resources(request, predicate)

    async def delete_resources(
        self, resource_type: ResourceType, predicate: Optional[Predicate] = None
    ) -> RequestStatus:
        module = self._module(resource_type)
        predicate_ids = predicate.property_ids if predicate is not None else frozenset()
        self._reject_non_writable(module, resource_type, predicate_ids)
        return await module.resource_provider.delete_resources(predicate)

    # ----- helpers -----

    def _module(self, resource_type: ResourceType) -> ProviderModule:
        module = self._modules.get(resource_type)
        if module is None:
            raise UnsupportedResourceTypeError(
                f"No providers registered for resource type {getattr(resource_type, 'value', resource_type)}"
            )
        return module

    @staticmethod
    def _reject_non_writable(
        module: ProviderModule, resource_type: ResourceType, property_ids: Iterable[str]
    ) -> None:
        # Only the resource provider owns writable state.
        unsupported = module.resource_provider.check_property_ids(property_ids)
        if unsupported:
            raise UnsupportedPropertyError(unsupported, resource_type=resource_type)
