"""
In-memory backing store.

Keeps one list of records per resource type and applies predicate-scoped
reads, updates and deletes. Records handed out are copies, so callers never
alias store state.
"""

import asyncio
import copy
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import structlog

from clusterview.modules.resources.domain.ports import StoreResult
from clusterview.modules.resources.domain.predicate import Predicate
from clusterview.modules.resources.domain.resource import (
    Resource,
    ResourceType,
    key_property_ids,
)
from clusterview.shared.core.exceptions import ResourceAlreadyExistsError

logger = structlog.get_logger()


class InMemoryBackingStore:
    def __init__(self, seed: Optional[Mapping[ResourceType, Sequence[Mapping[str, Any]]]] = None):
        self._records: dict[ResourceType, list[dict[str, Any]]] = {
            resource_type: [dict(record) for record in records]
            for resource_type, records in (seed or {}).items()
        }
        self._lock = asyncio.Lock()

    @staticmethod
    def _matches(
        resource_type: ResourceType, record: Mapping[str, Any], predicate: Optional[Predicate]
    ) -> bool:
        return predicate is None or predicate.evaluate(Resource(resource_type, record))

    @staticmethod
    def _key(resource_type: ResourceType, record: Mapping[str, Any]) -> tuple[Any, ...]:
        return tuple(record.get(pid) for pid in key_property_ids(resource_type).values())

    async def read(
        self, resource_type: ResourceType, predicate: Optional[Predicate] = None
    ) -> list[dict[str, Any]]:
        async with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._records.get(resource_type, [])
                if self._matches(resource_type, record, predicate)
            ]

    async def create(
        self, resource_type: ResourceType, records: Sequence[Mapping[str, Any]]
    ) -> StoreResult:
        async with self._lock:
            existing = self._records.setdefault(resource_type, [])
            taken = {self._key(resource_type, record) for record in existing}
            staged: list[dict[str, Any]] = []
            for record in records:
                key = self._key(resource_type, record)
                if key in taken:
                    raise ResourceAlreadyExistsError(
                        f"{resource_type.value} {key} already exists",
                        details={"resource_type": resource_type.value, "key": list(key)},
                    )
                taken.add(key)
                staged.append(copy.deepcopy(dict(record)))
            existing.extend(staged)
            logger.debug("store_records_created", resource_type=resource_type.value, count=len(staged))
            return StoreResult(records=[copy.deepcopy(record) for record in staged])

    async def update(
        self,
        resource_type: ResourceType,
        values: Mapping[str, Any],
        predicate: Optional[Predicate] = None,
    ) -> StoreResult:
        async with self._lock:
            # Match everything before writing so a failing predicate changes nothing.
            matched = [
                record
                for record in self._records.get(resource_type, [])
                if self._matches(resource_type, record, predicate)
            ]
            updated: list[dict[str, Any]] = []
            for record in matched:
                record.update(copy.deepcopy(dict(values)))
                updated.append(copy.deepcopy(record))
            logger.debug("store_records_updated", resource_type=resource_type.value, count=len(updated))
            return StoreResult(records=updated)

    async def delete(
        self, resource_type: ResourceType, predicate: Optional[Predicate] = None
    ) -> StoreResult:
        async with self._lock:
            kept: list[dict[str, Any]] = []
            removed: list[dict[str, Any]] = []
            for record in self._records.get(resource_type, []):
                if self._matches(resource_type, record, predicate):
                    removed.append(record)
                else:
                    kept.append(record)
            self._records[resource_type] = kept
            logger.debug("store_records_deleted", resource_type=resource_type.value, count=len(removed))
            return StoreResult(records=removed)
