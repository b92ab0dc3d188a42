from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from clusterview.modules.resources.domain.resource import Resource


@dataclass(frozen=True)
class TemporalInfo:
    """Time range for temporal metric requests, in epoch seconds."""

    start: int
    end: int
    step: Optional[int] = None

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("TemporalInfo end must not precede start")
        if self.step is not None and self.step <= 0:
            raise ValueError("TemporalInfo step must be positive")


@dataclass(frozen=True)
class Request:
    """
    What a caller wants from a provider.

    ``property_ids`` empty means every known id. ``properties`` carries one
    property map per resource for create, or the new values for update.
    """

    property_ids: frozenset[str] = field(default_factory=frozenset)
    properties: tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    temporal_info: Optional[TemporalInfo] = None

    @classmethod
    def for_properties(
        cls, property_ids: Iterable[str] = (), temporal_info: Optional[TemporalInfo] = None
    ) -> Request:
        return cls(property_ids=frozenset(property_ids), temporal_info=temporal_info)

    @classmethod
    def for_values(cls, *properties: Mapping[str, Any]) -> Request:
        return cls(properties=tuple(dict(p) for p in properties))

    @property
    def is_all_properties(self) -> bool:
        return not self.property_ids

    @property
    def referenced_property_ids(self) -> frozenset[str]:
        """Ids named in the property maps of a create/update request."""
        ids: set[str] = set()
        for values in self.properties:
            ids.update(values)
        return frozenset(ids)

    def with_property_ids(self, property_ids: Iterable[str]) -> Request:
        return Request(frozenset(property_ids), self.properties, self.temporal_info)


class Status(str, Enum):
    IN_PROGRESS = "InProgress"
    COMPLETE = "Complete"


@dataclass
class RequestStatus:
    """Outcome of a create, update or delete."""

    status: Status
    resources: list[Resource] = field(default_factory=list)
    task_id: Optional[str] = None

    @classmethod
    def complete(cls, resources: Iterable[Resource] = ()) -> RequestStatus:
        return cls(Status.COMPLETE, list(resources))

    @classmethod
    def in_progress(cls, task_id: str, resources: Iterable[Resource] = ()) -> RequestStatus:
        return cls(Status.IN_PROGRESS, list(resources), task_id=task_id)
