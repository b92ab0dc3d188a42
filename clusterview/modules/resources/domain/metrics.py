"""
Metric descriptor configuration.

Maps (resource type, property id) to a backend metric name plus reporting
metadata. The table is loaded once at startup and never mutated.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from clusterview.modules.resources.domain.resource import ResourceType
from clusterview.shared.core.config import get_settings
from clusterview.shared.core.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_DESCRIPTORS_PATH = Path(__file__).with_name("ganglia_properties.json")


class MetricDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    metric: str = Field(min_length=1)
    point_in_time: bool = Field(default=True, alias="pointInTime")
    temporal: bool = True
    units: Optional[str] = None
    aggregate: Literal["sum", "avg", "max", "min"] = "sum"


class MetricDescriptorTable:
    """Immutable lookup of metric descriptors per resource type."""

    def __init__(self, descriptors: Mapping[ResourceType, Mapping[str, MetricDescriptor]]):
        self._descriptors = MappingProxyType({
            resource_type: MappingProxyType(dict(by_id))
            for resource_type, by_id in descriptors.items()
        })

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> MetricDescriptorTable:
        descriptors: dict[ResourceType, dict[str, MetricDescriptor]] = {}
        for type_name, entries in raw.items():
            try:
                resource_type = ResourceType(type_name)
            except ValueError as exc:
                raise ConfigurationError(
                    f"Unknown resource type in metric descriptors: {type_name}"
                ) from exc
            if not isinstance(entries, Mapping):
                raise ConfigurationError(
                    f"Metric descriptors for {type_name} must be an object"
                )
            try:
                descriptors[resource_type] = {
                    prop_id: MetricDescriptor.model_validate(entry)
                    for prop_id, entry in entries.items()
                }
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid metric descriptor for {type_name}: {exc}"
                ) from exc
        return cls(descriptors)

    @classmethod
    def load(cls, path: Path | str) -> MetricDescriptorTable:
        source = Path(path)
        try:
            raw = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(
                f"Unable to load metric descriptors from {source}: {exc}"
            ) from exc
        if not isinstance(raw, Mapping):
            raise ConfigurationError("Metric descriptor file must contain a JSON object")
        table = cls.from_dict(raw)
        logger.info(
            "metric_descriptors_loaded",
            path=str(source),
            resource_types=[t.value for t in table.resource_types],
            descriptor_count=sum(len(table.for_type(t)) for t in table.resource_types),
        )
        return table

    @property
    def resource_types(self) -> list[ResourceType]:
        return list(self._descriptors)

    def for_type(self, resource_type: ResourceType) -> Mapping[str, MetricDescriptor]:
        return self._descriptors.get(resource_type, MappingProxyType({}))

    def property_ids(self, resource_type: ResourceType) -> frozenset[str]:
        return frozenset(self.for_type(resource_type))

    def get(self, resource_type: ResourceType, prop_id: str) -> Optional[MetricDescriptor]:
        return self.for_type(resource_type).get(prop_id)


@lru_cache
def _load_cached(path: str) -> MetricDescriptorTable:
    return MetricDescriptorTable.load(path)


def get_metric_descriptors() -> MetricDescriptorTable:
    """Process-wide descriptor table from settings, loaded on first use."""
    configured = get_settings().METRIC_DESCRIPTORS_PATH
    return _load_cached(str(configured or DEFAULT_DESCRIPTORS_PATH))
