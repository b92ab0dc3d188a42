import json

import pytest

from clusterview.modules.resources.domain.metrics import (
    MetricDescriptor,
    MetricDescriptorTable,
    get_metric_descriptors,
)
from clusterview.modules.resources.domain.resource import ResourceType
from clusterview.shared.core.exceptions import ConfigurationError


def test_packaged_descriptors_cover_metric_types(descriptors):
    assert set(descriptors.resource_types) == {
        ResourceType.CLUSTER,
        ResourceType.HOST,
        ResourceType.COMPONENT,
        ResourceType.HOST_COMPONENT,
    }
    cpu_user = descriptors.get(ResourceType.COMPONENT, "metrics/cpu/user")
    assert cpu_user == MetricDescriptor(metric="cpu_user", point_in_time=True, temporal=True, units="%", aggregate="avg")
    assert descriptors.for_type(ResourceType.SERVICE) == {}


def test_descriptors_are_immutable(descriptors):
    with pytest.raises(TypeError):
        descriptors.for_type(ResourceType.HOST)["metrics/new"] = MetricDescriptor(metric="x")  # type: ignore[index]


def test_from_dict_accepts_alias_and_defaults():
    table = MetricDescriptorTable.from_dict(
        {"Host": {"metrics/load/5-min": {"metric": "load_five", "pointInTime": False}}}
    )
    descriptor = table.get(ResourceType.HOST, "metrics/load/5-min")

    assert descriptor is not None
    assert descriptor.point_in_time is False
    assert descriptor.temporal is True
    assert descriptor.aggregate == "sum"
    assert table.property_ids(ResourceType.HOST) == {"metrics/load/5-min"}


@pytest.mark.parametrize(
    "raw",
    [
        {"Rack": {"metrics/x": {"metric": "x"}}},
        {"Host": {"metrics/x": {"metric": ""}}},
        {"Host": {"metrics/x": {"metric": "x", "aggregate": "median"}}},
        {"Host": ["metrics/x"]},
    ],
)
def test_from_dict_rejects_invalid_config(raw):
    with pytest.raises(ConfigurationError):
        MetricDescriptorTable.from_dict(raw)


def test_load_reports_unreadable_file(tmp_path):
    broken = tmp_path / "descriptors.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        MetricDescriptorTable.load(broken)
    with pytest.raises(ConfigurationError):
        MetricDescriptorTable.load(tmp_path / "missing.json")


def test_get_metric_descriptors_uses_settings_path(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"Cluster": {"metrics/custom": {"metric": "custom_metric"}}}), encoding="utf-8")
    monkeypatch.setenv("METRIC_DESCRIPTORS_PATH", str(path))

    table = get_metric_descriptors()

    assert table.property_ids(ResourceType.CLUSTER) == {"metrics/custom"}
    assert get_metric_descriptors() is table
