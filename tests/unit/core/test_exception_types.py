import pytest

from clusterview.modules.resources.domain.resource import ResourceType
from clusterview.shared.core.exceptions import (
    BackendUnavailableError,
    ClusterViewException,
    ConfigurationError,
    InvalidRequestError,
    MalformedDataError,
    PredicateEvaluationError,
    ProviderError,
    ResourceAlreadyExistsError,
    UnsupportedPropertyError,
    UnsupportedResourceTypeError,
)


def test_base_exception_defaults():
    exc = ClusterViewException("boom")

    assert str(exc) == "boom"
    assert exc.code == "internal_error"
    assert exc.status_code == 500
    assert exc.details == {}


@pytest.mark.parametrize(
    "exc, code, status_code",
    [
        (UnsupportedResourceTypeError("x"), "unsupported_resource_type", 400),
        (InvalidRequestError("x"), "invalid_request", 400),
        (ResourceAlreadyExistsError("x"), "resource_exists", 409),
        (PredicateEvaluationError("x"), "predicate_evaluation_error", 400),
        (ProviderError("x"), "provider_error", 502),
        (BackendUnavailableError("x"), "backend_unavailable", 503),
        (MalformedDataError("x"), "malformed_data", 502),
        (ConfigurationError("x"), "config_error", 500),
    ],
)
def test_error_codes_and_statuses(exc, code, status_code):
    assert isinstance(exc, ClusterViewException)
    assert exc.code == code
    assert exc.status_code == status_code


def test_backend_failures_are_provider_errors():
    assert issubclass(BackendUnavailableError, ProviderError)
    assert issubclass(MalformedDataError, ProviderError)


def test_unsupported_property_error_lists_ids():
    exc = UnsupportedPropertyError(["metrics/b", "metrics/a"], resource_type=ResourceType.HOST)

    assert exc.property_ids == frozenset({"metrics/a", "metrics/b"})
    assert exc.resource_type is ResourceType.HOST
    assert exc.details["property_ids"] == ["metrics/a", "metrics/b"]
    assert exc.code == "unsupported_property"
    assert "Host" in exc.message
