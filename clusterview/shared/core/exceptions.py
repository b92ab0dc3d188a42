from typing import Optional, Dict, Any, Iterable


class ClusterViewException(Exception):
    """Base exception for all ClusterView errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

class UnsupportedPropertyError(ClusterViewException):
    """Raised when a request references property ids that no provider owns."""
    def __init__(self, property_ids: Iterable[str], resource_type: Any = None, details: Optional[Dict[str, Any]] = None):
        self.property_ids = frozenset(property_ids)
        self.resource_type = resource_type
        type_name = getattr(resource_type, "value", resource_type)
        message = f"Unsupported property ids {sorted(self.property_ids)}"
        if type_name:
            message = f"{message} for resource type {type_name}"
        super().__init__(
            message,
            code="unsupported_property",
            status_code=400,
            details={"property_ids": sorted(self.property_ids), **(details or {})},
        )

class UnsupportedResourceTypeError(ClusterViewException):
    """Raised when no provider is registered for a resource type."""
    def __init__(self, message: str, code: str = "unsupported_resource_type", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=400, details=details)

class InvalidRequestError(ClusterViewException):
    """Raised when a create/update request is structurally invalid."""
    def __init__(self, message: str, code: str = "invalid_request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=400, details=details)

class ResourceAlreadyExistsError(ClusterViewException):
    """Raised when a create request collides with an existing resource key."""
    def __init__(self, message: str, code: str = "resource_exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=409, details=details)

class PredicateEvaluationError(ClusterViewException):
    """Raised when a predicate compares values of incompatible types."""
    def __init__(self, message: str, code: str = "predicate_evaluation_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=400, details=details)

class ProviderError(ClusterViewException):
    """Raised when a resource or property provider fails."""
    def __init__(self, message: str, code: str = "provider_error", status_code: int = 502, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=status_code, details=details)

class BackendUnavailableError(ProviderError):
    """Raised when the backing store or a monitoring system cannot be reached."""
    def __init__(self, message: str, code: str = "backend_unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=503, details=details)

class MalformedDataError(ProviderError):
    """Raised when a backend returns data that cannot be parsed."""
    def __init__(self, message: str, code: str = "malformed_data", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=502, details=details)

class ConfigurationError(ClusterViewException):
    """Raised when application configuration is invalid or missing."""
    def __init__(self, message: str, code: str = "config_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=500, details=details)
