from .resource import Resource, ResourceType, property_id
from .predicate import Predicate, PredicateBuilder
from .request import Request, RequestStatus, Status, TemporalInfo
from .controller import ClusterController, ProviderModule

__all__ = [
    "Resource",
    "ResourceType",
    "property_id",
    "Predicate",
    "PredicateBuilder",
    "Request",
    "RequestStatus",
    "Status",
    "TemporalInfo",
    "ClusterController",
    "ProviderModule",
]
