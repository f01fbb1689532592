from .cache import ResourceCache
from .config import ClientConfig, load_config
from .coordinator import MutationCoordinator, OptimisticProjection
from .endpoints import EndpointRegistry, ResourceEndpoints, Route, default_registry
from .error_mapper import describe_error, is_retryable, map_error
from .exceptions import (
    ApiError,
    AuthError,
    ConfigError,
    ConflictError,
    InvalidLifecycleTransition,
    NetworkFailure,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServerError,
    ServerRejected,
    StaleWrite,
    ValidationError,
)
from .fetcher import Fetcher, HttpFetcher
from .http_client import HttpClient
from .lifecycle import LifecycleActionAvailability, LifecycleState, action_availability
from .list_view import ListStatus, ListViewController, RowView
from .models import (
    MISSING,
    CachePage,
    Entity,
    ListingPayload,
    Operation,
    PageMode,
    QueryKey,
    SortDirection,
    ViewScope,
    WireEntity,
)
from .query import QuerySurface
from .session import AdminConsoleClient

__all__ = [
    "AdminConsoleClient",
    "ApiError",
    "AuthError",
    "CachePage",
    "ClientConfig",
    "ConfigError",
    "ConflictError",
    "EndpointRegistry",
    "Entity",
    "Fetcher",
    "HttpClient",
    "HttpFetcher",
    "InvalidLifecycleTransition",
    "LifecycleActionAvailability",
    "LifecycleState",
    "ListStatus",
    "ListViewController",
    "ListingPayload",
    "MISSING",
    "MutationCoordinator",
    "NetworkFailure",
    "NotFoundError",
    "Operation",
    "OptimisticProjection",
    "PageMode",
    "PermissionDeniedError",
    "QueryKey",
    "QuerySurface",
    "RateLimitError",
    "ResourceCache",
    "ResourceEndpoints",
    "Route",
    "RowView",
    "ServerError",
    "ServerRejected",
    "SortDirection",
    "StaleWrite",
    "ValidationError",
    "ViewScope",
    "WireEntity",
    "action_availability",
    "default_registry",
    "describe_error",
    "is_retryable",
    "load_config",
    "map_error",
]
