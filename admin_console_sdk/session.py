from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .cache import ResourceCache
from .config import ClientConfig
from .coordinator import MutationCoordinator
from .endpoints import EndpointRegistry, default_registry
from .fetcher import Fetcher, HttpFetcher
from .http_client import HttpClient
from .list_view import ListViewController
from .models import ViewScope
from .query import QuerySurface


@dataclass
class AdminConsoleClient:
    config: ClientConfig
    registry: EndpointRegistry | None = None
    http: HttpClient | None = None
    fetcher: Fetcher | None = None
    token_provider: Callable[[], str | None] | None = None
    cache: ResourceCache = field(init=False)
    surface: QuerySurface = field(init=False)
    coordinator: MutationCoordinator = field(init=False)

    def __post_init__(self) -> None:
        self.registry = self.registry or default_registry()
        if self.fetcher is None:
            self.http = self.http or HttpClient(config=self.config, token_provider=self.token_provider)
            self.fetcher = HttpFetcher(self.http, self.registry)
        self.cache = ResourceCache(ttl_seconds=self.config.cache_ttl_seconds)
        self.surface = QuerySurface(
            self.cache,
            self.fetcher,
            request_timeout_seconds=self.config.timeout_seconds,
            fallback_row_cap=self.config.fallback_row_cap,
            local_resource_types=self.registry.local_resource_types(),
        )
        self.coordinator = MutationCoordinator(
            self.cache,
            self.fetcher,
            mutation_timeout_seconds=self.config.mutation_timeout_seconds,
        )

    def controller(
        self,
        resource_type: str,
        *,
        page_size: int | None = None,
        scope: ViewScope | str = ViewScope.ACTIVE,
    ) -> ListViewController:
        if resource_type not in self.registry:
            raise KeyError(f"Unknown resource type: {resource_type}")
        return ListViewController(
            resource_type,
            self.surface,
            self.coordinator,
            page_size=page_size or self.config.default_page_size,
            scope=scope,
        )

    def clear(self) -> None:
        self.cache.clear()

    async def aclose(self) -> None:
        if self.http is not None:
            await self.http.aclose()

    async def __aenter__(self) -> "AdminConsoleClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
