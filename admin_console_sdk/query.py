from __future__ import annotations

import asyncio
from typing import Any, Iterable

from .cache import ResourceCache
from .exceptions import NetworkFailure
from .fetcher import Fetcher
from .local_view import paginate
from .logger import get_logger, log_action
from .models import CachePage, ListingPayload, Operation, PageMode, QueryKey, ViewScope

logger = get_logger(__name__)

# A fetch fenced off by a concurrent membership eviction is reissued at most this often.
MAX_FENCED_REISSUES = 3


def build_server_page(key: QueryKey, listing: ListingPayload) -> CachePage:
    entities = tuple(item.to_entity(key.resource_type) for item in listing.items)
    if listing.total is not None:
        return CachePage(
            entities=entities,
            total=listing.total,
            total_exact=True,
            has_more=key.offset + len(entities) < listing.total,
            mode=PageMode.SERVER,
        )
    # Unknown total: report the lower bound and let a full page hint at more.
    return CachePage(
        entities=entities,
        total=key.offset + len(entities),
        total_exact=False,
        has_more=len(entities) >= key.page_size,
        mode=PageMode.SERVER,
    )


def build_superset_page(resource_type: str, listing: ListingPayload, cap: int) -> CachePage:
    truncated = len(listing.items) > cap
    entities = tuple(item.to_entity(resource_type) for item in listing.items[:cap])
    return CachePage(
        entities=entities,
        total=len(entities),
        total_exact=not truncated,
        has_more=truncated,
        mode=PageMode.LOCAL,
    )


class QuerySurface:
    """Read side over the resource cache.

    Resource types listed in ``local_resource_types`` are served in fallback
    mode: one bounded superset is fetched and cached, and every page is
    filtered, sorted and paginated from it locally.
    """

    def __init__(
        self,
        cache: ResourceCache,
        fetcher: Fetcher,
        *,
        request_timeout_seconds: float = 15.0,
        fallback_row_cap: int = 1000,
        local_resource_types: Iterable[str] = (),
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.request_timeout_seconds = request_timeout_seconds
        self.fallback_row_cap = max(1, fallback_row_cap)
        self._local_resource_types = set(local_resource_types)

    def paging_mode(self, resource_type: str) -> PageMode:
        return PageMode.LOCAL if resource_type in self._local_resource_types else PageMode.SERVER

    def superset_key(self, resource_type: str) -> QueryKey:
        return QueryKey(resource_type=resource_type, page=1, page_size=self.fallback_row_cap, scope=ViewScope.ALL)

    def peek(self, key: QueryKey) -> CachePage | None:
        return self.cache.peek(key)

    async def query(self, key: QueryKey, force: bool = False) -> CachePage:
        if not force:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
        if self.paging_mode(key.resource_type) == PageMode.LOCAL:
            return await self._query_local(key, force)
        return await self._fetch_into(key, self._list_params(key), lambda listing: build_server_page(key, listing))

    async def _query_local(self, key: QueryKey, force: bool) -> CachePage:
        superset_key = self.superset_key(key.resource_type)
        superset = None if force else self.cache.get(superset_key)
        if superset is None:
            superset = await self._fetch_into(
                superset_key,
                {"page": 1, "page_size": self.fallback_row_cap, "scope": ViewScope.ALL},
                lambda listing: build_superset_page(key.resource_type, listing, self.fallback_row_cap),
            )
        if key == superset_key:
            return superset
        derived = paginate(superset, key)
        self.cache.put(key, derived, self.cache.begin_fetch(key), fetched_at=superset.fetched_at)
        return self.cache.peek(key) or derived

    async def _fetch_into(self, key: QueryKey, params: dict[str, Any], build) -> CachePage:
        page: CachePage | None = None
        for _ in range(MAX_FENCED_REISSUES):
            generation = self.cache.begin_fetch(key)
            log_action(
                logger,
                module="query",
                action="fetch",
                outcome="issued",
                resource_type=key.resource_type,
                page=key.page,
                generation=generation,
            )
            listing = await self._call(key.resource_type, params)
            page = build(listing)
            landed = self.cache.put(key, page, generation)
            current = self.cache.peek(key)
            if landed or current is not None:
                log_action(
                    logger,
                    module="query",
                    action="fetch",
                    outcome="landed" if landed else "superseded",
                    resource_type=key.resource_type,
                    generation=generation,
                )
                return current or page
        # Membership kept being evicted while fetching; hand back the newest result.
        assert page is not None
        return page

    async def _call(self, resource_type: str, params: dict[str, Any]) -> ListingPayload:
        try:
            return await asyncio.wait_for(
                self.fetcher.call(resource_type, Operation.LIST, params),
                timeout=self.request_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise NetworkFailure(
                code="TIMEOUT",
                message=f"Listing {resource_type} did not answer within {self.request_timeout_seconds}s",
            ) from exc

    @staticmethod
    def _list_params(key: QueryKey) -> dict[str, Any]:
        return {
            "page": key.page,
            "page_size": key.page_size,
            "filters": key.filter_map(),
            "sort": key.sort,
            "search": key.search,
            "scope": key.scope,
        }
