from __future__ import annotations

from typing import Any, Mapping, Protocol

from .endpoints import EndpointRegistry, ResourceEndpoints
from .http_client import HttpClient
from .models import ListingPayload, Operation, SortDirection, ViewScope, WireEntity
from .normalizers import normalize_entity, normalize_listing


class Fetcher(Protocol):
    """Executes one request against the remote API.

    ``params`` keys by operation:

    * ``LIST``: ``page``, ``page_size``, ``filters``, ``sort``, ``search``, ``scope``
    * ``CREATE``: ``body``
    * ``UPDATE``: ``id``, ``body``
    * ``SOFT_DELETE`` / ``RESTORE`` / ``HARD_DELETE``: ``id``
    * ``ACTION``: ``id``, ``action``, ``body``

    ``LIST`` resolves to a ``ListingPayload``; every other operation to the
    canonical ``WireEntity`` when the server returns one, else ``None``.
    Failures raise ``ApiError`` subclasses.
    """

    async def call(self, resource_type: str, operation: Operation, params: Mapping[str, Any]) -> Any:
        ...


class HttpFetcher:
    def __init__(self, http: HttpClient, registry: EndpointRegistry) -> None:
        self.http = http
        self.registry = registry

    async def call(
        self,
        resource_type: str,
        operation: Operation,
        params: Mapping[str, Any],
    ) -> ListingPayload | WireEntity | None:
        endpoints = self.registry.get(resource_type)
        route = endpoints.route(operation, params.get("action"))
        path, query = route.resolve(params.get("id"))
        if operation == Operation.LIST:
            query.update(build_list_params(endpoints, params))
            payload = await self.http.request(route.method, path, params=query or None)
            return normalize_listing(payload, id_field=endpoints.id_field)

        body = params.get("body")
        payload = await self.http.request(
            route.method,
            path,
            params=query or None,
            json_body=dict(body) if body is not None else None,
        )
        return normalize_entity(payload, id_field=endpoints.id_field)


def build_list_params(endpoints: ResourceEndpoints, params: Mapping[str, Any]) -> dict[str, Any]:
    if not endpoints.server_paging:
        return {}
    query: dict[str, Any] = {
        endpoints.page_param: params.get("page", 1),
        endpoints.page_size_param: params.get("page_size", 10),
    }
    for key, value in (params.get("filters") or {}).items():
        if value in (None, ""):
            continue
        query[key] = ",".join(str(item) for item in value) if isinstance(value, tuple) else value
    search = params.get("search")
    if search:
        query[endpoints.search_param] = search
    sort = params.get("sort") or ()
    if sort and endpoints.sort_param:
        query[endpoints.sort_param] = ",".join(
            f"-{name}" if direction == SortDirection.DESC else name for name, direction in sort
        )
    scope = params.get("scope", ViewScope.ACTIVE)
    if endpoints.deleted_filter_param and scope != ViewScope.ALL:
        query[endpoints.deleted_filter_param] = "true" if scope == ViewScope.TRASH else "false"
    return query
