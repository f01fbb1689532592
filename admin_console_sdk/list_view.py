from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Sequence

from .coordinator import MutationCoordinator
from .error_mapper import describe_error
from .exceptions import ApiError, InvalidLifecycleTransition, StaleWrite
from .lifecycle import LifecycleActionAvailability, LifecycleState, action_availability
from .logger import get_logger, log_action
from .models import CachePage, Entity, QueryKey, ViewScope
from .query import QuerySurface

logger = get_logger(__name__)


class ListStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass
class PaginationState:
    page: int = 1
    page_size: int = 10


@dataclass(frozen=True)
class RowView:
    entity: Entity
    pending: bool
    actions: LifecycleActionAvailability


class ListViewController:
    """Filter / sort / paginate / act workflow of one admin list screen."""

    def __init__(
        self,
        resource_type: str,
        surface: QuerySurface,
        coordinator: MutationCoordinator,
        *,
        page_size: int = 10,
        scope: ViewScope | str = ViewScope.ACTIVE,
    ) -> None:
        self.resource_type = resource_type
        self.surface = surface
        self.coordinator = coordinator
        self.status = ListStatus.IDLE
        self.filters: dict[str, Any] = {}
        self.sort: Sequence[str] = ()
        self.search = ""
        self.scope = ViewScope(scope)
        self.pagination = PaginationState(page_size=max(1, page_size))
        self.page: CachePage | None = None
        self.error: dict[str, Any] | None = None
        self.notices: list[dict[str, Any]] = []
        self.needs_reload = False
        self._row_pending: set[int] = set()
        self._load_token = 0
        self._unsubscribe = surface.cache.subscribe(self._on_cache_change)

    @property
    def key(self) -> QueryKey:
        return QueryKey.build(
            self.resource_type,
            page=self.pagination.page,
            page_size=self.pagination.page_size,
            filters=self.filters,
            sort=self.sort,
            search=self.search,
            scope=self.scope,
        )

    # Reading

    async def load(self, force: bool = False) -> CachePage | None:
        self._load_token += 1
        token = self._load_token
        key = self.key
        self.status = ListStatus.LOADING
        try:
            page = await self.surface.query(key, force=force)
        except ApiError as exc:
            if token == self._load_token:
                self.status = ListStatus.FAILED
                self.error = describe_error(exc)
            log_action(
                logger,
                module="list_view",
                action="load",
                outcome="failed",
                resource_type=self.resource_type,
                error_code=exc.code,
            )
            return None
        if token != self._load_token:
            # A newer load owns the view state.
            return page
        self.page = page
        self.error = None
        self.needs_reload = False
        self.status = ListStatus.LOADED
        return page

    async def refresh(self) -> CachePage | None:
        return await self.load(force=True)

    async def set_filters(self, filters: Mapping[str, Any]) -> CachePage | None:
        self.filters = {key: value for key, value in filters.items() if value not in (None, "")}
        return await self._reset_and_load()

    async def set_sort(self, sort: Sequence[str] | str | None) -> CachePage | None:
        self.sort = [sort] if isinstance(sort, str) else list(sort or ())
        return await self._reset_and_load()

    async def set_search(self, term: str | None) -> CachePage | None:
        self.search = (term or "").strip()
        return await self._reset_and_load()

    async def set_scope(self, scope: ViewScope | str) -> CachePage | None:
        self.scope = ViewScope(scope)
        return await self._reset_and_load()

    async def next_page(self) -> CachePage | None:
        if not self.has_next:
            return self.page
        self.pagination.page += 1
        return await self.load()

    async def prev_page(self) -> CachePage | None:
        if self.pagination.page <= 1:
            return self.page
        self.pagination.page -= 1
        return await self.load()

    async def goto_page(self, page: int) -> CachePage | None:
        self.pagination.page = max(1, page)
        return await self.load()

    @property
    def rows(self) -> list[RowView]:
        if self.page is None:
            return []
        return [
            RowView(entity=entity, pending=self.is_row_pending(entity.id), actions=self.row_actions(entity.id))
            for entity in self.page.entities
        ]

    @property
    def total(self) -> int:
        return self.page.total if self.page else 0

    @property
    def total_exact(self) -> bool:
        return self.page.total_exact if self.page else True

    @property
    def has_next(self) -> bool:
        return bool(self.page and self.page.has_more)

    @property
    def has_prev(self) -> bool:
        return self.pagination.page > 1

    # Row actions

    def is_row_pending(self, entity_id: int) -> bool:
        return entity_id in self._row_pending or self.coordinator.is_pending(self.resource_type, entity_id)

    def row_actions(self, entity_id: int) -> LifecycleActionAvailability:
        entity = self.page.find(entity_id) if self.page else None
        state = entity.state if entity else LifecycleState.PURGED
        return action_availability(state, pending=self.is_row_pending(entity_id))

    async def soft_delete(self, entity_id: int) -> bool:
        return await self._act(entity_id, "soft_delete", lambda: self.coordinator.soft_delete(self.resource_type, entity_id))

    async def restore(self, entity_id: int) -> bool:
        return await self._act(entity_id, "restore", lambda: self.coordinator.restore(self.resource_type, entity_id))

    async def hard_delete(self, entity_id: int) -> bool:
        return await self._act(entity_id, "hard_delete", lambda: self.coordinator.hard_delete(self.resource_type, entity_id))

    async def update(self, entity_id: int, delta: Mapping[str, Any]) -> bool:
        return await self._act(entity_id, "update", lambda: self.coordinator.update(self.resource_type, entity_id, delta))

    async def run_action(self, entity_id: int, action: str, delta: Mapping[str, Any] | None = None) -> bool:
        return await self._act(
            entity_id,
            action,
            lambda: self.coordinator.run_action(self.resource_type, entity_id, action, delta),
        )

    async def create(self, fields: Mapping[str, Any], temp_id: int | None = None) -> bool:
        def factory():
            return self.coordinator.create(self.resource_type, fields, temp_id=temp_id)

        if temp_id is None:
            return await self._guarded(None, "create", factory)
        return await self._act(temp_id, "create", factory)

    async def _act(self, entity_id: int, action: str, factory: Callable[[], Awaitable[Any]]) -> bool:
        if self.is_row_pending(entity_id):
            log_action(
                logger,
                module="list_view",
                action=action,
                outcome="refused_row_pending",
                resource_type=self.resource_type,
                entity_id=entity_id,
            )
            return False
        return await self._guarded(entity_id, action, factory)

    async def _guarded(self, entity_id: int | None, action: str, factory: Callable[[], Awaitable[Any]]) -> bool:
        if entity_id is not None:
            self._row_pending.add(entity_id)
        try:
            await factory()
        except (ApiError, InvalidLifecycleTransition) as exc:
            notice = describe_error(exc)
            notice["action"] = action
            notice["entity_id"] = entity_id
            self.notices.append(notice)
            if isinstance(exc, StaleWrite):
                await self.load(force=True)
            elif self.needs_reload:
                await self.load()
            raise
        finally:
            if entity_id is not None:
                self._row_pending.discard(entity_id)
        if self.needs_reload:
            await self.load()
        return True

    def dismiss_notices(self) -> list[dict[str, Any]]:
        notices, self.notices = self.notices, []
        return notices

    def close(self) -> None:
        self._unsubscribe()

    async def _reset_and_load(self) -> CachePage | None:
        self.pagination.page = 1
        return await self.load()

    def _on_cache_change(self, resource_type: str) -> None:
        if resource_type != self.resource_type:
            return
        current = self.surface.peek(self.key)
        if current is None:
            self.needs_reload = True
            return
        self.page = current
