from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Mapping

from .cache import ResourceCache
from .exceptions import NetworkFailure, StaleWrite
from .fetcher import Fetcher
from .lifecycle import LifecycleState, transition
from .logger import get_logger, log_action
from .models import CachePage, Entity, Operation, QueryKey, ViewScope, WireEntity

logger = get_logger(__name__)


@dataclass
class OptimisticProjection:
    """What one in-flight mutation changed in the cache, and how to undo it."""

    resource_type: str
    entity_id: int
    operation: Operation
    sequence: int
    delta: dict[str, Any] = field(default_factory=dict)
    target_state: LifecycleState | None = None
    snapshot: dict[QueryKey, CachePage] = field(default_factory=dict)
    previous: dict[str, Any] = field(default_factory=dict)
    applied: dict[QueryKey, int] = field(default_factory=dict)
    landed: dict[QueryKey, int] = field(default_factory=dict)

    @property
    def is_field_update(self) -> bool:
        return self.operation in {Operation.UPDATE, Operation.ACTION}


class MutationCoordinator:
    """Runs every write through validate, snapshot, optimistic apply, dispatch,
    then commit or rollback.

    One coordinator serves all resource types. A second mutation on the same
    entity snapshots after the first one's optimistic apply; rolling back a
    field update only restores the fields it wrote itself.
    """

    def __init__(
        self,
        cache: ResourceCache,
        fetcher: Fetcher,
        *,
        mutation_timeout_seconds: float = 30.0,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.mutation_timeout_seconds = mutation_timeout_seconds
        self._sequence = itertools.count(1)
        self._pending: dict[tuple[str, int], list[OptimisticProjection]] = {}

    def is_pending(self, resource_type: str, entity_id: int) -> bool:
        return bool(self._pending.get((resource_type, entity_id)))

    def pending_ids(self, resource_type: str) -> set[int]:
        return {entity_id for (kind, entity_id), items in self._pending.items() if kind == resource_type and items}

    # Operations

    async def create(
        self,
        resource_type: str,
        fields: Mapping[str, Any],
        temp_id: int | None = None,
    ) -> Entity | None:
        """Create an entity.

        Without ``temp_id`` nothing is shown until the server answers, since
        the row's position under server ordering is unknown. With a negative
        ``temp_id`` the row is shown at the top of every unfiltered first page.
        """
        if temp_id is not None and temp_id >= 0:
            raise ValueError("temp_id must be a negative integer")
        projection = self._new_projection(resource_type, temp_id or 0, Operation.CREATE, delta=dict(fields))
        if temp_id is not None:
            placeholder = Entity(id=temp_id, resource_type=resource_type, payload=fields)
            for key in self.cache.keys(resource_type):
                page = self.cache.peek(key)
                if page is None or key.page != 1 or not key.is_unfiltered or key.scope == ViewScope.TRASH:
                    continue
                projection.snapshot[key] = page
                revision = self.cache.replace_page(key, page.prepending(placeholder))
                if revision is not None:
                    projection.applied[key] = revision
        wire = await self._run(projection, Operation.CREATE, {"body": dict(fields)})
        return wire.to_entity(resource_type) if wire else None

    async def update(
        self,
        resource_type: str,
        entity_id: int,
        delta: Mapping[str, Any],
    ) -> Entity | None:
        return await self._field_update(resource_type, entity_id, Operation.UPDATE, dict(delta), None)

    async def run_action(
        self,
        resource_type: str,
        entity_id: int,
        action: str,
        delta: Mapping[str, Any] | None = None,
    ) -> Entity | None:
        """Named field action with its own endpoint, such as activating a promo code."""
        return await self._field_update(resource_type, entity_id, Operation.ACTION, dict(delta or {}), action)

    async def soft_delete(self, resource_type: str, entity_id: int) -> Entity | None:
        return await self._lifecycle(resource_type, entity_id, Operation.SOFT_DELETE, LifecycleState.TRASHED)

    async def restore(self, resource_type: str, entity_id: int) -> Entity | None:
        return await self._lifecycle(resource_type, entity_id, Operation.RESTORE, LifecycleState.ACTIVE)

    async def hard_delete(self, resource_type: str, entity_id: int) -> None:
        await self._lifecycle(resource_type, entity_id, Operation.HARD_DELETE, LifecycleState.PURGED)

    # Protocol steps

    async def _field_update(
        self,
        resource_type: str,
        entity_id: int,
        operation: Operation,
        delta: dict[str, Any],
        action: str | None,
    ) -> Entity | None:
        projection = self._new_projection(resource_type, entity_id, operation, delta=delta)
        current = self.cache.find_entity(resource_type, entity_id)
        body = dict(delta)
        if current is not None:
            projection.snapshot = self.cache.pages_containing(resource_type, entity_id)
            projection.previous = current.field_values(delta)
            projection.applied = self.cache.patch_entity(resource_type, entity_id, delta)
            if operation == Operation.UPDATE:
                body = {**dict(current.payload), **delta}
        params: dict[str, Any] = {"id": entity_id, "body": body}
        if action is not None:
            params["action"] = action
        wire = await self._run(projection, operation, params)
        return self._settled_entity(projection, wire)

    async def _lifecycle(
        self,
        resource_type: str,
        entity_id: int,
        operation: Operation,
        target: LifecycleState,
    ) -> Entity | None:
        current = self._lifecycle_entity(resource_type, entity_id, operation)
        transition(current, target)
        projection = self._new_projection(resource_type, entity_id, operation, target_state=target)
        projection.snapshot = self.cache.pages_containing(resource_type, entity_id)
        if target == LifecycleState.PURGED:
            projection.applied = self.cache.evict_entity(resource_type, entity_id)
        else:
            projected = current.with_state(target)
            for key, page in projection.snapshot.items():
                updated = page.replacing(projected) if key.scope.admits(target) else page.without(entity_id)
                revision = self.cache.replace_page(key, updated)
                if revision is not None:
                    projection.applied[key] = revision
        wire = await self._run(projection, operation, {"id": entity_id})
        if target == LifecycleState.PURGED:
            return None
        return self._settled_entity(projection, wire) or current.with_state(target)

    def _lifecycle_entity(self, resource_type: str, entity_id: int, operation: Operation) -> Entity:
        if self.cache.is_purged(resource_type, entity_id):
            return Entity(id=entity_id, resource_type=resource_type, state=LifecycleState.PURGED)
        cached = self.cache.find_entity(resource_type, entity_id)
        if cached is not None:
            return cached
        # Not materialized anywhere: assume the state the action presupposes.
        assumed = LifecycleState.TRASHED if operation == Operation.RESTORE else LifecycleState.ACTIVE
        return Entity(id=entity_id, resource_type=resource_type, state=assumed)

    async def _run(
        self,
        projection: OptimisticProjection,
        operation: Operation,
        params: dict[str, Any],
    ) -> WireEntity | None:
        projection.landed = {key: self.cache.landed_generation(key) for key in projection.snapshot}
        self._register(projection)
        self._log(projection, "applied")
        try:
            wire = await self._dispatch(projection, operation, params)
        except StaleWrite as exc:
            # The snapshot is known-wrong: refetch instead of restoring it.
            self._unregister(projection)
            self.cache.evict_membership(projection.resource_type)
            self._log(projection, "stale_write", error_code=exc.code)
            raise
        except BaseException as exc:
            self._rollback(projection)
            self._log(projection, "rolled_back", error_code=getattr(exc, "code", type(exc).__name__))
            raise
        self._commit(projection, wire)
        self._log(projection, "committed")
        return wire

    async def _dispatch(
        self,
        projection: OptimisticProjection,
        operation: Operation,
        params: dict[str, Any],
    ) -> WireEntity | None:
        task = asyncio.ensure_future(self.fetcher.call(projection.resource_type, operation, params))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.mutation_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise NetworkFailure(
                code="TIMEOUT",
                message=f"{operation.value} on {projection.resource_type} did not answer within "
                f"{self.mutation_timeout_seconds}s",
            ) from exc
        finally:
            # Timed out or cancelled: the write may still land.
            if not task.done():
                task.add_done_callback(partial(self._late_result, projection))

    def _late_result(self, projection: OptimisticProjection, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log(projection, "late_failure_ignored", error_code=getattr(error, "code", type(error).__name__))
            return
        # The write did land after all; the rolled-back pages no longer match the server.
        self.cache.evict_membership(projection.resource_type)
        self._log(projection, "late_success_ignored")

    def _commit(self, projection: OptimisticProjection, wire: WireEntity | None) -> None:
        later = self._unregister(projection)
        resource_type = projection.resource_type
        canonical = wire.to_entity(resource_type) if wire else None
        if canonical is not None and self.cache.find_entity(resource_type, canonical.id) is not None:
            authoritative = dict(canonical.payload)
            # Fields a later pending mutation wrote stay optimistic; server
            # truth becomes what that mutation rolls back to.
            for item in later:
                for name in item.delta:
                    if name in authoritative:
                        item.previous[name] = authoritative.pop(name)
            state = canonical.state if wire.is_deleted is not None else projection.target_state
            if any(item.target_state is not None for item in later):
                state = None
            self.cache.patch_entity(resource_type, canonical.id, authoritative, state=state)

        if projection.operation == Operation.HARD_DELETE:
            self.cache.mark_purged(resource_type, projection.entity_id)
        if projection.is_field_update:
            changed = set(projection.delta)
            if canonical is not None:
                changed |= set(canonical.payload)
            self.cache.evict_membership(resource_type, predicate=lambda key: key.depends_on(changed))
        else:
            self.cache.evict_membership(resource_type)

    def _rollback(self, projection: OptimisticProjection) -> None:
        later = self._unregister(projection)
        if projection.is_field_update:
            restore: dict[str, Any] = {}
            for name, value in projection.previous.items():
                heir = next((item for item in later if name in item.delta), None)
                if heir is not None:
                    heir.previous[name] = value
                else:
                    restore[name] = value
            if restore:
                self.cache.patch_entity(projection.resource_type, projection.entity_id, restore)
            return

        for key, before in projection.snapshot.items():
            if key not in projection.applied:
                continue
            if not self.cache.restore_page(key, before, projection.applied[key]):
                self.cache.restore_entity(key, before, projection.entity_id, projection.landed.get(key, 0))

    # Bookkeeping

    def _new_projection(
        self,
        resource_type: str,
        entity_id: int,
        operation: Operation,
        *,
        delta: dict[str, Any] | None = None,
        target_state: LifecycleState | None = None,
    ) -> OptimisticProjection:
        return OptimisticProjection(
            resource_type=resource_type,
            entity_id=entity_id,
            operation=operation,
            sequence=next(self._sequence),
            delta=delta or {},
            target_state=target_state,
        )

    def _register(self, projection: OptimisticProjection) -> None:
        self._pending.setdefault((projection.resource_type, projection.entity_id), []).append(projection)

    def _unregister(self, projection: OptimisticProjection) -> list[OptimisticProjection]:
        """Drop ``projection`` from the pending list; return the ones issued after it."""
        key = (projection.resource_type, projection.entity_id)
        items = self._pending.get(key, [])
        if projection in items:
            items.remove(projection)
        if not items:
            self._pending.pop(key, None)
        return [item for item in items if item.sequence > projection.sequence]

    def _settled_entity(self, projection: OptimisticProjection, wire: WireEntity | None) -> Entity | None:
        cached = self.cache.find_entity(projection.resource_type, projection.entity_id)
        if cached is not None:
            return cached
        if wire is None:
            return None
        entity = wire.to_entity(projection.resource_type)
        if wire.is_deleted is None and projection.target_state is not None:
            entity = entity.with_state(projection.target_state)
        return entity

    def _log(self, projection: OptimisticProjection, outcome: str, **context: Any) -> None:
        log_action(
            logger,
            module="coordinator",
            action=projection.operation.value,
            outcome=outcome,
            resource_type=projection.resource_type,
            entity_id=projection.entity_id,
            **context,
        )
