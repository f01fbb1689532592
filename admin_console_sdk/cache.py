from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Mapping

from .lifecycle import LifecycleState
from .logger import get_logger, log_action
from .models import CachePage, Entity, QueryKey

Listener = Callable[[str], None]

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Slot:
    page: CachePage
    revision: int
    stale: bool = False


class ResourceCache:
    """Keyed store of the last-known page for every Query Key.

    Pages are immutable values; every write goes through one of the typed
    operations below and produces a new page with a new revision. Each key
    also carries a fetch generation counter: ``begin_fetch`` issues the next
    generation and ``put`` discards any page whose generation is older than
    one that already landed, or that was issued before the key's membership
    was last evicted.
    """

    def __init__(self, ttl_seconds: float = 30.0, now: Callable[[], float] | None = None) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self._now = now or time.monotonic
        self._slots: dict[QueryKey, _Slot] = {}
        self._issued: dict[QueryKey, int] = {}
        self._landed: dict[QueryKey, int] = {}
        self._floor: dict[QueryKey, int] = {}
        self._tombstones: dict[str, set[int]] = {}
        self._revision = 0
        self._listeners: list[Listener] = []

    # Reads

    def get(self, key: QueryKey) -> CachePage | None:
        """Fresh page for ``key``, or ``None`` on a miss (absent, stale or expired)."""
        slot = self._slots.get(key)
        if slot is None or slot.stale:
            return None
        if self._now() - slot.page.fetched_at >= self.ttl_seconds:
            return None
        return slot.page

    def peek(self, key: QueryKey) -> CachePage | None:
        slot = self._slots.get(key)
        return slot.page if slot else None

    def page_revision(self, key: QueryKey) -> int | None:
        slot = self._slots.get(key)
        return slot.revision if slot else None

    def keys(self, resource_type: str) -> list[QueryKey]:
        return [key for key in self._slots if key.resource_type == resource_type]

    def pages_containing(self, resource_type: str, entity_id: int) -> dict[QueryKey, CachePage]:
        return {
            key: slot.page
            for key, slot in self._slots.items()
            if key.resource_type == resource_type and slot.page.contains(entity_id)
        }

    def find_entity(self, resource_type: str, entity_id: int) -> Entity | None:
        for key, slot in self._slots.items():
            if key.resource_type != resource_type:
                continue
            entity = slot.page.find(entity_id)
            if entity is not None:
                return entity
        return None

    def is_purged(self, resource_type: str, entity_id: int) -> bool:
        return entity_id in self._tombstones.get(resource_type, set())

    # Generations

    def begin_fetch(self, key: QueryKey) -> int:
        generation = self._issued.get(key, 0) + 1
        self._issued[key] = generation
        return generation

    def latest_generation(self, key: QueryKey) -> int:
        return self._issued.get(key, 0)

    def landed_generation(self, key: QueryKey) -> int:
        return self._landed.get(key, 0)

    # Writes

    def put(
        self,
        key: QueryKey,
        page: CachePage,
        generation: int | None = None,
        fetched_at: float | None = None,
    ) -> bool:
        """Authoritative replace. Returns ``False`` when the page was discarded.

        Entities on the incoming page are written through to every other cached
        page that holds them. ``fetched_at`` defaults to now; pages derived from
        an older fetch pass that fetch's time so they expire with it.
        """
        if generation is None:
            generation = self.begin_fetch(key)
        if generation <= self._floor.get(key, 0) or generation < self._landed.get(key, 0):
            log_action(
                logger,
                module="cache",
                action="put",
                outcome="discarded",
                resource_type=key.resource_type,
                generation=generation,
                landed=self._landed.get(key, 0),
                floor=self._floor.get(key, 0),
            )
            return False
        self._landed[key] = generation
        tombstones = self._tombstones.get(key.resource_type)
        if tombstones:
            tombstones.difference_update(page.ids())
        self._write(key, replace(page, fetched_at=self._now() if fetched_at is None else fetched_at))
        self._write_through(key, page.entities)
        self._notify(key.resource_type)
        return True

    def replace_page(self, key: QueryKey, page: CachePage) -> int | None:
        """Write an optimistic projection (or its reversal) over an existing page."""
        slot = self._slots.get(key)
        if slot is None:
            return None
        revision = self._write(key, page, stale=slot.stale)
        self._notify(key.resource_type)
        return revision

    def restore_page(self, key: QueryKey, page: CachePage, revision: int) -> bool:
        """Put a snapshot back, but only if the slot still holds ``revision``."""
        if self.page_revision(key) != revision:
            return False
        self.replace_page(key, page)
        return True

    def restore_entity(self, key: QueryKey, before: CachePage, entity_id: int, landed: int) -> bool:
        """Undo one entity's projection on a page other projections rewrote since.

        The entity goes back to its snapshot state and position among the rows
        still on the page. A page refreshed from the server after ``landed`` is
        evicted instead.
        """
        slot = self._slots.get(key)
        if slot is None:
            return False
        if self._landed.get(key, 0) != landed:
            self.evict_membership(key.resource_type, predicate=lambda item: item == key)
            return False
        original = before.find(entity_id)
        if original is None:
            page = slot.page.without(entity_id)
        elif slot.page.contains(entity_id):
            page = slot.page.replacing(original)
        else:
            preceding = set(before.ids()[: before.ids().index(entity_id)])
            position = sum(1 for current in slot.page.entities if current.id in preceding)
            page = slot.page.inserting(original, position)
        self._write(key, page, stale=slot.stale)
        self._notify(key.resource_type)
        return True

    def patch_entity(
        self,
        resource_type: str,
        entity_id: int,
        field_delta: Mapping[str, Any],
        state: LifecycleState | None = None,
    ) -> dict[QueryKey, int]:
        """Write ``field_delta`` through every cached copy of the entity."""
        current = self.find_entity(resource_type, entity_id)
        if current is None:
            return {}
        updated = current.with_fields(field_delta, state=state)
        revisions: dict[QueryKey, int] = {}
        for key, page in self.pages_containing(resource_type, entity_id).items():
            slot = self._slots[key]
            revisions[key] = self._write(key, page.replacing(updated), stale=slot.stale)
        self._notify(resource_type)
        return revisions

    def evict_membership(
        self,
        resource_type: str,
        predicate: Callable[[QueryKey], bool] | None = None,
    ) -> list[QueryKey]:
        """Drop pages of ``resource_type`` and fence off fetches already in flight."""
        candidates = set(self._slots) | set(self._issued)
        evicted = [
            key
            for key in candidates
            if key.resource_type == resource_type and (predicate is None or predicate(key))
        ]
        for key in evicted:
            self._floor[key] = self._issued.get(key, 0)
            self._slots.pop(key, None)
        log_action(
            logger,
            module="cache",
            action="evict_membership",
            outcome="ok",
            resource_type=resource_type,
            keys=len(evicted),
        )
        self._notify(resource_type)
        return evicted

    def evict_entity(self, resource_type: str, entity_id: int) -> dict[QueryKey, int]:
        revisions: dict[QueryKey, int] = {}
        for key, page in self.pages_containing(resource_type, entity_id).items():
            slot = self._slots[key]
            revisions[key] = self._write(key, page.without(entity_id), stale=slot.stale)
        if revisions:
            self._notify(resource_type)
        return revisions

    def mark_purged(self, resource_type: str, entity_id: int) -> None:
        self._tombstones.setdefault(resource_type, set()).add(entity_id)

    def mark_stale(self, resource_type: str) -> None:
        for key, slot in list(self._slots.items()):
            if key.resource_type == resource_type:
                self._slots[key] = replace(slot, stale=True)
        self._notify(resource_type)

    def clear(self) -> None:
        resource_types = {key.resource_type for key in self._slots}
        for key, generation in self._issued.items():
            self._floor[key] = generation
        self._slots.clear()
        self._tombstones.clear()
        for resource_type in sorted(resource_types):
            self._notify(resource_type)

    # Notifications

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, resource_type: str) -> None:
        for listener in list(self._listeners):
            listener(resource_type)

    def _write_through(self, source: QueryKey, entities: tuple[Entity, ...]) -> None:
        fresh = {entity.id: entity for entity in entities}
        for key, slot in list(self._slots.items()):
            if key == source or key.resource_type != source.resource_type:
                continue
            page, stale, changed = slot.page, slot.stale, False
            for current in slot.page.entities:
                entity = fresh.get(current.id)
                if entity is None or entity == current:
                    continue
                if key.scope.admits(entity.state):
                    page = page.replacing(entity)
                    changed = True
                else:
                    # Lifecycle moved it out of this view; membership needs a refetch.
                    stale = True
            if changed or stale != slot.stale:
                self._write(key, page, stale=stale)

    def _write(self, key: QueryKey, page: CachePage, stale: bool = False) -> int:
        self._revision += 1
        self._slots[key] = _Slot(page=page, revision=self._revision, stale=stale)
        return self._revision
