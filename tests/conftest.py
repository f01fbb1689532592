from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import pytest

from admin_console_sdk.cache import ResourceCache
from admin_console_sdk.models import CachePage, Entity, ListingPayload, Operation, QueryKey, WireEntity


@dataclass
class _Step:
    result: Any = None
    error: BaseException | None = None
    gate: asyncio.Event | None = None


class FakeFetcher:
    """In-memory Fetcher: scripted answers per (resource type, operation), optionally gated."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Operation, dict[str, Any]]] = []
        self._steps: dict[tuple[str, Operation], list[_Step]] = {}
        self._listings: dict[str, ListingPayload] = {}

    def script(
        self,
        resource_type: str,
        operation: Operation,
        result: Any = None,
        *,
        error: BaseException | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._steps.setdefault((resource_type, operation), []).append(_Step(result, error, gate))

    def serve(self, resource_type: str, rows: list[dict[str, Any]], total: int | None = None) -> None:
        """Default answer for LIST calls once scripted steps run out."""
        self._listings[resource_type] = self.listing(rows, total)

    @staticmethod
    def listing(rows: list[dict[str, Any]], total: int | None = None) -> ListingPayload:
        return ListingPayload(items=[WireEntity.model_validate(row) for row in rows], total=total)

    @staticmethod
    def entity(row: dict[str, Any]) -> WireEntity:
        return WireEntity.model_validate(row)

    def calls_for(self, operation: Operation) -> list[dict[str, Any]]:
        return [params for _, op, params in self.calls if op == operation]

    async def call(self, resource_type: str, operation: Operation, params: Any) -> Any:
        self.calls.append((resource_type, operation, dict(params)))
        queue = self._steps.get((resource_type, operation))
        if queue:
            step = queue.pop(0)
        elif operation == Operation.LIST and resource_type in self._listings:
            return self._listings[resource_type]
        elif operation == Operation.LIST:
            raise AssertionError(f"unexpected LIST call for {resource_type}")
        else:
            return None
        if step.gate is not None:
            await step.gate.wait()
        if step.error is not None:
            raise step.error
        return step.result


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def clock() -> list[float]:
    return [1000.0]


@pytest.fixture
def cache(clock) -> ResourceCache:
    return ResourceCache(ttl_seconds=30, now=lambda: clock[0])


@pytest.fixture
def seed():
    def _seed(cache: ResourceCache, key: QueryKey, rows: list[dict[str, Any]], total: int | None = None) -> CachePage:
        entities = tuple(WireEntity.model_validate(row).to_entity(key.resource_type) for row in rows)
        cache.put(key, CachePage(entities=entities, total=len(entities) if total is None else total))
        return cache.peek(key)

    return _seed


@pytest.fixture
def settle():
    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def make_entity():
    def _make(entity_id: int, resource_type: str = "categories", **payload: Any) -> Entity:
        return Entity(id=entity_id, resource_type=resource_type, payload=payload)

    return _make
