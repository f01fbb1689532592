"""Client-side filter, sort and pagination for list endpoints that return everything."""

from __future__ import annotations

from typing import Any, Iterable

from .models import CachePage, Entity, PageMode, QueryKey, SortDirection


def matches_filters(entity: Entity, filters: Iterable[tuple[str, Any]]) -> bool:
    for name, expected in filters:
        actual = entity.get(name)
        if isinstance(expected, tuple):
            if _comparable(actual) not in {_comparable(item) for item in expected}:
                return False
        elif _comparable(actual) != _comparable(expected):
            return False
    return True


def matches_search(entity: Entity, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    for value in entity.payload.values():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            if needle in str(value).lower():
                return True
    return False


def sort_entities(entities: list[Entity], sort: tuple[tuple[str, SortDirection], ...]) -> list[Entity]:
    ordered = list(entities)
    # Stable sorts applied from the least significant field up.
    for name, direction in reversed(sort):
        present = [entity for entity in ordered if entity.get(name) is not None]
        empty = [entity for entity in ordered if entity.get(name) is None]
        present.sort(key=lambda entity: _sort_value(entity.get(name)), reverse=direction == SortDirection.DESC)
        ordered = present + empty
    return ordered


def paginate(
    superset: CachePage,
    key: QueryKey,
) -> CachePage:
    """Derive the page for ``key`` from a locally held superset.

    The total is exact unless the superset itself was truncated.
    """
    rows = [
        entity
        for entity in superset.entities
        if key.scope.admits(entity.state)
        and matches_filters(entity, key.filters)
        and matches_search(entity, key.search)
    ]
    rows = sort_entities(rows, key.sort)
    window = rows[key.offset : key.offset + key.page_size]
    total_exact = superset.total_exact and not superset.has_more
    return CachePage(
        entities=tuple(window),
        total=len(rows),
        total_exact=total_exact,
        has_more=key.offset + key.page_size < len(rows),
        mode=PageMode.LOCAL,
        fetched_at=superset.fetched_at,
    )


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _sort_value(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value).strip().lower())
