from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .lifecycle import LifecycleState, state_from_flag

FilterValue = Union[str, int, float, bool, tuple]


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Marks a payload field that did not exist; patching with it removes the field.
MISSING: Any = _Missing()


class Operation(str, Enum):
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    SOFT_DELETE = "soft_delete"
    RESTORE = "restore"
    HARD_DELETE = "hard_delete"
    ACTION = "action"


class ViewScope(str, Enum):
    ACTIVE = "active"
    TRASH = "trash"
    ALL = "all"

    def admits(self, state: LifecycleState) -> bool:
        if state == LifecycleState.PURGED:
            return False
        if self == ViewScope.ACTIVE:
            return state == LifecycleState.ACTIVE
        if self == ViewScope.TRASH:
            return state == LifecycleState.TRASHED
        return True


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PageMode(str, Enum):
    SERVER = "server"
    LOCAL = "local"


class WireEntity(BaseModel):
    """One entity as the API sends it; unknown fields are kept as payload."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int
    is_deleted: bool | None = Field(default=None, alias="isDeleted")

    def to_entity(self, resource_type: str) -> "Entity":
        payload = self.model_dump(exclude={"id", "is_deleted"})
        return Entity(
            id=self.id,
            resource_type=resource_type,
            state=state_from_flag(self.is_deleted),
            payload=payload,
        )


class ListingPayload(BaseModel):
    items: list[WireEntity] = Field(default_factory=list)
    total: int | None = None


@dataclass(frozen=True)
class Entity:
    id: int
    resource_type: str
    state: LifecycleState = LifecycleState.ACTIVE
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def get(self, name: str, default: Any = None) -> Any:
        return self.payload.get(name, default)

    def field_values(self, names: Iterable[str]) -> dict[str, Any]:
        return {name: self.payload.get(name, MISSING) for name in names}

    def with_fields(self, delta: Mapping[str, Any], state: LifecycleState | None = None) -> "Entity":
        merged = dict(self.payload)
        for name, value in delta.items():
            if value is MISSING:
                merged.pop(name, None)
            else:
                merged[name] = value
        return Entity(
            id=self.id,
            resource_type=self.resource_type,
            state=state or self.state,
            payload=merged,
        )

    def with_state(self, state: LifecycleState) -> "Entity":
        return replace(self, state=state, payload=dict(self.payload))

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, **dict(self.payload), "isDeleted": self.state == LifecycleState.TRASHED}


def _normalize_filters(filters: Mapping[str, Any] | None) -> tuple[tuple[str, FilterValue], ...]:
    if not filters:
        return ()
    cleaned: list[tuple[str, FilterValue]] = []
    for key, value in filters.items():
        if value in (None, ""):
            continue
        if isinstance(value, (list, set, frozenset)):
            value = tuple(sorted(value, key=str))
        cleaned.append((str(key), value))
    return tuple(sorted(cleaned, key=lambda item: item[0]))


def _normalize_sort(
    sort: str | Sequence[str | tuple[str, str | SortDirection]] | None,
) -> tuple[tuple[str, SortDirection], ...]:
    if not sort:
        return ()
    if isinstance(sort, str):
        sort = [sort]
    normalized: list[tuple[str, SortDirection]] = []
    for item in sort:
        if isinstance(item, str):
            name = item.strip()
            if not name:
                continue
            if name.startswith("-"):
                normalized.append((name[1:], SortDirection.DESC))
            else:
                normalized.append((name.lstrip("+"), SortDirection.ASC))
        else:
            name, direction = item
            normalized.append((name, SortDirection(str(getattr(direction, "value", direction)).lower())))
    return tuple(normalized)


@dataclass(frozen=True)
class QueryKey:
    resource_type: str
    page: int = 1
    page_size: int = 10
    filters: tuple[tuple[str, FilterValue], ...] = ()
    sort: tuple[tuple[str, SortDirection], ...] = ()
    search: str = ""
    scope: ViewScope = ViewScope.ACTIVE

    @classmethod
    def build(
        cls,
        resource_type: str,
        *,
        page: int = 1,
        page_size: int = 10,
        filters: Mapping[str, Any] | None = None,
        sort: str | Sequence[str | tuple[str, str | SortDirection]] | None = None,
        search: str | None = None,
        scope: ViewScope | str = ViewScope.ACTIVE,
    ) -> "QueryKey":
        return cls(
            resource_type=resource_type,
            page=max(1, int(page or 1)),
            page_size=max(1, int(page_size or 10)),
            filters=_normalize_filters(filters),
            sort=_normalize_sort(sort),
            search=(search or "").strip(),
            scope=ViewScope(scope),
        )

    def filter_map(self) -> dict[str, FilterValue]:
        return dict(self.filters)

    def with_page(self, page: int) -> "QueryKey":
        return replace(self, page=max(1, page))

    @property
    def is_unfiltered(self) -> bool:
        return not self.filters and not self.search

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def depends_on(self, fields: Iterable[str]) -> bool:
        """Whether a change to ``fields`` could alter this key's membership or order."""
        if self.search:
            return True
        names = set(fields)
        if any(name in names for name, _ in self.filters):
            return True
        return any(name in names for name, _ in self.sort)


@dataclass(frozen=True)
class CachePage:
    entities: tuple[Entity, ...] = ()
    total: int = 0
    total_exact: bool = True
    has_more: bool | None = None
    mode: PageMode = PageMode.SERVER
    fetched_at: float = 0.0

    def ids(self) -> list[int]:
        return [entity.id for entity in self.entities]

    def find(self, entity_id: int) -> Entity | None:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity
        return None

    def contains(self, entity_id: int) -> bool:
        return self.find(entity_id) is not None

    def without(self, entity_id: int) -> "CachePage":
        remaining = tuple(entity for entity in self.entities if entity.id != entity_id)
        removed = len(self.entities) - len(remaining)
        return replace(self, entities=remaining, total=max(0, self.total - removed))

    def replacing(self, entity: Entity) -> "CachePage":
        entities = tuple(entity if current.id == entity.id else current for current in self.entities)
        return replace(self, entities=entities)

    def prepending(self, entity: Entity) -> "CachePage":
        return self.inserting(entity, 0)

    def inserting(self, entity: Entity, index: int) -> "CachePage":
        entities = (*self.entities[:index], entity, *self.entities[index:])
        return replace(self, entities=entities, total=self.total + 1)
