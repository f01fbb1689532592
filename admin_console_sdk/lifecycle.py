from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import InvalidLifecycleTransition

if TYPE_CHECKING:
    from .models import Entity


class LifecycleState(str, Enum):
    ACTIVE = "active"
    TRASHED = "trashed"
    PURGED = "purged"


TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.ACTIVE: frozenset({LifecycleState.TRASHED, LifecycleState.PURGED}),
    LifecycleState.TRASHED: frozenset({LifecycleState.ACTIVE, LifecycleState.PURGED}),
    LifecycleState.PURGED: frozenset(),
}


def is_legal(current: LifecycleState, target: LifecycleState) -> bool:
    return target in TRANSITIONS[current]


def transition(entity: "Entity", target: LifecycleState) -> LifecycleState:
    """Validate moving ``entity`` to ``target`` and return the new state.

    Pure: never touches the cache or the network.
    """
    if not is_legal(entity.state, target):
        raise InvalidLifecycleTransition(entity.resource_type, entity.id, entity.state, target)
    return target


def state_from_flag(is_deleted: bool | None) -> LifecycleState:
    return LifecycleState.TRASHED if is_deleted else LifecycleState.ACTIVE


@dataclass(frozen=True)
class LifecycleActionAvailability:
    can_edit: bool
    can_soft_delete: bool
    can_restore: bool
    can_hard_delete: bool


def action_availability(state: LifecycleState, *, pending: bool = False) -> LifecycleActionAvailability:
    if pending:
        return LifecycleActionAvailability(False, False, False, False)
    return LifecycleActionAvailability(
        can_edit=state == LifecycleState.ACTIVE,
        can_soft_delete=is_legal(state, LifecycleState.TRASHED),
        can_restore=is_legal(state, LifecycleState.ACTIVE),
        can_hard_delete=is_legal(state, LifecycleState.PURGED),
    )
