from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .lifecycle import LifecycleState


class ConfigError(ValueError):
    pass


class InvalidLifecycleTransition(ValueError):
    """Requested lifecycle change is not in the transition table."""

    def __init__(
        self,
        resource_type: str,
        entity_id: int,
        current: "LifecycleState",
        target: "LifecycleState",
    ) -> None:
        self.resource_type = resource_type
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            f"{resource_type}#{entity_id}: cannot move from {current.value} to {target.value}"
        )


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None = None
    trace_id: str | None = None
    status_code: int = 0
    raw_payload: object | None = None

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class NetworkFailure(ApiError):
    """Transport failure or timeout before a response was accepted."""


class ServerRejected(ApiError):
    """The server answered with a non-success status."""


class AuthError(ServerRejected):
    pass


class PermissionDeniedError(ServerRejected):
    pass


class NotFoundError(ServerRejected):
    pass


class ValidationError(ServerRejected):
    pass


class ConflictError(ServerRejected):
    """409 or conflict-style errors."""


class StaleWrite(ConflictError):
    """The entity changed on the server since the client last read it."""


class RateLimitError(ServerRejected):
    """429 throttling error."""


class ServerError(ServerRejected):
    """5xx server-side failures."""
