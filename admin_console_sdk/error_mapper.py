from __future__ import annotations

from typing import Any, Mapping

from .exceptions import (
    ApiError,
    AuthError,
    ConflictError,
    InvalidLifecycleTransition,
    NetworkFailure,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServerError,
    ServerRejected,
    StaleWrite,
    ValidationError,
)

STALE_WRITE_CODES = {"STALE_WRITE", "CONCURRENCY_CONFLICT", "ETAG_MISMATCH"}

_SUGGESTIONS = {
    "INVALID_TRANSITION": "Refresh the list; the record is no longer in a state that allows this action.",
    "TIMEOUT": "The server took too long to answer. Check the record before trying again.",
    "NETWORK_ERROR": "Check your connection and try again.",
    "STALE_WRITE": "The record changed elsewhere. The list was reloaded; review it and retry.",
}

_STATUS_SUGGESTIONS = {
    401: "Sign in again.",
    403: "Ask an administrator for access.",
    404: "The record no longer exists. Refresh the list.",
    409: "The record is in use or was changed. Refresh and review.",
    422: "Review the submitted fields.",
    429: "Too many requests. Wait a moment before retrying.",
}


def map_error(status_code: int, payload: Mapping[str, object] | None, trace_id: str | None) -> ApiError:
    payload = payload or {}
    code = str(payload.get("code") or "HTTP_ERROR")
    message = str(payload.get("message") or payload.get("title") or "Request failed")
    details = payload.get("details") or payload.get("errors")
    payload_trace_id = payload.get("trace_id") or payload.get("traceId")
    resolved_trace_id = str(payload_trace_id) if payload_trace_id is not None else trace_id
    mapped: type[ApiError]
    if status_code == 412 or (status_code == 409 and code.upper() in STALE_WRITE_CODES):
        mapped = StaleWrite
    elif status_code == 401:
        mapped = AuthError
    elif status_code == 403:
        mapped = PermissionDeniedError
    elif status_code == 404:
        mapped = NotFoundError
    elif status_code in {400, 422}:
        mapped = ValidationError
    elif status_code == 409:
        mapped = ConflictError
    elif status_code == 429:
        mapped = RateLimitError
    elif status_code >= 500:
        mapped = ServerError
    else:
        mapped = ServerRejected
    return mapped(
        code=code,
        message=message,
        details=details,
        trace_id=resolved_trace_id,
        status_code=status_code,
        raw_payload=dict(payload),
    )


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, NetworkFailure):
        return True
    if isinstance(error, (ServerError, RateLimitError)):
        return True
    return False


def describe_error(error: BaseException) -> dict[str, Any]:
    """Build the notice presentation code shows for a failed action."""
    if isinstance(error, InvalidLifecycleTransition):
        return {
            "code": "INVALID_TRANSITION",
            "message": str(error),
            "retryable": False,
            "suggestion": _SUGGESTIONS["INVALID_TRANSITION"],
            "trace_id": None,
        }
    if isinstance(error, ApiError):
        if isinstance(error, StaleWrite):
            suggestion = _SUGGESTIONS["STALE_WRITE"]
        elif isinstance(error, NetworkFailure):
            suggestion = _SUGGESTIONS.get(error.code, _SUGGESTIONS["NETWORK_ERROR"])
        elif error.status_code >= 500:
            suggestion = "Server error. Retry in a few seconds and share the trace_id if it persists."
        else:
            suggestion = _STATUS_SUGGESTIONS.get(error.status_code, "Contact support with the trace_id.")
        return {
            "code": error.code,
            "message": error.message,
            "retryable": is_retryable(error),
            "suggestion": suggestion,
            "trace_id": error.trace_id,
        }
    return {
        "code": "INTERNAL_ERROR",
        "message": str(error),
        "retryable": False,
        "suggestion": "Retry and report the incident if it persists.",
        "trace_id": None,
    }
