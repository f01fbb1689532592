from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .logger import get_logger, log_action
from .models import ListingPayload, WireEntity

logger = get_logger(__name__)

_LIST_KEYS = ("items", "rows", "data", "results")
_TOTAL_KEYS = ("totalCount", "total_count", "totalItems", "total", "count")


def unwrap_envelope(payload: Any) -> Any:
    """Peel ``data`` envelopes until the list or entity is reached.

    The API nests results inconsistently (``data.data.data``, ``data.data``,
    ``data`` or nothing), so the outermost level that still carries a total
    is remembered by ``normalize_listing`` before peeling.
    """
    current = payload
    while isinstance(current, dict) and "data" in current and isinstance(current["data"], (dict, list)):
        current = current["data"]
    return current


def normalize_listing(payload: Any, *, id_field: str = "id") -> ListingPayload:
    total = _find_total(payload)
    rows = _find_rows(payload)
    items = [_to_wire_entity(row, id_field) for row in rows]
    kept = [item for item in items if item is not None]
    if len(kept) != len(items):
        log_action(
            logger,
            module="normalizers",
            action="normalize_listing",
            outcome="row_dropped",
            level=logging.WARNING,
            dropped=len(items) - len(kept),
            rows=len(items),
            total=total,
        )
    return ListingPayload(items=kept, total=total)


def normalize_entity(payload: Any, *, id_field: str = "id") -> WireEntity | None:
    body = unwrap_envelope(payload)
    if not isinstance(body, dict):
        return None
    return _to_wire_entity(body, id_field)


def _find_rows(payload: Any) -> list[Any]:
    current = payload
    for _ in range(4):
        if isinstance(current, list):
            return current
        if not isinstance(current, dict):
            return []
        for key in _LIST_KEYS:
            value = current.get(key)
            if isinstance(value, list):
                return value
        nested = current.get("data")
        if not isinstance(nested, dict):
            return []
        current = nested
    return []


def _find_total(payload: Any) -> int | None:
    current = payload
    for _ in range(4):
        if not isinstance(current, dict):
            return None
        for key in _TOTAL_KEYS:
            total = _to_int(current.get(key))
            if total is not None:
                return total
        meta = current.get("meta") or current.get("pagination")
        if isinstance(meta, dict):
            for key in _TOTAL_KEYS:
                total = _to_int(meta.get(key))
                if total is not None:
                    return total
        current = current.get("data")
    return None


def _to_wire_entity(row: Any, id_field: str) -> WireEntity | None:
    if not isinstance(row, dict):
        return None
    body = dict(row)
    if id_field != "id" and id_field in body:
        body["id"] = body.pop(id_field)
    try:
        return WireEntity.model_validate(body)
    except PydanticValidationError:
        return None


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        if value is None or value == "":
            return None
        return int(value)
    except (TypeError, ValueError):
        return None
