from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from dotenv import load_dotenv

from .exceptions import ConfigError


@dataclass(frozen=True)
class ClientConfig:
    api_base_url: str
    timeout_seconds: float = 15.0
    mutation_timeout_seconds: float = 30.0
    retries: int = 2
    retry_backoff_seconds: float = 0.3
    cache_ttl_seconds: float = 30.0
    fallback_row_cap: int = 1000
    default_page_size: int = 10
    verify_ssl: bool = True


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    api_base_url = (os.getenv("ADMIN_CONSOLE_API_BASE_URL") or "").strip()
    _require({"ADMIN_CONSOLE_API_BASE_URL": api_base_url}, ["ADMIN_CONSOLE_API_BASE_URL"])

    timeout_seconds = _read_float("ADMIN_CONSOLE_TIMEOUT_SECONDS", "15")
    _validate(
        timeout_seconds > 0,
        f"Invalid ADMIN_CONSOLE_TIMEOUT_SECONDS: expected > 0, got {timeout_seconds}",
    )

    mutation_timeout_seconds = _read_float(
        "ADMIN_CONSOLE_MUTATION_TIMEOUT_SECONDS", str(max(timeout_seconds, 30.0))
    )
    _validate(
        mutation_timeout_seconds > 0,
        (
            "Invalid ADMIN_CONSOLE_MUTATION_TIMEOUT_SECONDS: "
            f"expected > 0, got {mutation_timeout_seconds}"
        ),
    )

    retries = _read_int("ADMIN_CONSOLE_RETRIES", "2")
    _validate(retries >= 0, f"Invalid ADMIN_CONSOLE_RETRIES: expected >= 0, got {retries}")

    retry_backoff_seconds = _read_float("ADMIN_CONSOLE_RETRY_BACKOFF_SECONDS", "0.3")
    _validate(
        retry_backoff_seconds >= 0,
        (
            "Invalid ADMIN_CONSOLE_RETRY_BACKOFF_SECONDS: "
            f"expected >= 0, got {retry_backoff_seconds}"
        ),
    )

    cache_ttl_seconds = _read_float("ADMIN_CONSOLE_CACHE_TTL_SECONDS", "30")
    _validate(
        cache_ttl_seconds > 0,
        f"Invalid ADMIN_CONSOLE_CACHE_TTL_SECONDS: expected > 0, got {cache_ttl_seconds}",
    )

    fallback_row_cap = _read_int("ADMIN_CONSOLE_FALLBACK_ROW_CAP", "1000")
    _validate(
        fallback_row_cap >= 1,
        f"Invalid ADMIN_CONSOLE_FALLBACK_ROW_CAP: expected >= 1, got {fallback_row_cap}",
    )

    default_page_size = _read_int("ADMIN_CONSOLE_PAGE_SIZE", "10")
    _validate(
        default_page_size >= 1,
        f"Invalid ADMIN_CONSOLE_PAGE_SIZE: expected >= 1, got {default_page_size}",
    )

    verify_ssl = _coerce_bool(os.getenv("ADMIN_CONSOLE_VERIFY_SSL"), True)

    return ClientConfig(
        api_base_url=api_base_url.rstrip("/"),
        timeout_seconds=timeout_seconds,
        mutation_timeout_seconds=mutation_timeout_seconds,
        retries=retries,
        retry_backoff_seconds=retry_backoff_seconds,
        cache_ttl_seconds=cache_ttl_seconds,
        fallback_row_cap=fallback_row_cap,
        default_page_size=default_page_size,
        verify_ssl=verify_ssl,
    )
