import json
import logging

import pytest

from admin_console_sdk.cache import ResourceCache
from admin_console_sdk.logger import get_logger, log_action
from admin_console_sdk.models import CachePage, QueryKey


class CaptureHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def capture():
    logger = logging.getLogger("admin_console_sdk")
    handler = CaptureHandler()
    previous = logger.level
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous)


def test_log_action_contains_required_fields_and_no_secrets() -> None:
    logger = logging.getLogger("admin_console_sdk.test.obs")
    logger.handlers = []
    logger.setLevel(logging.INFO)
    handler = CaptureHandler()
    logger.addHandler(handler)

    log_action(
        logger,
        module="coordinator",
        action="soft_delete",
        outcome="rolled_back",
        resource_type="categories",
        entity_id=42,
        token="secret-token",
        Authorization="Bearer x",
    )

    assert len(handler.messages) == 1
    payload = json.loads(handler.messages[0])
    for key in ["ts", "level", "module", "action", "outcome", "resource_type", "entity_id"]:
        assert key in payload
    assert payload["level"] == "INFO"
    assert "secret-token" not in handler.messages[0]
    assert "Bearer" not in handler.messages[0]


def test_get_logger_is_silent_by_default() -> None:
    logger = get_logger("admin_console_sdk.test.silent")

    assert any(isinstance(handler, logging.NullHandler) for handler in logger.handlers)
    assert get_logger("admin_console_sdk.test.silent").handlers == logger.handlers


def test_discarded_put_is_logged(capture) -> None:
    cache = ResourceCache(ttl_seconds=30, now=lambda: 0.0)
    key = QueryKey.build("categories")
    old = cache.begin_fetch(key)
    cache.put(key, CachePage(), cache.begin_fetch(key))

    cache.put(key, CachePage(), old)

    events = [json.loads(message) for message in capture.messages]
    discarded = [event for event in events if event["outcome"] == "discarded"]
    assert len(discarded) == 1
    assert discarded[0]["module"] == "cache"
    assert discarded[0]["action"] == "put"
    assert discarded[0]["generation"] == 1
    assert discarded[0]["landed"] == 2
