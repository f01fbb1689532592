import asyncio

import pytest

from admin_console_sdk.config import ClientConfig
from admin_console_sdk.exceptions import ServerRejected
from admin_console_sdk.lifecycle import LifecycleState
from admin_console_sdk.list_view import ListStatus
from admin_console_sdk.models import Operation
from admin_console_sdk.session import AdminConsoleClient

CONFIG = ClientConfig(api_base_url="https://admin.test", default_page_size=10)


def _category(entity_id, deleted=False):
    return {"id": entity_id, "name": f"Category {entity_id}", "isDeleted": deleted}


@pytest.mark.asyncio
async def test_soft_delete_then_trash_view_shows_entity(fetcher, settle) -> None:
    fetcher.script("categories", Operation.LIST, fetcher.listing([_category(41), _category(42)], total=2))
    fetcher.script("categories", Operation.LIST, fetcher.listing([_category(41)], total=1))
    fetcher.script("categories", Operation.LIST, fetcher.listing([_category(42, deleted=True)], total=1))
    gate = asyncio.Event()
    fetcher.script("categories", Operation.SOFT_DELETE, None, gate=gate)
    client = AdminConsoleClient(CONFIG, fetcher=fetcher)
    active = client.controller("categories")

    await active.load()
    task = asyncio.create_task(active.soft_delete(42))
    await settle()
    assert [row.entity.id for row in active.rows] == [41]

    gate.set()
    assert await task is True
    assert [row.entity.id for row in active.rows] == [41]

    trash = client.controller("categories")
    await trash.set_scope("trash")

    assert trash.status == ListStatus.LOADED
    assert [row.entity.id for row in trash.rows] == [42]
    assert trash.rows[0].entity.state == LifecycleState.TRASHED
    assert trash.rows[0].actions.can_restore
    assert fetcher.calls[-1][2]["scope"] == "trash"


@pytest.mark.asyncio
async def test_rejected_soft_delete_restores_row_and_surfaces_message(fetcher) -> None:
    fetcher.serve("categories", [_category(41), _category(42)], total=2)
    fetcher.script(
        "categories",
        Operation.SOFT_DELETE,
        error=ServerRejected(code="IN_USE", message="in use", status_code=409),
    )
    client = AdminConsoleClient(CONFIG, fetcher=fetcher)
    active = client.controller("categories")
    await active.load()
    before = active.page

    with pytest.raises(ServerRejected):
        await active.soft_delete(42)

    assert active.page == before
    assert active.page.find(42).state == LifecycleState.ACTIVE
    assert active.notices[-1]["message"] == "in use"
    assert len(fetcher.calls_for(Operation.LIST)) == 1


@pytest.mark.asyncio
async def test_two_screens_share_one_cache(fetcher) -> None:
    fetcher.serve("categories", [_category(7)], total=1)
    fetcher.script(
        "categories",
        Operation.UPDATE,
        fetcher.entity({"id": 7, "name": "Renamed", "isDeleted": False}),
    )
    client = AdminConsoleClient(CONFIG, fetcher=fetcher)
    first = client.controller("categories")
    second = client.controller("categories")
    await first.load()
    await second.load()

    assert await first.update(7, {"name": "Renamed"}) is True

    assert second.rows[0].entity.get("name") == "Renamed"
    assert len(fetcher.calls_for(Operation.LIST)) == 1


def test_unknown_resource_type_is_rejected(fetcher) -> None:
    client = AdminConsoleClient(CONFIG, fetcher=fetcher)

    with pytest.raises(KeyError):
        client.controller("spaceships")

    assert client.surface.paging_mode("promo_codes").value == "local"
    assert client.controller("bills").pagination.page_size == 10
