import httpx
import pytest

from admin_console_sdk.config import ClientConfig
from admin_console_sdk.exceptions import ConflictError
from admin_console_sdk.http_client import HttpClient
from admin_console_sdk.lifecycle import LifecycleState
from admin_console_sdk.session import AdminConsoleClient

BASE_URL = "https://admin.test"


class _CategoryServer:
    """Tiny stand-in for the admin API's category endpoints."""

    def __init__(self, rows):
        self.rows = {row["id"]: dict(row) for row in rows}
        self.in_use: set[int] = set()
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params
        if path == "/category/getAllCategory":
            deleted = params.get("isDeleted")
            rows = [
                row
                for row in sorted(self.rows.values(), key=lambda item: item["id"])
                if deleted is None or str(row["isDeleted"]).lower() == deleted
            ]
            page = int(params.get("PageNumber", "1"))
            size = int(params.get("PageSize", "10"))
            window = rows[(page - 1) * size : page * size]
            return httpx.Response(200, json={"success": True, "data": {"data": window, "totalCount": len(rows)}})
        if path == "/category/softDeleteCategory":
            category_id = int(params["categoryId"])
            if category_id in self.in_use:
                return httpx.Response(409, json={"code": "IN_USE", "message": "Category is in use by products"})
            self.rows[category_id]["isDeleted"] = True
            return httpx.Response(200, json={"success": True, "data": self.rows[category_id]})
        if path == "/category/unDeleteCategory":
            category_id = int(params["categoryId"])
            self.rows[category_id]["isDeleted"] = False
            return httpx.Response(200, json={"success": True})
        if path == "/category/hardDeleteCategory":
            self.rows.pop(int(params["categoryId"]))
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"code": "NOT_FOUND", "message": path})


def _client(server: _CategoryServer) -> AdminConsoleClient:
    config = ClientConfig(api_base_url=BASE_URL, retries=0, default_page_size=2)
    http = HttpClient(config, client=httpx.AsyncClient(transport=httpx.MockTransport(server), base_url=BASE_URL))
    return AdminConsoleClient(config, http=http)


@pytest.mark.asyncio
async def test_full_lifecycle_over_http() -> None:
    server = _CategoryServer([{"id": i, "name": f"Category {i}", "isDeleted": False} for i in (40, 41, 42)])
    client = _client(server)
    active = client.controller("categories")
    trash = client.controller("categories", scope="trash")

    await active.goto_page(2)
    assert [row.entity.id for row in active.rows] == [42]
    assert active.total == 3

    assert await active.soft_delete(42) is True
    assert active.rows == []
    assert active.total == 2

    await trash.load()
    assert [row.entity.id for row in trash.rows] == [42]
    assert trash.rows[0].entity.state == LifecycleState.TRASHED

    assert await trash.restore(42) is True
    assert trash.rows == []
    await active.refresh()
    assert [row.entity.id for row in active.rows] == [42]

    assert await active.hard_delete(42) is True
    assert client.cache.is_purged("categories", 42)
    assert 42 not in server.rows
    await client.aclose()


@pytest.mark.asyncio
async def test_rejection_over_http_keeps_row() -> None:
    server = _CategoryServer([{"id": 42, "name": "Shoes", "isDeleted": False}])
    server.in_use.add(42)
    client = _client(server)
    active = client.controller("categories")
    await active.load()

    with pytest.raises(ConflictError):
        await active.soft_delete(42)

    assert [row.entity.id for row in active.rows] == [42]
    assert active.notices[-1]["message"] == "Category is in use by products"
    assert server.rows[42]["isDeleted"] is False
    await client.aclose()
