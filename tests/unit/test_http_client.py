import httpx
import pytest

from admin_console_sdk.config import ClientConfig
from admin_console_sdk.exceptions import ConflictError, NetworkFailure, ServerError, StaleWrite
from admin_console_sdk.http_client import REQUEST_ID_HEADER, HttpClient

BASE_URL = "https://admin.test"


class _Transport:
    def __init__(self, responses):
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self.responses[len(self.requests) - 1]
        if isinstance(result, Exception):
            raise result
        return result


def _client(transport: _Transport, retries: int = 2, token: str | None = None) -> HttpClient:
    config = ClientConfig(api_base_url=BASE_URL, retries=retries, retry_backoff_seconds=0)
    return HttpClient(
        config,
        client=httpx.AsyncClient(transport=httpx.MockTransport(transport), base_url=BASE_URL),
        token_provider=lambda: token,
    )


@pytest.mark.asyncio
async def test_get_retries_5xx_and_timeouts() -> None:
    transport = _Transport(
        [
            httpx.ReadTimeout("timeout"),
            httpx.Response(503, json={"code": "UNAVAILABLE", "message": "down"}),
            httpx.Response(200, json={"ok": True}),
        ]
    )
    client = _client(transport)

    payload = await client.request("GET", "/category/getAllCategory")

    assert payload == {"ok": True}
    assert len(transport.requests) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_writes_are_never_retried() -> None:
    transport = _Transport([httpx.Response(503, json={"code": "UNAVAILABLE", "message": "down"})])
    client = _client(transport)

    with pytest.raises(ServerError):
        await client.request("DELETE", "/category/softDeleteCategory", params={"categoryId": 42})

    assert len(transport.requests) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_error_becomes_network_failure() -> None:
    transport = _Transport([httpx.ConnectError("refused")] * 3)
    client = _client(transport)

    with pytest.raises(NetworkFailure) as excinfo:
        await client.request("GET", "/bills")

    assert excinfo.value.code == "NETWORK_ERROR"
    assert excinfo.value.status_code == 0
    assert len(transport.requests) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_timeout_on_write_is_reported_as_timeout() -> None:
    transport = _Transport([httpx.ReadTimeout("timeout")])
    client = _client(transport)

    with pytest.raises(NetworkFailure) as excinfo:
        await client.request("POST", "/category/create", json_body={"name": "x"})

    assert excinfo.value.code == "TIMEOUT"
    await client.aclose()


@pytest.mark.asyncio
async def test_error_status_is_mapped_with_trace_id() -> None:
    transport = _Transport(
        [
            httpx.Response(
                409,
                json={"code": "IN_USE", "message": "Category is in use"},
                headers={"X-Trace-ID": "trace-77"},
            )
        ]
    )
    client = _client(transport)

    with pytest.raises(ConflictError) as excinfo:
        await client.request("DELETE", "/category/hardDeleteCategory")

    assert not isinstance(excinfo.value, StaleWrite)
    assert excinfo.value.message == "Category is in use"
    assert excinfo.value.trace_id == "trace-77"
    await client.aclose()


@pytest.mark.asyncio
async def test_non_json_error_body_keeps_text() -> None:
    transport = _Transport([httpx.Response(412, text="precondition failed")])
    client = _client(transport)

    with pytest.raises(StaleWrite) as excinfo:
        await client.request("PUT", "/category/updateCategory")

    assert excinfo.value.message == "precondition failed"
    await client.aclose()


@pytest.mark.asyncio
async def test_headers_body_and_empty_response() -> None:
    transport = _Transport([httpx.Response(204)])
    client = _client(transport, token="secret-token")

    payload = await client.request("put", "promoCode/activate", params={"id": 5}, json_body={"isActive": True})

    assert payload is None
    request = transport.requests[0]
    assert request.method == "PUT"
    assert request.url.path == "/promoCode/activate"
    assert request.url.params["id"] == "5"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers[REQUEST_ID_HEADER]
    assert request.content == b'{"isActive":true}' or b'"isActive": true' in request.content
    await client.aclose()
