import json

import httpx
import pytest

from linkwatch.core.errors import ActionError, TransportError
from linkwatch.infra.api import ApiClient


def _client(handler) -> ApiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApiClient("http://backend.test/api", token="secret", http=http)


@pytest.mark.asyncio
async def test_fetch_status_unwraps_data_and_sends_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"status": "qr_ready", "qrCode": "abc"}})

    api = _client(handler)
    data = await api.fetch_status()
    await api.http.aclose()

    assert data == {"status": "qr_ready", "qrCode": "abc"}
    assert seen[0].url == httpx.URL("http://backend.test/api/whatsapp/status")
    assert seen[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_fetch_status_rejects_unsuccessful_body() -> None:
    api = _client(lambda request: httpx.Response(200, json={"success": False, "error": "not ready"}))
    with pytest.raises(TransportError, match="not ready"):
        await api.fetch_status()


@pytest.mark.asyncio
async def test_http_errors_become_transport_errors() -> None:
    api = _client(lambda request: httpx.Response(503))
    with pytest.raises(TransportError) as excinfo:
        await api.fetch_status()
    assert excinfo.value.status_code == 503

    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    api = _client(_refuse)
    with pytest.raises(TransportError):
        await api.fetch_status()


@pytest.mark.asyncio
async def test_fetch_qr_image_returns_bytes_and_content_type() -> None:
    api = _client(lambda request: httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"}))
    data, content_type = await api.fetch_qr_image()
    assert data == b"\x89PNG"
    assert content_type == "image/png"


@pytest.mark.asyncio
async def test_logs_fetch_and_clear() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        if request.method == "DELETE":
            return httpx.Response(200, json={"success": True})
        return httpx.Response(200, json={"success": True, "data": [{"id": 1, "title": "Started"}, "junk"]})

    api = _client(handler)
    entries = await api.fetch_logs()
    await api.clear_logs()

    assert entries == [{"id": 1, "title": "Started"}]
    assert calls == ["GET", "DELETE"]


@pytest.mark.asyncio
async def test_send_action_posts_to_action_path() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"success": True})

    api = _client(handler)
    await api.send_action("connect")
    await api.send_action("disconnect")
    await api.send_action("logout")

    assert paths == ["/api/whatsapp/start", "/api/whatsapp/stop", "/api/whatsapp/logout"]


@pytest.mark.asyncio
async def test_send_action_failure_raises_action_error() -> None:
    api = _client(lambda request: httpx.Response(500))
    with pytest.raises(ActionError) as excinfo:
        await api.send_action("logout")
    assert excinfo.value.action == "logout"
    assert excinfo.value.status_code == 500

    with pytest.raises(ValueError):
        await api.send_action("reboot")


@pytest.mark.asyncio
async def test_event_stream_yields_decoded_events() -> None:
    body = "".join(
        f"data: {json.dumps(payload)}\n\n"
        for payload in ({"status": "initializing"}, {"status": "qr_ready", "qrCode": "A"})
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Accept"] == "text/event-stream"
        return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})

    api = _client(handler)
    async with api.open_event_stream() as events:
        received = [json.loads(event.data) async for event in events]

    assert received == [{"status": "initializing"}, {"status": "qr_ready", "qrCode": "A"}]


@pytest.mark.asyncio
async def test_event_stream_rejects_non_200() -> None:
    api = _client(lambda request: httpx.Response(404))
    with pytest.raises(TransportError):
        async with api.open_event_stream():
            pass


@pytest.mark.asyncio
async def test_aclose_leaves_borrowed_client_open() -> None:
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    api = ApiClient("http://backend.test/api", http=http)
    await api.aclose()
    assert http.is_closed is False
    await http.aclose()
