"""
Tests unitaires pour LOT 6: Gateway - Helpers

Tests de l'invariant:
- GATE_003: Échec définitif toujours remonté à l'appelant, jamais avalé
"""

import asyncio
import json

import httpx
import pytest

from src.core.interfaces import RecoveryConfig
from src.gateway import (
    GatewayResult,
    NetworkOfflineError,
    OutcomeKind,
    RequestFailedError,
    RequestQueuedError,
    ResilientGateway,
    batch_requests,
    delete_json,
    fetch_json,
    get_json,
    post_json,
    put_json,
    unwrap,
    upload_file,
)
from src.network import RequestParams, RetryPolicy
from tests.fakes import FakeClock, FakeSignal


class RecordingHandler:
    """Handler MockTransport: réponses par chemin, requêtes enregistrées."""

    def __init__(self, routes: dict) -> None:
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get(request.url.path, (404, {"error": "not found"}))
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


class CountingGateway:
    """Gateway minimale mesurant le nombre d'appels simultanés."""

    def __init__(self) -> None:
        self.in_flight = 0
        self.max_in_flight = 0

    async def issue(self, target, params=None, **kwargs) -> GatewayResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        request = httpx.Request(params.method, f"https://api.test{target}")
        return GatewayResult(
            kind=OutcomeKind.COMPLETED,
            response=httpx.Response(200, json={"target": target}, request=request),
        )


# ══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def http_gateway(clock: FakeClock):
    """Fabrique de gateways branchées sur un MockTransport."""

    def factory(handler, connected: bool = True) -> ResilientGateway:
        client = httpx.AsyncClient(base_url="https://api.test", transport=httpx.MockTransport(handler))
        config = RecoveryConfig(retry=RetryPolicy(max_retries=1))
        return ResilientGateway.create(config, client=client, clock=clock, signal=FakeSignal(connected))

    return factory


class TestJsonHelpers:
    """fetch_json et verbes HTTP."""

    @pytest.mark.asyncio
    async def test_get_json(self, http_gateway) -> None:
        handler = RecordingHandler({"/api/items": (200, [{"id": 1}])})
        gateway = http_gateway(handler)

        data = await get_json(gateway, "/api/items")

        request = handler.requests[0]
        assert data == [{"id": 1}]
        assert request.method == "GET"
        assert request.headers["accept"] == "application/json"
        assert "content-type" not in request.headers

    @pytest.mark.asyncio
    async def test_post_json_sends_body(self, http_gateway) -> None:
        handler = RecordingHandler({"/api/orders": (201, {"id": "o-1"})})
        gateway = http_gateway(handler)

        data = await post_json(gateway, "/api/orders", {"sku": "A-1", "qty": 2})

        request = handler.requests[0]
        assert data == {"id": "o-1"}
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"sku": "A-1", "qty": 2}

    @pytest.mark.asyncio
    async def test_put_and_delete(self, http_gateway) -> None:
        handler = RecordingHandler({"/api/orders/1": (200, {"ok": True})})
        gateway = http_gateway(handler)

        await put_json(gateway, "/api/orders/1", {"qty": 3})
        await delete_json(gateway, "/api/orders/1")

        assert [r.method for r in handler.requests] == ["PUT", "DELETE"]

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, http_gateway) -> None:
        gateway = http_gateway(RecordingHandler({"/api/orders/1": (204, None)}))

        assert await delete_json(gateway, "/api/orders/1") is None

    @pytest.mark.asyncio
    async def test_caller_headers_override_defaults(self, http_gateway) -> None:
        handler = RecordingHandler({"/api/items": (200, {"ok": True})})
        gateway = http_gateway(handler)
        params = RequestParams(headers={"Accept": "application/vnd.api+json", "X-Trace": "t-1"})

        await fetch_json(gateway, "/api/items", params)

        request = handler.requests[0]
        assert request.headers["accept"] == "application/vnd.api+json"
        assert request.headers["x-trace"] == "t-1"
        assert params.headers == {"Accept": "application/vnd.api+json", "X-Trace": "t-1"}


class TestGATE003Unwrap:
    """Tests GATE_003: Issues non-COMPLETED converties en exceptions."""

    @pytest.mark.asyncio
    async def test_GATE_003_failed_raises(self, http_gateway) -> None:
        """GATE_003: 404 = RequestFailedError avec status."""
        gateway = http_gateway(RecordingHandler({}))

        with pytest.raises(RequestFailedError) as exc_info:
            await get_json(gateway, "/api/missing")

        assert exc_info.value.status_code == 404
        assert "HTTP 404" in str(exc_info.value)
        assert exc_info.value.result.exhausted is False

    @pytest.mark.asyncio
    async def test_GATE_003_exhausted_message(self, http_gateway) -> None:
        gateway = http_gateway(RecordingHandler({"/api/items": (503, None)}))

        with pytest.raises(RequestFailedError, match="after retries exhausted"):
            await get_json(gateway, "/api/items")

    @pytest.mark.asyncio
    async def test_queued_raises(self, http_gateway) -> None:
        handler = RecordingHandler({"/api/items": (200, {})})
        gateway = http_gateway(handler, connected=False)

        with pytest.raises(RequestQueuedError) as exc_info:
            await get_json(gateway, "/api/items")

        assert exc_info.value.request_id == gateway.queue.items()[0].id
        assert handler.requests == []

    def test_offline_raises(self) -> None:
        result = GatewayResult(kind=OutcomeKind.OFFLINE, attempts=2)

        with pytest.raises(NetworkOfflineError) as exc_info:
            unwrap(result)

        assert exc_info.value.result is result

    def test_transport_error_message(self) -> None:
        result = GatewayResult(kind=OutcomeKind.FAILED, error=httpx.ConnectError("refused"), exhausted=True)

        error = RequestFailedError(result)

        assert str(error) == "Request failed (ConnectError: refused) after retries exhausted"
        assert error.status_code is None

    def test_completed_returned(self) -> None:
        result = GatewayResult(kind=OutcomeKind.COMPLETED)

        assert unwrap(result) is result


class TestUploadFile:
    """Upload multipart."""

    @pytest.mark.asyncio
    async def test_upload_multipart(self, http_gateway) -> None:
        handler = RecordingHandler({"/api/upload": (201, {"stored": True})})
        gateway = http_gateway(handler)

        result = await upload_file(
            gateway,
            "/api/upload",
            "report.csv",
            b"a,b\n1,2\n",
            content_type="text/csv",
            fields={"folder": "reports"},
        )

        request = handler.requests[0]
        body = request.content
        assert result.kind == OutcomeKind.COMPLETED
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="file"; filename="report.csv"' in body
        assert b"a,b\n1,2\n" in body
        assert b'name="folder"' in body

    @pytest.mark.asyncio
    async def test_upload_offline_returns_queued(self, http_gateway) -> None:
        gateway = http_gateway(RecordingHandler({}), connected=False)

        result = await upload_file(gateway, "/api/upload", "a.bin", b"\x00")

        assert result.kind == OutcomeKind.QUEUED
        assert gateway.queue.items()[0].params.files["file"][0] == "a.bin"


class TestBatchRequests:
    """Traitement par lots."""

    @pytest.mark.asyncio
    async def test_results_in_order_with_failures(self, http_gateway) -> None:
        handler = RecordingHandler({"/a": (200, {"n": 1}), "/c": (200, {"n": 3})})
        gateway = http_gateway(handler)
        progress = []

        results = await batch_requests(
            gateway,
            ["/a", ("/b", RequestParams(method="GET")), "/c"],
            concurrency=2,
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert results == [{"n": 1}, None, {"n": 3}]
        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_all_failed_raises_first_error(self, http_gateway) -> None:
        gateway = http_gateway(RecordingHandler({}))

        with pytest.raises(RequestFailedError):
            await batch_requests(gateway, ["/x", "/y"])

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self) -> None:
        gateway = CountingGateway()

        results = await batch_requests(gateway, [f"/r{i}" for i in range(7)], concurrency=3)

        assert gateway.max_in_flight == 3
        assert results == [{"target": f"/r{i}"} for i in range(7)]

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        assert await batch_requests(CountingGateway(), []) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [0, -1])
    async def test_invalid_concurrency(self, concurrency: int) -> None:
        with pytest.raises(ValueError):
            await batch_requests(CountingGateway(), ["/a"], concurrency=concurrency)
