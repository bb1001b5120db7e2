"""HTTP surface tests through FastAPI's TestClient."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from apex_mcp.application.api.api_server import create_app
from apex_mcp.application.api.service_context import build_services
from apex_mcp.infrastructure.config.settings import Settings

from tests.fakes import FlakyStore
from tests.helpers import parse_sse


@pytest.fixture
def api(fast_settings: Settings):
    services = build_services(fast_settings)
    with TestClient(create_app(services=services)) as client:
        yield client


def provider_api(handler, **overrides) -> TestClient:
    settings = Settings(
        _env_file=None,
        dataforseo_username="user",
        dataforseo_api_key="key",
        **overrides,
    )
    services = build_services(settings, provider_transport=httpx.MockTransport(handler))
    return TestClient(create_app(services=services))


class TestHealth:
    def test_ok(self, api: TestClient) -> None:
        response = api.get("/health")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "ok"
        assert body["services"]["kv"] == "ok"
        assert body["activeSessions"] == 0
        assert "timestamp" in body

    def test_degraded_when_store_fails(self, fast_settings: Settings) -> None:
        store = FlakyStore()
        store.fail_writes = True
        with TestClient(create_app(services=build_services(fast_settings, store=store))) as client:
            body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["services"]["kv"] == "error"


class TestSubmitContext:
    def test_accepted(self, api: TestClient) -> None:
        response = api.post("/v1/context", json={"clientId": "c1", "content": {"a": 1}, "metadata": {"k": "v"}})
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["contextId"]
        assert body["message"] == "Context data stored successfully"

    @pytest.mark.parametrize(
        "payload",
        [{"content": "x"}, {"clientId": "c1"}, {"clientId": "", "content": "x"}, {"clientId": "c1", "content": ""}],
    )
    def test_missing_fields(self, api: TestClient, payload) -> None:
        response = api.post("/v1/context", json=payload)

        assert response.status_code == 400
        assert "clientId and content" in response.json()["error"]

    def test_malformed_json(self, api: TestClient) -> None:
        response = api.post("/v1/context", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_non_object_metadata(self, api: TestClient) -> None:
        response = api.post("/v1/context", json={"clientId": "c1", "content": "x", "metadata": [1]})
        assert response.status_code == 400

    def test_store_outage_is_503(self, fast_settings: Settings) -> None:
        store = FlakyStore()
        with TestClient(create_app(services=build_services(fast_settings, store=store))) as client:
            store.fail_writes = True
            response = client.post("/v1/context", json={"clientId": "c1", "content": "x"})

        assert response.status_code == 503
        assert "error" in response.json()

    def test_anonymous_accepted_without_storage(self, fast_settings: Settings) -> None:
        services = build_services(fast_settings)
        with TestClient(create_app(services=services)) as client:
            response = client.post("/v1/context", json={"clientId": "anonymous", "content": "hi"})

        assert response.status_code == 200
        assert services.store.cache == {}


class TestClientStatus:
    def test_backlog_counts(self, api: TestClient) -> None:
        api.post("/v1/context", json={"clientId": "c1", "content": "a"})
        api.post("/v1/context", json={"clientId": "c1", "content": "b"})

        body = api.get("/v1/clients/c1").json()

        assert body["clientId"] == "c1"
        assert body["pending"] == 2
        assert body["undelivered"] == 2
        assert body["lastSeen"] is None
        assert body["activeSessions"] == 0


class TestStream:
    def test_connected_then_pending_context(self, api: TestClient) -> None:
        submitted = api.post("/v1/context", json={"clientId": "c1", "content": "hello"}).json()

        response = api.get("/v1/stream", headers={"X-Client-ID": "c1"})
        frames = parse_sse(response.text)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert frames[0][0] == "connected"
        assert frames[0][1]["data"]["clientId"] == "c1"
        contexts = [payload for name, payload in frames if name == "context"]
        assert [c["data"]["id"] for c in contexts] == [submitted["contextId"]]
        assert contexts[0]["data"]["content"] == "hello"

        status = api.get("/v1/clients/c1").json()
        assert status["undelivered"] == 0
        assert status["lastSeen"] is not None

    def test_query_parameter_identifies_client(self, api: TestClient) -> None:
        frames = parse_sse(api.get("/v1/stream?client_id=c9").text)
        assert frames[0][1]["data"]["clientId"] == "c9"

    def test_defaults_to_anonymous(self, api: TestClient) -> None:
        frames = parse_sse(api.get("/v1/stream").text)
        assert frames[0][1]["data"]["clientId"] == "anonymous"

    def test_second_stream_does_not_repeat_delivery(self, api: TestClient) -> None:
        api.post("/v1/context", json={"clientId": "c1", "content": "once"})

        first = parse_sse(api.get("/v1/stream", headers={"X-Client-ID": "c1"}).text)
        second = parse_sse(api.get("/v1/stream", headers={"X-Client-ID": "c1"}).text)

        assert len([f for f in first if f[0] == "context"]) == 1
        assert [f for f in second if f[0] == "context"] == []


class TestTools:
    def test_list(self, api: TestClient) -> None:
        tools = api.get("/v1/tools").json()["tools"]

        assert len(tools) == 9
        assert {"name", "description", "parameters"} <= set(tools[0])

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_discovery(self, api: TestClient, method) -> None:
        body = getattr(api, method)("/v1/discovery").json()

        assert body["server_info"]["name"] == "apex-mcp-server"
        assert body["protocol_version"] == "mcp-v1"
        assert len(body["capabilities"]["tools"]) == 9

    def test_execute_missing_fields(self, api: TestClient) -> None:
        response = api.post("/v1/tools/execute", json={"clientId": "c1"})
        assert response.status_code == 400

    def test_execute_unknown_tool(self, api: TestClient) -> None:
        response = api.post("/v1/tools/execute", json={"clientId": "c1", "name": "nope"})

        assert response.status_code == 404
        assert response.json()["error"] == 'Tool "nope" not found'

    def test_execute_invalid_arguments(self, api: TestClient) -> None:
        response = api.post(
            "/v1/tools/execute",
            json={"clientId": "c1", "name": "keyword_rankings", "parameters": {"domain": "example.com"}},
        )

        assert response.status_code == 400
        assert any("keywords" in e for e in response.json()["errors"])

    def test_execute_success(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"status_code": 20000, "cost": 0.002, "tasks_count": 1, "tasks": [{"result": [{"rank": 3}]}]},
            )

        with provider_api(handler) as client:
            response = client.post(
                "/v1/tools/execute",
                json={"clientId": "c1", "name": "find_competitors", "parameters": {"domain": "example.com"}},
            )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["result"]["results"] == [{"rank": 3}]
        assert body["metadata"]["tool"] == "find_competitors"

    def test_execute_provider_failure_is_502(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with provider_api(handler) as client:
            response = client.post(
                "/v1/tools/execute",
                json={"clientId": "c1", "name": "domain_metrics", "parameters": {"domain": "example.com"}},
            )

        assert response.status_code == 502
        assert response.json()["success"] is False

    def test_execute_non_object_provider_body_is_502(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"status_code": 20000}])

        with provider_api(handler) as client:
            response = client.post(
                "/v1/tools/execute",
                json={"clientId": "c1", "name": "find_competitors", "parameters": {"domain": "example.com"}},
            )

        assert response.status_code == 502
        assert "unexpected list" in response.json()["error"]
