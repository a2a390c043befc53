import asyncio
import importlib
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_server, state_row
from opensky_mcp.auth import JWKSTokenValidator, PublicAccess
from opensky_mcp.cache import LRUCache
from opensky_mcp.ledger import InMemoryLedger
from opensky_mcp.main import create_app
from opensky_mcp.models import UserContext

main = importlib.import_module("opensky_mcp.main")


class StaticTokens:
    """Accepts a fixed set of bearer tokens."""

    def __init__(self, users):
        self.users = users

    async def validate(self, token):
        return self.users.get(token)


def rpc(method, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    return body


@pytest.fixture
def cache():
    return LRUCache(10)


@pytest.fixture
def client(http_client, cache):
    app = create_app(
        cache=cache,
        server_factory=lambda: make_server(http_client),
        http_client=http_client,
    )
    return TestClient(app)


def test_index(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == "OpenSky Flight Tracker"


def test_health_reports_cache_size(client):
    response = client.get("/health")
    assert response.json()["status"] == "ok"
    assert response.json()["cached_servers"] == 0


def test_public_request_uses_shared_instance(client, cache):
    response = client.post("/mcp", json=rpc("tools/list"))

    assert response.status_code == 200
    assert len(response.json()["result"]["tools"]) == 3
    assert "public_server" in cache

    client.post("/mcp", json=rpc("ping"))
    assert len(cache) == 1


def test_notification_returns_accepted(client):
    response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

    assert response.status_code == 202
    assert response.content == b""


def test_malformed_body_returns_parse_error(client):
    response = client.post(
        "/mcp", content=b"{oops", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32700


def test_tool_call_over_http(client, opensky):
    response = client.post(
        "/mcp",
        json=rpc("tools/call", {"name": "getAircraftByIcao", "arguments": {"icao24": "3c6444"}}),
    )

    result = response.json()["result"]
    assert result["isError"] is False
    assert "No aircraft found with ICAO24: 3c6444" in result["content"][0]["text"]


def test_missing_token_rejected(http_client):
    app = create_app(
        auth_strategy=JWKSTokenValidator("https://auth.example.com/jwks", http_client=http_client),
        server_factory=lambda: make_server(http_client),
        http_client=http_client,
    )
    client = TestClient(app)

    response = client.post("/mcp", json=rpc("tools/list"))

    assert response.status_code == 401
    assert response.json()["status"] == 401
    assert response.headers["WWW-Authenticate"].startswith("Bearer")


def test_authenticated_users_get_their_own_instance(http_client, cache):
    users = {
        "alice-token": UserContext(user_id="alice"),
        "bob-token": UserContext(user_id="bob"),
    }
    app = create_app(
        cache=cache,
        auth_strategy=StaticTokens(users),
        server_factory=lambda: make_server(http_client),
        http_client=http_client,
    )
    client = TestClient(app)

    for token in ("alice-token", "bob-token", "alice-token"):
        response = client.post(
            "/mcp", json=rpc("ping"), headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200

    assert "user:alice" in cache
    assert "user:bob" in cache
    assert len(cache) == 2

    rejected = client.post("/mcp", json=rpc("ping"), headers={"Authorization": "Bearer nope"})
    assert rejected.status_code == 401


def test_server_construction_failure_returns_500(http_client):
    def broken_factory():
        raise RuntimeError("cannot build server")

    app = create_app(server_factory=broken_factory, http_client=http_client)
    client = TestClient(app)

    response = client.post("/mcp", json=rpc("ping"))

    assert response.status_code == 500
    assert response.json() == {
        "error": "Internal server error",
        "message": "cannot build server",
    }


def test_charged_tool_call_over_http(http_client, opensky, cache):
    opensky.states = [state_row()]
    ledger = InMemoryLedger(initial_balance=10)
    app = create_app(
        cache=cache,
        auth_strategy=StaticTokens({"alice-token": UserContext(user_id="alice")}),
        server_factory=lambda: make_server(http_client, ledger),
        http_client=http_client,
    )
    client = TestClient(app)

    response = client.post(
        "/mcp",
        json=rpc("tools/call", {"name": "getAircraftByIcao", "arguments": {"icao24": "3c6444"}}),
        headers={"Authorization": "Bearer alice-token"},
    )

    result = response.json()["result"]
    assert result["isError"] is False
    assert result["structuredContent"]["icao24"] == "3c6444"
    assert ledger.get_balance("alice") == 9


def test_refused_tool_call_over_http_is_error_result(http_client, opensky, cache):
    ledger = InMemoryLedger(initial_balance=0)
    app = create_app(
        cache=cache,
        auth_strategy=StaticTokens({"alice-token": UserContext(user_id="alice")}),
        server_factory=lambda: make_server(http_client, ledger),
        http_client=http_client,
    )
    client = TestClient(app)

    response = client.post(
        "/mcp",
        json=rpc("tools/call", {"name": "getAircraftByIcao", "arguments": {"icao24": "3c6444"}}),
        headers={"Authorization": "Bearer alice-token"},
    )

    result = response.json()["result"]
    assert result["isError"] is True
    assert "structuredContent" not in result
    assert opensky.state_requests == []


def test_default_auth_strategy_shares_http_client(http_client, monkeypatch):
    built = {}

    def capture(**kwargs):
        built.update(kwargs)
        return PublicAccess()

    monkeypatch.setattr(main, "build_auth_strategy", capture)

    create_app(server_factory=lambda: make_server(http_client), http_client=http_client)

    assert built["http_client"] is http_client


async def test_client_disconnect_cancels_upstream_call(opensky):
    opensky.states = [state_row()]
    finished = []

    async def slow_upstream(request):
        if request.url.path.endswith("/states/all"):
            await asyncio.sleep(0.5)
            finished.append(request.url.path)
        return opensky.handler(request)

    slow_client = httpx.AsyncClient(transport=httpx.MockTransport(slow_upstream))
    app = create_app(
        cache=LRUCache(10),
        auth_strategy=PublicAccess(),
        server_factory=lambda: make_server(slow_client),
        http_client=slow_client,
    )

    body = json.dumps(
        rpc("tools/call", {"name": "getAircraftByIcao", "arguments": {"icao24": "3c6444"}})
    ).encode()
    incoming = [{"type": "http.request", "body": body, "more_body": False}]
    sent = []

    async def receive():
        if incoming:
            return incoming.pop(0)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/mcp",
        "raw_path": b"/mcp",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"content-type", b"application/json")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }

    await app(scope, receive, send)

    assert sent[0]["type"] == "http.response.start"
    assert sent[0]["status"] == 499
    assert len(opensky.token_requests) == 1
    assert finished == []
