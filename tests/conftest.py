"""Shared fixtures: a fake OpenSky upstream served through httpx.MockTransport."""
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from opensky_mcp.api_client import OpenSkyClient
from opensky_mcp.ledger import InMemoryLedger
from opensky_mcp.server import FlightTrackerServer
from opensky_mcp.token_manager import TokenManager

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def state_row(
    icao24="3c6444",
    callsign="DLH9LF  ",
    origin_country="Germany",
    longitude=21.0122,
    latitude=52.2297,
    baro_altitude=10972.8,
    on_ground=False,
    velocity=231.5,
    true_track=87.3,
    vertical_rate=0.0,
    geo_altitude=11201.4,
    squawk="1000",
    with_category=True,
):
    """A states/all row in upstream positional order."""
    row = [
        icao24,
        callsign,
        origin_country,
        1736942390,
        1736942395,
        longitude,
        latitude,
        baro_altitude,
        on_ground,
        velocity,
        true_track,
        vertical_rate,
        None,
        geo_altitude,
        squawk,
        False,
        0,
    ]
    if with_category:
        row.append(1)
    return row


class FakeOpenSky:
    """Records upstream calls and serves canned token and state responses."""

    def __init__(self):
        self.states = []
        self.expires_in = 1800
        self.token_status = 200
        self.states_status = 200
        self.token_requests = []
        self.state_requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/token"):
            self.token_requests.append(request)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{len(self.token_requests)}",
                    "expires_in": self.expires_in,
                    "token_type": "Bearer",
                },
            )

        if request.url.path.endswith("/states/all"):
            self.state_requests.append(request)
            if self.states_status != 200:
                return httpx.Response(self.states_status, text="upstream unavailable")
            return httpx.Response(200, json={"time": 1736942400, "states": self.states})

        return httpx.Response(404)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def opensky():
    return FakeOpenSky()


@pytest.fixture
def http_client(opensky):
    return httpx.AsyncClient(transport=httpx.MockTransport(opensky.handler))


@pytest.fixture
def token_manager(http_client, clock):
    return TokenManager(
        client_id="test-client",
        client_secret="test-secret",
        http_client=http_client,
        clock=clock,
    )


@pytest.fixture
def api_client(token_manager, http_client):
    return OpenSkyClient(token_manager, http_client=http_client)


@pytest.fixture
def ledger():
    return InMemoryLedger(initial_balance=10)


def make_server(http_client, ledger=None) -> FlightTrackerServer:
    token_manager = TokenManager(
        client_id="test-client",
        client_secret="test-secret",
        http_client=http_client,
    )
    return FlightTrackerServer(
        OpenSkyClient(token_manager, http_client=http_client),
        ledger=ledger,
    )


@pytest.fixture
def server(http_client, ledger):
    return make_server(http_client, ledger)
