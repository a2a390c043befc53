import httpx
import pytest

from conftest import state_row
from opensky_mcp.api_client import OpenSkyClient
from opensky_mcp.token_manager import TokenManager, UpstreamError


async def test_get_aircraft_by_icao(api_client, opensky):
    opensky.states = [state_row()]

    aircraft = await api_client.get_aircraft_by_icao("3C6444")

    request = opensky.state_requests[0]
    assert request.url.params["icao24"] == "3c6444"
    assert request.headers["Authorization"] == "Bearer token-1"
    assert aircraft.icao24 == "3c6444"
    assert aircraft.callsign == "DLH9LF"
    assert aircraft.origin_country == "Germany"


async def test_get_aircraft_by_icao_not_flying(api_client, opensky):
    opensky.states = None

    assert await api_client.get_aircraft_by_icao("3c6444") is None


async def test_get_aircraft_by_icao_rejects_bad_format(api_client, opensky):
    with pytest.raises(ValueError):
        await api_client.get_aircraft_by_icao("zzzzzz")

    assert opensky.state_requests == []
    assert opensky.token_requests == []


async def test_find_aircraft_near_location_sends_bounding_box(api_client, opensky):
    opensky.states = [state_row(), state_row(icao24="48ae21", callsign="LOT3", origin_country="Poland")]

    aircraft = await api_client.find_aircraft_near_location(52.2297, 21.0122, 25)

    params = opensky.state_requests[0].url.params
    assert float(params["lamin"]) < 52.2297 < float(params["lamax"])
    assert float(params["lomin"]) < 21.0122 < float(params["lomax"])
    assert [a.icao24 for a in aircraft] == ["3c6444", "48ae21"]


@pytest.mark.parametrize("lat,lon,radius", [(91, 0, 10), (0, -181, 10), (0, 0, 0.5), (0, 0, 1001)])
async def test_find_aircraft_near_location_rejects_out_of_range(api_client, opensky, lat, lon, radius):
    with pytest.raises(ValueError):
        await api_client.find_aircraft_near_location(lat, lon, radius)

    assert opensky.state_requests == []


async def test_get_aircraft_by_callsign_scans_all_states(api_client, opensky):
    opensky.states = [
        state_row(icao24="aaaaaa", callsign="RYR1   "),
        state_row(icao24="bbbbbb", callsign="LOT456  "),
    ]

    aircraft = await api_client.get_aircraft_by_callsign("lot456")

    assert aircraft.icao24 == "bbbbbb"
    assert "icao24" not in opensky.state_requests[0].url.params


async def test_get_aircraft_by_callsign_no_match(api_client, opensky):
    opensky.states = [state_row(callsign="RYR1   ")]

    assert await api_client.get_aircraft_by_callsign("LOT456") is None


async def test_unauthorized_drops_cached_token(api_client, opensky, token_manager):
    opensky.states_status = 401

    with pytest.raises(UpstreamError) as exc_info:
        await api_client.get_states()

    assert exc_info.value.status_code == 401
    assert token_manager.token is None

    opensky.states_status = 200
    await api_client.get_states()
    assert opensky.state_requests[-1].headers["Authorization"] == "Bearer token-2"


async def test_server_error_raises(api_client, opensky):
    opensky.states_status = 503

    with pytest.raises(UpstreamError) as exc_info:
        await api_client.get_states()

    assert exc_info.value.status_code == 503


async def test_timeout_raises_upstream_error():
    def handler(request):
        if request.url.path.endswith("/token"):
            return httpx.Response(200, json={"access_token": "abc", "expires_in": 1800})
        raise httpx.ReadTimeout("too slow", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    api = OpenSkyClient(TokenManager("id", "secret", http_client=client), http_client=client)

    with pytest.raises(UpstreamError):
        await api.get_states()


async def test_unreadable_body_raises():
    def handler(request):
        if request.url.path.endswith("/token"):
            return httpx.Response(200, json={"access_token": "abc", "expires_in": 1800})
        return httpx.Response(200, text="<html>maintenance</html>")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    api = OpenSkyClient(TokenManager("id", "secret", http_client=client), http_client=client)

    with pytest.raises(UpstreamError):
        await api.get_states()
