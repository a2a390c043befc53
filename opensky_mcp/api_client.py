"""API Client for the OpenSky Network REST API.

This client automatically handles token management - before each request,
it asks the token manager for a valid bearer token (refreshing if needed)
and includes it in the Authorization header.

Single-aircraft lookup, callsign search and geographic search all go
through the same states/all query, parameterized differently.
"""
import logging
import re
from typing import Optional

import httpx

from .config import OPENSKY_API_BASE_URL, UPSTREAM_TIMEOUT_SECONDS
from .models import AircraftRecord, BoundingBox, StatesResponse
from .token_manager import TokenManager, UpstreamError
from .translator import bounding_box, parse_states, records_from_states, to_aircraft_record

logger = logging.getLogger(__name__)

_ICAO24_RE = re.compile(r"^[0-9a-f]{6}$")
_CALLSIGN_RE = re.compile(r"^[A-Z0-9]{1,8}$")


class OpenSkyClient:
    """Client for the OpenSky Network states API.

    This client:
    - Obtains bearer tokens through its TokenManager
    - Translates bounding boxes and state vectors
    - Provides one method per lookup style used by the tools
    """

    def __init__(
        self,
        token_manager: TokenManager,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = OPENSKY_API_BASE_URL,
    ):
        self.token_manager = token_manager
        self._base_url = base_url.rstrip("/")
        self._owns_http_client = http_client is None
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)
            self._owns_http_client = True
        return self._http_client

    async def close(self):
        """Close the HTTP clients this instance created."""
        if self._owns_http_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        await self.token_manager.close()

    async def get_states(
        self,
        icao24: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
        time: Optional[int] = None,
    ) -> StatesResponse:
        """Fetch aircraft state vectors.

        Args:
            icao24: Restrict to one transponder address
            bbox: Restrict to a geographic area
            time: Unix timestamp to query instead of "now"

        Returns:
            Raw states/all response

        Raises:
            TokenRefreshError: If no bearer token can be obtained
            UpstreamError: If the API request fails
        """
        access_token = await self.token_manager.get_access_token()

        params: dict = {}
        if icao24:
            params["icao24"] = icao24
        if bbox is not None:
            params.update(bbox.to_query_params())
        if time:
            params["time"] = time

        client = await self._get_http_client()
        url = f"{self._base_url}/states/all"
        logger.info(f"[APIClient] GET {url} params={params}")

        try:
            response = await client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"[APIClient] Request timed out: {e}")
            raise UpstreamError(f"OpenSky API request timed out: {e}")
        except httpx.RequestError as e:
            logger.error(f"[APIClient] Network error: {e}")
            raise UpstreamError(f"Network error: {e}")

        if response.status_code == 401:
            # Token revoked or rejected; the next call fetches a new one
            self.token_manager.invalidate()
            raise UpstreamError("OpenSky API returned 401 Unauthorized", status_code=401)
        if response.status_code >= 400:
            logger.error(f"[APIClient] Error: {response.status_code} {response.text}")
            raise UpstreamError(
                f"OpenSky API returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = StatesResponse.model_validate(response.json())
        except ValueError as e:
            raise UpstreamError(f"OpenSky API returned an unreadable body: {e}")

        logger.info(f"[APIClient] Received {len(data.states or [])} aircraft")
        return data

    # ==========================================================================
    # Lookup Methods
    # ==========================================================================

    async def find_aircraft_near_location(
        self,
        lat: float,
        lon: float,
        radius_km: float,
    ) -> list[AircraftRecord]:
        """Find aircraft inside the bounding box around a point.

        Args:
            lat: Center latitude (-90 to 90)
            lon: Center longitude (-180 to 180)
            radius_km: Search radius in kilometers (1 to 1000)

        Returns:
            Aircraft currently reported in the area
        """
        if lat < -90 or lat > 90:
            raise ValueError(f"Invalid latitude: {lat} (must be -90 to 90)")
        if lon < -180 or lon > 180:
            raise ValueError(f"Invalid longitude: {lon} (must be -180 to 180)")
        if radius_km < 1 or radius_km > 1000:
            raise ValueError(f"Invalid radius: {radius_km} (must be 1-1000 km)")

        bbox = bounding_box(lat, lon, radius_km)
        logger.info(f"[APIClient] Searching near ({lat}, {lon}) r={radius_km}km -> {bbox}")

        response = await self.get_states(bbox=bbox)
        return records_from_states(response.states)

    async def get_aircraft_by_icao(self, icao24: str) -> Optional[AircraftRecord]:
        """Look up one aircraft by ICAO24 transponder address.

        Returns:
            The aircraft, or None when it is not currently reported
        """
        icao24 = icao24.strip().lower()
        if not _ICAO24_RE.match(icao24):
            raise ValueError(f"Invalid ICAO24 format: {icao24} (must be 6 hex characters)")

        response = await self.get_states(icao24=icao24)
        records = records_from_states(response.states)
        return records[0] if records else None

    async def get_aircraft_by_callsign(self, callsign: str) -> Optional[AircraftRecord]:
        """Look up one aircraft by callsign.

        The API cannot filter by callsign, so this scans all states and
        matches locally. It is the most expensive lookup.
        """
        callsign = callsign.strip().upper()
        if not _CALLSIGN_RE.match(callsign):
            raise ValueError(
                f"Invalid callsign format: {callsign} (must be 1-8 alphanumeric characters)"
            )

        logger.info(f"[APIClient] Searching for callsign {callsign} (global scan)")
        response = await self.get_states()
        for vector in parse_states(response.states):
            if vector.callsign == callsign:
                return to_aircraft_record(vector)
        return None
