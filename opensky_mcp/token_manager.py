"""OAuth2 Token Manager for the OpenSky Network API.

This module handles:
- Fetching bearer tokens with the client credentials grant
- Checking token validity (with a safety buffer) before each API call
- Transparently refreshing tokens that are missing or about to expire
- Reporting the lifecycle state for debugging
"""
import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

import httpx

from .config import (
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    LOG_TOKEN_EVENTS,
    OPENSKY_CLIENT_ID,
    OPENSKY_CLIENT_SECRET,
    OPENSKY_TOKEN_URL,
    TOKEN_REFRESH_BUFFER_SECONDS,
    UPSTREAM_TIMEOUT_SECONDS,
)
from .models import OAuthToken, utc_now

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when a call to the upstream authority or data API fails."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TokenRefreshError(UpstreamError):
    """Raised when a bearer token cannot be obtained."""
    pass


class TokenState(str, Enum):
    """Lifecycle state of the managed token."""
    NO_TOKEN = "no_token"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    REFRESHING = "refreshing"


class TokenManager:
    """Manages the OpenSky OAuth2 token for one client.

    The token itself is an immutable ``OAuthToken`` value; a refresh builds a
    new value and swaps it in with a single assignment. Concurrent callers
    that find the token expiring wait on one refresh instead of each issuing
    their own.
    """

    def __init__(
        self,
        client_id: str = OPENSKY_CLIENT_ID,
        client_secret: str = OPENSKY_CLIENT_SECRET,
        token_url: str = OPENSKY_TOKEN_URL,
        buffer_seconds: float = TOKEN_REFRESH_BUFFER_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._buffer_seconds = buffer_seconds
        self._clock = clock
        self._token: Optional[OAuthToken] = None
        self._refresh_lock = asyncio.Lock()
        self._refreshing = False
        self._owns_http_client = http_client is None
        self._http_client = http_client
        self.refresh_count = 0

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)
            self._owns_http_client = True
        return self._http_client

    async def close(self):
        """Close the HTTP client if this manager created it."""
        if self._owns_http_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    @property
    def token(self) -> Optional[OAuthToken]:
        return self._token

    @property
    def state(self) -> TokenState:
        if self._refreshing:
            return TokenState.REFRESHING
        if self._token is None:
            return TokenState.NO_TOKEN
        if self._token.needs_refresh(self._clock(), self._buffer_seconds):
            return TokenState.EXPIRING_SOON
        return TokenState.VALID

    def invalidate(self) -> None:
        """Drop the cached token so the next call fetches a new one."""
        if self._token is not None and LOG_TOKEN_EVENTS:
            logger.info("[TokenManager] Cached token invalidated")
        self._token = None

    # ==========================================================================
    # Token Validation and Refresh
    # ==========================================================================

    async def get_access_token(self) -> str:
        """Get a bearer token that stays valid for the upcoming call.

        Returns:
            The current access token, refreshed first if it expires within
            the safety buffer

        Raises:
            TokenRefreshError: If a new token is needed and cannot be fetched
        """
        token = self._token
        if token is not None and not token.needs_refresh(self._clock(), self._buffer_seconds):
            if LOG_TOKEN_EVENTS:
                logger.debug(
                    f"[TokenManager] Using cached token "
                    f"({token.seconds_remaining(self._clock()):.0f}s remaining)"
                )
            return token.access_token

        async with self._refresh_lock:
            # Another task may have refreshed while this one waited
            token = self._token
            if token is not None and not token.needs_refresh(self._clock(), self._buffer_seconds):
                return token.access_token

            self._refreshing = True
            try:
                self._token = await self._fetch_token()
            finally:
                self._refreshing = False
            return self._token.access_token

    async def _fetch_token(self) -> OAuthToken:
        """Request a new token using the client credentials grant.

        Returns:
            The new token; the caller stores it

        Raises:
            TokenRefreshError: If the request fails or the response is unusable
        """
        if not self._client_id or not self._client_secret:
            raise TokenRefreshError("OpenSky OAuth2 credentials are not configured")

        if LOG_TOKEN_EVENTS:
            reason = "missing" if self._token is None else "expiring"
            logger.info(f"[TokenManager] Fetching new OAuth2 token (previous token {reason})")

        client = await self._get_http_client()
        now = self._clock()

        try:
            response = await client.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"[TokenManager] Token request timed out: {e}")
            raise TokenRefreshError(f"OpenSky OAuth2 token fetch timed out: {e}")
        except httpx.RequestError as e:
            logger.error(f"[TokenManager] Network error during token fetch: {e}")
            raise TokenRefreshError(f"OpenSky OAuth2 token fetch failed due to network error: {e}")

        if response.status_code != 200:
            logger.error(
                f"[TokenManager] Token fetch failed: {response.status_code} - {response.text}"
            )
            raise TokenRefreshError(
                f"OpenSky OAuth2 token fetch failed: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            token_data = response.json()
            access_token = token_data["access_token"]
            expires_in = int(token_data.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        except (ValueError, KeyError, TypeError) as e:
            raise TokenRefreshError(f"OpenSky OAuth2 token response is malformed: {e}")

        if expires_in <= 0:
            raise TokenRefreshError(
                f"OpenSky OAuth2 token response has no usable lifetime (expires_in={expires_in})"
            )
        if expires_in <= self._buffer_seconds:
            logger.warning(
                f"[TokenManager] Token lifetime {expires_in}s is shorter than the "
                f"{self._buffer_seconds}s refresh buffer"
            )

        self.refresh_count += 1
        if LOG_TOKEN_EVENTS:
            logger.info(
                f"[TokenManager] New token fetched (refresh #{self.refresh_count}), "
                f"expires in {expires_in}s"
            )

        return OAuthToken(
            access_token=access_token,
            expires_at=now + timedelta(seconds=expires_in),
        )

    def get_token_stats(self) -> dict:
        """Get statistics about the managed token for debugging."""
        now = self._clock()
        return {
            "state": self.state.value,
            "expires_in_seconds": (
                max(0.0, self._token.seconds_remaining(now)) if self._token else None
            ),
            "refresh_count": self.refresh_count,
        }
