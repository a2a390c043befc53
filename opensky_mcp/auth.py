"""Caller authentication strategies for the MCP endpoint.

One request pipeline serves every deployment mode; the mode only decides
which strategy validates the bearer token:

- ``PublicAccess``: free public service, every caller is anonymous
- ``RemoteTokenValidator``: asks the central auth server's userinfo endpoint
- ``JWKSTokenValidator``: verifies RS256 JWTs against a JWKS document
"""
import logging
from typing import Optional, Protocol

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm

from .config import (
    AUTH_MODE,
    AUTH_SERVER_URL,
    JWKS_URL,
    JWT_AUDIENCE,
    UPSTREAM_TIMEOUT_SECONDS,
)
from .models import ANONYMOUS_USER, UserContext

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when a caller cannot be authenticated."""
    pass


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


class AuthStrategy(Protocol):
    async def validate(self, token: Optional[str]) -> Optional[UserContext]:
        """Return the caller, or None when the token is not accepted."""
        ...


class PublicAccess:
    """No authentication: every request runs as the anonymous user."""

    async def validate(self, token: Optional[str]) -> Optional[UserContext]:
        return ANONYMOUS_USER


class RemoteTokenValidator:
    """Validates OAuth bearer tokens and API keys against /oauth/userinfo."""

    def __init__(
        self,
        auth_server_url: str = AUTH_SERVER_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._userinfo_url = f"{auth_server_url.rstrip('/')}/oauth/userinfo"
        self._http_client = http_client

    async def validate(self, token: Optional[str]) -> Optional[UserContext]:
        if not token:
            return None

        client = self._http_client or httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)
        try:
            response = await client.get(
                self._userinfo_url,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as e:
            logger.error(f"[Auth] Remote validation error: {e}")
            return None
        finally:
            if self._http_client is None:
                await client.aclose()

        if response.status_code != 200:
            logger.warning(f"[Auth] Remote validation failed: {response.status_code}")
            return None

        try:
            info = response.json()
            user = UserContext(user_id=info["sub"], email=info.get("email"))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"[Auth] Malformed userinfo response: {e}")
            return None

        logger.info(f"[Auth] Token validated for user {user.user_id} (key prefix {token[:8]})")
        return user


class JWKSTokenValidator:
    """Verifies RS256 JWTs against keys published at a JWKS URL."""

    def __init__(
        self,
        jwks_url: str = JWKS_URL,
        audience: str = JWT_AUDIENCE,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._jwks_url = jwks_url
        self._audience = audience
        self._http_client = http_client
        self._jwks: Optional[dict] = None

    async def get_jwks(self) -> dict:
        """Fetch JWKS from the auth server (cached)"""
        if self._jwks is None:
            client = self._http_client or httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)
            try:
                response = await client.get(self._jwks_url)
                response.raise_for_status()
                self._jwks = response.json()
            finally:
                if self._http_client is None:
                    await client.aclose()
        return self._jwks

    @staticmethod
    def get_public_key_from_jwks(jwks: dict, kid: str):
        """Extract public key from JWKS"""
        for key in jwks.get("keys", []):
            if key.get("kid") == kid:
                return RSAAlgorithm.from_jwk(key)
        return None

    async def validate(self, token: Optional[str]) -> Optional[UserContext]:
        if not token:
            return None

        try:
            kid = jwt.get_unverified_header(token).get("kid")
            if not kid:
                logger.warning("[Auth] Missing kid in token header")
                return None

            public_key = self.get_public_key_from_jwks(await self.get_jwks(), kid)
            if public_key is None:
                logger.warning(f"[Auth] Public key not found for kid {kid}")
                return None

            payload = jwt.decode(
                token,
                public_key,
                algorithms=["RS256"],
                audience=self._audience,
                options={"verify_exp": True},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("[Auth] Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[Auth] Invalid token: {e}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"[Auth] Could not fetch JWKS: {e}")
            return None

        if "sub" not in payload:
            logger.warning("[Auth] Token has no sub claim")
            return None
        return UserContext(user_id=payload["sub"], email=payload.get("email"))


def build_auth_strategy(
    mode: str = AUTH_MODE,
    http_client: Optional[httpx.AsyncClient] = None,
) -> AuthStrategy:
    """Create the strategy for a configured auth mode.

    Validators that call out use ``http_client`` when one is given.
    """
    if mode == "public":
        return PublicAccess()
    if mode == "remote":
        return RemoteTokenValidator(http_client=http_client)
    if mode == "jwt":
        return JWKSTokenValidator(http_client=http_client)
    raise ValueError(f"Unknown AUTH_MODE: {mode!r} (expected 'public', 'remote' or 'jwt')")
