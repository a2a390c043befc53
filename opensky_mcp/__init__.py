"""OpenSky Flight Tracker MCP Server.

A stateless MCP server that exposes real-time aircraft positions from the
OpenSky Network to agents.

Architecture:
- Single ASGI application serving the JSON-RPC endpoint at /mcp
- TokenManager handles the OpenSky client-credentials token with refresh
- Server instances are cached per caller in a bounded LRU cache

Run with:
    uvicorn opensky_mcp.main:app --port 8002
"""
from .main import app, create_app, main
from .api_client import OpenSkyClient
from .auth import (
    AuthenticationError,
    JWKSTokenValidator,
    PublicAccess,
    RemoteTokenValidator,
    build_auth_strategy,
)
from .cache import LRUCache
from .ledger import InMemoryLedger, NullLedger, build_ledger
from .models import (
    AircraftRecord,
    BoundingBox,
    NearbySearchResult,
    OAuthToken,
    StateVector,
    UserContext,
)
from .protocol import ProtocolRouter
from .security import OutputFilter
from .server import FlightTrackerServer, build_server
from .token_manager import TokenManager, TokenRefreshError, TokenState, UpstreamError
from .tools import InvalidInputError, ToolRegistry, UnknownToolError, build_registry

__all__ = [
    # ASGI Application
    "app",
    "create_app",
    "main",
    # Token management
    "TokenManager",
    "TokenState",
    "TokenRefreshError",
    "UpstreamError",
    # API client
    "OpenSkyClient",
    # Server instances
    "FlightTrackerServer",
    "build_server",
    "LRUCache",
    "ProtocolRouter",
    # Tools
    "ToolRegistry",
    "build_registry",
    "InvalidInputError",
    "UnknownToolError",
    # Auth and quota
    "AuthenticationError",
    "PublicAccess",
    "RemoteTokenValidator",
    "JWKSTokenValidator",
    "build_auth_strategy",
    "NullLedger",
    "InMemoryLedger",
    "build_ledger",
    "OutputFilter",
    # Models
    "AircraftRecord",
    "BoundingBox",
    "NearbySearchResult",
    "OAuthToken",
    "StateVector",
    "UserContext",
]
