"""Configuration for the OpenSky Flight Tracker MCP Server"""
import os
from pathlib import Path

# OpenSky Network OAuth2 (client credentials grant)
OPENSKY_CLIENT_ID = os.getenv("OPENSKY_CLIENT_ID", "")
OPENSKY_CLIENT_SECRET = os.getenv("OPENSKY_CLIENT_SECRET", "")
OPENSKY_TOKEN_URL = os.getenv(
    "OPENSKY_TOKEN_URL",
    "https://auth.opensky-network.org/auth/realms/opensky-network/protocol/openid-connect/token",
)

# OpenSky Network REST API
OPENSKY_API_BASE_URL = os.getenv("OPENSKY_API_BASE_URL", "https://opensky-network.org/api")

# Timeout for every upstream call (token fetch and data query)
UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10"))

# How often an in-flight /mcp request checks whether its client went away
DISCONNECT_POLL_SECONDS = float(os.getenv("DISCONNECT_POLL_SECONDS", "0.1"))

# OpenSky tokens live 30 minutes; refresh when less than 5 minutes remain
DEFAULT_TOKEN_LIFETIME_SECONDS = 1800
TOKEN_REFRESH_BUFFER_SECONDS = int(os.getenv("TOKEN_REFRESH_BUFFER_SECONDS", "300"))

# Logging
LOG_TOKEN_EVENTS = os.getenv("LOG_TOKEN_EVENTS", "true").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Mean Earth radius used by the bounding box approximation
EARTH_RADIUS_KM = 6371.0

# Server instance cache
MAX_CACHED_SERVERS = int(os.getenv("MAX_CACHED_SERVERS", "1000"))
PUBLIC_CACHE_KEY = "public_server"

# Caller authentication: "public", "remote" or "jwt"
AUTH_MODE = os.getenv("AUTH_MODE", "public").lower()
AUTH_SERVER_URL = os.getenv("AUTH_SERVER_URL", "https://panel.wtyczki.ai")
JWKS_URL = os.getenv("JWKS_URL", f"{AUTH_SERVER_URL}/jwks")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "opensky-mcp")

# Quota ledger: "none" (free public service) or "memory"
LEDGER_MODE = os.getenv("LEDGER_MODE", "none").lower()
LEDGER_INITIAL_BALANCE = int(os.getenv("LEDGER_INITIAL_BALANCE", "100"))

# Cost in credits for each tool, charged to authenticated callers only
TOOL_COSTS = {
    "getAircraftByIcao": 1,
    "findAircraftNearLocation": 3,
    "getAircraftByCallsign": 4,
}

# Output processing
OUTPUT_MAX_LENGTH = int(os.getenv("OUTPUT_MAX_LENGTH", "5000"))
REDACTION_PLACEHOLDER = "[REDACTED]"

# Server identity reported by initialize
SERVER_NAME = "OpenSky Flight Tracker"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"

# Static UI templates served through resources/read
STATIC_DIR = Path(os.getenv("STATIC_DIR", str(Path(__file__).parent / "static")))

# Seconds between SSE keepalive comments
SSE_KEEPALIVE_SECONDS = int(os.getenv("SSE_KEEPALIVE_SECONDS", "30"))
