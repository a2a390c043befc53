"""OpenSky Flight Tracker MCP Server.

A stateless MCP server that exposes real-time flight data from the OpenSky
Network as tools:
- Aircraft lookup by ICAO24 transponder address
- Aircraft search around a geographic point
- Aircraft lookup by callsign

Architecture:
- Single ASGI application serving the JSON-RPC endpoint at /mcp
- Caller authentication is pluggable (public, remote userinfo, JWKS)
- Server instances are cached per caller in a bounded LRU cache
- Each instance owns one OpenSky token; all share one HTTP connection pool

Run with:
    uvicorn opensky_mcp.main:app --port 8002

Or:
    opensky-mcp --port 8002
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from .auth import AuthenticationError, AuthStrategy, build_auth_strategy, extract_bearer_token
from .cache import LRUCache
from .config import (
    DISCONNECT_POLL_SECONDS,
    LOG_LEVEL,
    SERVER_NAME,
    SERVER_VERSION,
    SSE_KEEPALIVE_SECONDS,
    UPSTREAM_TIMEOUT_SECONDS,
)
from .ledger import QuotaLedger, build_ledger
from .models import UserContext
from .protocol import ProtocolRouter
from .security import OutputFilter
from .server import (
    FlightTrackerServer,
    build_server,
    cache_key_for,
    create_server_cache,
    get_or_create_server,
)


# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,  # MCP servers should log to stderr, not stdout
)
logger = logging.getLogger(__name__)

WWW_AUTHENTICATE = 'Bearer realm="opensky", error="invalid_token"'

# Non-standard status logged when the caller hangs up mid-request
CLIENT_CLOSED_REQUEST = 499


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": message, "status": 401},
        headers={"WWW-Authenticate": WWW_AUTHENTICATE},
    )


async def authenticate(request: Request, auth_strategy: AuthStrategy) -> UserContext:
    """Resolve the caller for a request.

    Raises:
        AuthenticationError: If the strategy rejects the bearer token
    """
    token = extract_bearer_token(request.headers.get("authorization"))
    user = await auth_strategy.validate(token)
    if user is None:
        raise AuthenticationError(
            "Missing or invalid bearer token" if token is None else "Invalid or expired token"
        )
    return user


class ClientDisconnected(Exception):
    """The HTTP client went away before its response was ready."""


async def run_until_disconnected(
    request: Request,
    work: Awaitable[Any],
    poll_interval: float = DISCONNECT_POLL_SECONDS,
) -> Any:
    """Await ``work``, cancelling it as soon as the client disconnects.

    Raises:
        ClientDisconnected: If the client disconnected first
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


# ==============================================================================
# Application Factory
# ==============================================================================

def create_app(
    cache: Optional[LRUCache[str, FlightTrackerServer]] = None,
    auth_strategy: Optional[AuthStrategy] = None,
    ledger: Optional[QuotaLedger] = None,
    server_factory: Optional[Callable[[], FlightTrackerServer]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the ASGI application.

    Every collaborator can be injected; anything left out is built from
    configuration. A shared ``http_client`` created here is closed on
    shutdown, an injected one is left to its owner.
    """
    owns_http_client = http_client is None
    shared_client = http_client or httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)
    cache = cache if cache is not None else create_server_cache()
    auth_strategy = auth_strategy or build_auth_strategy(http_client=shared_client)
    ledger = ledger or build_ledger()
    output_filter = OutputFilter()
    router = ProtocolRouter()

    if server_factory is None:
        def server_factory() -> FlightTrackerServer:
            return build_server(
                http_client=shared_client,
                ledger=ledger,
                output_filter=output_filter,
            )

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        logger.info(f"[Server] Starting {SERVER_NAME} v{SERVER_VERSION}")
        yield
        logger.info("[Server] Shutting down...")
        cache.clear()
        if owns_http_client:
            await shared_client.aclose()

    app = FastAPI(
        title=SERVER_NAME,
        description=(
            "MCP endpoint for real-time aircraft tracking.\n\n"
            "- **MCP Endpoint**: `/mcp` - JSON-RPC 2.0 tool access via Model Context Protocol\n"
            "- **SSE**: `/sse` - Server-sent events keepalive stream"
        ),
        version=SERVER_VERSION,
        lifespan=app_lifespan,
    )

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.cache = cache
    app.state.router = router

    @app.get("/")
    async def index():
        """Service description."""
        return {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "endpoints": {"mcp": "/mcp", "sse": "/sse", "health": "/health"},
            "methods": router.methods,
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "opensky-mcp",
            "cached_servers": len(cache),
            "max_cached_servers": cache.max_size,
        }

    @app.post("/mcp")
    async def mcp_endpoint(request: Request):
        try:
            user = await authenticate(request, auth_strategy)
        except AuthenticationError as e:
            logger.warning(f"[Server] Rejected request: {e}")
            return _unauthorized(str(e))

        try:
            server = get_or_create_server(cache, cache_key_for(user), server_factory)
            body = await request.body()
            response = await run_until_disconnected(request, router.handle(body, server, user))
        except ClientDisconnected:
            logger.info(f"[Server] Client disconnected, request cancelled (user={user.user_id})")
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        except Exception as e:
            logger.error(f"[Server] Request failed: {e}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "message": str(e)},
            )

        if response is None:
            return Response(status_code=202)
        return JSONResponse(content=response)

    @app.get("/sse")
    async def sse(request: Request):
        try:
            await authenticate(request, auth_strategy)
        except AuthenticationError as e:
            return _unauthorized(str(e))

        async def event_stream():
            yield "event: endpoint\ndata: /mcp\n\n"
            while not await request.is_disconnected():
                await asyncio.sleep(SSE_KEEPALIVE_SECONDS)
                yield ": keepalive\n\n"
            logger.info("[Server] SSE client disconnected")

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    return app


app = create_app()


# ==============================================================================
# Entry Point
# ==============================================================================

def main():
    """Run the server with uvicorn."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="OpenSky Flight Tracker MCP Server")
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8002,
        help="Port to bind to (default: 8002)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    logger.info(f"[Server] Starting on {args.host}:{args.port}")
    logger.info(f"[Server] MCP Endpoint: http://{args.host}:{args.port}/mcp")
    logger.info(f"[Server] API Docs: http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "opensky_mcp.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
