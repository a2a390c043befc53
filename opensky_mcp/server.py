"""Flight tracker server instances and their cache.

A ``FlightTrackerServer`` bundles the tool registry, the OpenSky client (and
with it one upstream token), the resource host and the prompt catalogue.
Building one is comparatively expensive, so instances are kept in an
``LRUCache`` keyed by caller: one shared key for the public service, one key
per user when callers authenticate.

Instances carry no business data and can be rebuilt at any time. Two
concurrent misses for the same key may each build an instance; the last
``set`` wins and the other is dropped, costing one extra construction.
"""
import logging
from typing import Any, Callable, Optional

import httpx
from mcp.types import CallToolResult

from .api_client import OpenSkyClient
from .cache import LRUCache
from .completions import complete_argument
from .config import (
    MAX_CACHED_SERVERS,
    PROTOCOL_VERSION,
    PUBLIC_CACHE_KEY,
    SERVER_NAME,
    SERVER_VERSION,
)
from .descriptions import PROMPTS, SERVER_INSTRUCTIONS, render_prompt
from .ledger import NullLedger, QuotaLedger
from .models import UserContext
from .resources import ResourceHost, StaticResourceHost, list_resources, read_resource
from .security import OutputFilter
from .token_manager import TokenManager
from .tools import ToolContext, ToolRegistry, build_registry

logger = logging.getLogger(__name__)


class InvalidPromptError(Exception):
    """Raised when prompts/get names an unknown prompt or lacks arguments."""
    pass


class FlightTrackerServer:
    """One constructed tool server."""

    def __init__(
        self,
        api_client: OpenSkyClient,
        ledger: Optional[QuotaLedger] = None,
        output_filter: Optional[OutputFilter] = None,
        resource_host: Optional[ResourceHost] = None,
        tool_costs: Optional[dict[str, int]] = None,
    ):
        self.api_client = api_client
        self.resource_host = resource_host or StaticResourceHost()
        self.registry: ToolRegistry = build_registry(
            api_client,
            ledger=ledger or NullLedger(),
            output_filter=output_filter,
            costs=tool_costs,
        )

    # ==========================================================================
    # Protocol Operations
    # ==========================================================================

    def initialize_result(self) -> dict:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "tools": {},
                "resources": {},
                "prompts": {},
                "completions": {},
            },
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "instructions": SERVER_INSTRUCTIONS,
        }

    def list_tools(self) -> list[dict]:
        return [
            t.model_dump(by_alias=True, exclude_none=True, mode="json")
            for t in self.registry.list_tools()
        ]

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        user: UserContext,
    ) -> CallToolResult:
        return await self.registry.dispatch(name, arguments, ToolContext(user=user))

    def list_resources(self) -> list[dict]:
        return list_resources()

    def read_resource(self, uri: str) -> dict:
        return read_resource(uri, self.resource_host)

    def list_prompts(self) -> list[dict]:
        return [{"name": name, **prompt} for name, prompt in PROMPTS.items()]

    def get_prompt(self, name: str, arguments: dict[str, Any]) -> dict:
        prompt = PROMPTS.get(name)
        if prompt is None:
            raise InvalidPromptError(f"Unknown prompt: {name}")

        missing = [
            a["name"] for a in prompt["arguments"]
            if a["required"] and arguments.get(a["name"]) in (None, "")
        ]
        if missing:
            raise InvalidPromptError(f"Missing required arguments for {name}: {missing}")

        return {
            "description": prompt["description"],
            "messages": [
                {
                    "role": "user",
                    "content": {"type": "text", "text": render_prompt(name, arguments)},
                }
            ],
        }

    def complete(self, argument_name: str, value: str) -> dict:
        return {"completion": complete_argument(argument_name, value)}

    async def close(self):
        await self.api_client.close()


def build_server(
    http_client: Optional[httpx.AsyncClient] = None,
    ledger: Optional[QuotaLedger] = None,
    output_filter: Optional[OutputFilter] = None,
    resource_host: Optional[ResourceHost] = None,
) -> FlightTrackerServer:
    """Construct a server with its own token state.

    ``http_client`` may be shared between servers; the token is not.
    """
    token_manager = TokenManager(http_client=http_client)
    api_client = OpenSkyClient(token_manager, http_client=http_client)
    return FlightTrackerServer(
        api_client,
        ledger=ledger,
        output_filter=output_filter,
        resource_host=resource_host,
    )


def cache_key_for(user: UserContext) -> str:
    """Public callers share one instance; authenticated users get their own."""
    if user.is_anonymous:
        return PUBLIC_CACHE_KEY
    return f"user:{user.user_id}"


def create_server_cache(max_size: int = MAX_CACHED_SERVERS) -> LRUCache[str, FlightTrackerServer]:
    return LRUCache(max_size)


def get_or_create_server(
    cache: LRUCache[str, FlightTrackerServer],
    key: str,
    factory: Callable[[], FlightTrackerServer],
) -> FlightTrackerServer:
    """Return the cached server for ``key``, building and caching it on a miss."""
    server = cache.get(key)
    if server is not None:
        logger.debug(f"[Server] Cache hit: {key}")
        return server

    logger.info(f"[Server] Cache miss: {key}, constructing server")
    server = factory()
    cache.set(key, server)
    return server
