"""MCP Tools for the OpenSky Flight Tracker.

This module defines the tools that agents can call and the registry that
dispatches them. Each call:
- Validates inputs using Pydantic models (before any network call)
- Checks the caller's balance when the tool has a cost
- Calls the OpenSky client and formats the response
- Sanitizes and redacts the text returned to the client
- Reports consumption to the quota ledger
"""
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from mcp.types import CallToolResult, TextContent, Tool
from pydantic import BaseModel, ValidationError

from .api_client import OpenSkyClient
from .completions import ISO_COUNTRY_NAMES
from .config import TOOL_COSTS
from .descriptions import TOOL_METADATA, get_tool_description
from .ledger import NullLedger, QuotaLedger
from .models import (
    ANONYMOUS_USER,
    FindAircraftNearLocationInput,
    GetAircraftByCallsignInput,
    GetAircraftByIcaoInput,
    NearbySearchResult,
    SearchCenter,
    UserContext,
)
from .resources import UI_RESOURCES
from .security import OutputFilter

logger = logging.getLogger(__name__)


class InvalidInputError(Exception):
    """Raised when tool arguments fail validation."""
    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class UnknownToolError(Exception):
    """Raised when a tool name is not registered."""
    pass


@dataclass
class ToolContext:
    """Per-call information handed to the dispatcher."""
    user: UserContext = ANONYMOUS_USER
    action_id: str = field(default_factory=lambda: str(uuid.uuid4()))


ToolExecutor = Callable[[Any, OpenSkyClient], Awaitable[CallToolResult]]


@dataclass
class ToolDefinition:
    name: str
    input_model: type[BaseModel]
    executor: ToolExecutor
    cost: int = 0
    output_model: Optional[type[BaseModel]] = None
    meta: Optional[dict] = None

    @property
    def title(self) -> str:
        return TOOL_METADATA[self.name]["title"]

    def to_tool(self) -> Tool:
        """Describe the tool for tools/list."""
        data: dict[str, Any] = {
            "name": self.name,
            "title": self.title,
            "description": get_tool_description(self.name),
            "inputSchema": self.input_model.model_json_schema(),
        }
        if self.output_model is not None:
            data["outputSchema"] = self.output_model.model_json_schema()
        if self.meta:
            data["_meta"] = self.meta
        return Tool.model_validate(data)


# ==============================================================================
# Response Formatting Helpers
# ==============================================================================

def text_result(
    text: str,
    structured: Optional[dict] = None,
    is_error: bool = False,
) -> CallToolResult:
    return CallToolResult(
        content=[TextContent(type="text", text=text)],
        structuredContent=structured,
        isError=is_error,
    )


def result_is_error(result: CallToolResult) -> bool:
    """Read the error flag through the wire alias."""
    return bool(result.model_dump(by_alias=True).get("isError"))


def format_validation_errors(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


# ==============================================================================
# Tool Functions
# ==============================================================================

async def get_aircraft_by_icao_tool(
    params: GetAircraftByIcaoInput,
    client: OpenSkyClient,
) -> CallToolResult:
    """Look up a single aircraft by ICAO24 address.

    An aircraft that is not currently airborne is reported as "not found"
    in a normal result, not as an error.
    """
    aircraft = await client.get_aircraft_by_icao(params.icao24)

    if aircraft is None:
        return text_result(
            f"No aircraft found with ICAO24: {params.icao24} "
            f"(aircraft may not be currently flying)"
        )

    record = aircraft.model_dump()
    return text_result(json.dumps(record, indent=2), structured=record)


async def find_aircraft_near_location_tool(
    params: FindAircraftNearLocationInput,
    client: OpenSkyClient,
) -> CallToolResult:
    """Find aircraft within a radius of a point, optionally by origin country."""
    aircraft = await client.find_aircraft_near_location(
        params.latitude,
        params.longitude,
        params.radius_km,
    )

    if params.filter_only_country:
        country = ISO_COUNTRY_NAMES[params.filter_only_country]
        aircraft = [a for a in aircraft if a.origin_country == country]

    result = NearbySearchResult(
        search_center=SearchCenter(latitude=params.latitude, longitude=params.longitude),
        radius_km=params.radius_km,
        origin_country_filter=params.filter_only_country,
        aircraft_count=len(aircraft),
        aircraft=aircraft,
    )
    structured = result.model_dump()

    if not aircraft:
        text = (
            f"No aircraft currently flying within {params.radius_km}km of "
            f"({params.latitude}, {params.longitude})"
        )
        if params.filter_only_country:
            text += f" from {ISO_COUNTRY_NAMES[params.filter_only_country]}"
        return text_result(text, structured=structured)

    return text_result(json.dumps(structured, indent=2), structured=structured)


async def get_aircraft_by_callsign_tool(
    params: GetAircraftByCallsignInput,
    client: OpenSkyClient,
) -> CallToolResult:
    aircraft = await client.get_aircraft_by_callsign(params.callsign)

    if aircraft is None:
        return text_result(
            f"No aircraft found with callsign: {params.callsign} "
            f"(aircraft may not be currently flying)"
        )

    record = aircraft.model_dump()
    return text_result(json.dumps(record, indent=2), structured=record)


# ==============================================================================
# Registry and Dispatch
# ==============================================================================

class ToolRegistry:
    """Maps tool names to definitions and runs them."""

    def __init__(
        self,
        client: OpenSkyClient,
        ledger: Optional[QuotaLedger] = None,
        output_filter: Optional[OutputFilter] = None,
    ):
        self.client = client
        self.ledger = ledger or NullLedger()
        self.output_filter = output_filter or OutputFilter()
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, definition: ToolDefinition) -> None:
        self._tools[definition.name] = definition

    def get(self, name: str) -> ToolDefinition:
        definition = self._tools.get(name)
        if definition is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return definition

    def list_tools(self) -> list[Tool]:
        return [d.to_tool() for d in self._tools.values()]

    def validate(self, name: str, arguments: dict[str, Any]) -> BaseModel:
        """Parse arguments into the tool's input model.

        Raises:
            UnknownToolError: If the tool is not registered
            InvalidInputError: If the arguments break the input contract
        """
        definition = self.get(name)
        try:
            return definition.input_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid arguments for {name}: {format_validation_errors(e)}",
                errors=e.errors(include_url=False, include_context=False),
            )

    async def dispatch(
        self,
        name: str,
        arguments: dict[str, Any],
        context: Optional[ToolContext] = None,
    ) -> CallToolResult:
        """Validate, charge and execute one tool call.

        Raises:
            UnknownToolError: If the tool is not registered
            InvalidInputError: If the arguments are invalid
            UpstreamError: If the OpenSky call fails
        """
        context = context or ToolContext()
        definition = self.get(name)
        params = self.validate(name, arguments)
        charged = definition.cost > 0 and not context.user.is_anonymous

        logger.info(
            f"[Tools] {name} started (user={context.user.user_id}, action={context.action_id})"
        )
        start = time.monotonic()

        if charged:
            balance = await self.ledger.check_balance(context.user.user_id, definition.cost)
            if balance.user_deleted:
                logger.warning(f"[Tools] {name} refused: account {context.user.user_id} deleted")
                return text_result(
                    "This account has been deleted. Tool calls are no longer available.",
                    is_error=True,
                )
            if not balance.sufficient:
                logger.info(
                    f"[Tools] {name} refused: balance {balance.current_balance} < cost {definition.cost}"
                )
                return text_result(
                    f"Insufficient balance: {name} costs {definition.cost} credits and your "
                    f"current balance is {balance.current_balance}. Top up your credits to continue.",
                    is_error=True,
                )

        try:
            result = await definition.executor(params, self.client)
        except Exception as e:
            logger.error(f"[Tools] {name} failed (action={context.action_id}): {e}")
            raise

        result = self._filter_output(name, result)

        is_error = result_is_error(result)

        if charged and not is_error:
            text = "\n".join(c.text for c in result.content if isinstance(c, TextContent))
            recorded = await self.ledger.consume(
                context.user.user_id,
                definition.cost,
                name,
                params.model_dump(),
                text,
                context.action_id,
            )
            if not recorded:
                logger.warning(f"[Tools] Ledger did not record action {context.action_id}")

        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"[Tools] {name} completed in {duration_ms:.0f}ms "
            f"(action={context.action_id}, cost={definition.cost if charged else 0})"
        )
        return result

    def _filter_output(self, name: str, result: CallToolResult) -> CallToolResult:
        content = []
        for block in result.content:
            if isinstance(block, TextContent):
                redaction = self.output_filter.redact(self.output_filter.sanitize(block.text))
                if redaction.detected_kinds:
                    logger.warning(
                        f"[Tools] PII redacted from {name} output: {redaction.detected_kinds}"
                    )
                block = TextContent(type="text", text=redaction.text)
            content.append(block)
        return result.model_copy(update={"content": content})


def build_registry(
    client: OpenSkyClient,
    ledger: Optional[QuotaLedger] = None,
    output_filter: Optional[OutputFilter] = None,
    costs: Optional[dict[str, int]] = None,
) -> ToolRegistry:
    """Create a registry with every flight tracker tool registered."""
    costs = TOOL_COSTS if costs is None else costs
    registry = ToolRegistry(client, ledger=ledger, output_filter=output_filter)

    registry.register(ToolDefinition(
        name="getAircraftByIcao",
        input_model=GetAircraftByIcaoInput,
        executor=get_aircraft_by_icao_tool,
        cost=costs.get("getAircraftByIcao", 0),
    ))
    registry.register(ToolDefinition(
        name="findAircraftNearLocation",
        input_model=FindAircraftNearLocationInput,
        executor=find_aircraft_near_location_tool,
        cost=costs.get("findAircraftNearLocation", 0),
        output_model=NearbySearchResult,
        meta={"ui": {"resourceUri": UI_RESOURCES["flightMap"]["uri"]}},
    ))
    registry.register(ToolDefinition(
        name="getAircraftByCallsign",
        input_model=GetAircraftByCallsignInput,
        executor=get_aircraft_by_callsign_tool,
        cost=costs.get("getAircraftByCallsign", 0),
    ))
    return registry
