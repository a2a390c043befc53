"""JSON-RPC 2.0 routing for the MCP endpoint.

``ProtocolRouter.handle`` takes one raw message and always returns a
response envelope (or None for notifications). No exception escapes it:
malformed envelopes, unknown methods, bad params and handler failures are
all converted into JSON-RPC errors here.
"""
import json
import logging
import math
from typing import Any, Awaitable, Callable, Optional, Union

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    CallToolResult,
)

from .models import UserContext
from .resources import ResourceNotFoundError
from .server import FlightTrackerServer, InvalidPromptError
from .tools import InvalidInputError, UnknownToolError

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int, float, None]


# ==============================================================================
# Errors
# ==============================================================================

class JSONRPCError(Exception):
    """An error that maps directly onto a JSON-RPC error object."""
    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Any = None):
        super().__init__(message)
        self.data = data


class ParseError(JSONRPCError):
    code = PARSE_ERROR


class InvalidRequestError(JSONRPCError):
    code = INVALID_REQUEST


class MethodNotFoundError(JSONRPCError):
    code = METHOD_NOT_FOUND


class InvalidParamsError(JSONRPCError):
    code = INVALID_PARAMS


class InternalError(JSONRPCError):
    code = INTERNAL_ERROR


# ==============================================================================
# Envelope Formatting
# ==============================================================================

def to_envelope(
    request_id: RequestId,
    result: Any = None,
    error: Optional[dict] = None,
) -> dict:
    """Build a response envelope carrying exactly one of result or error."""
    if result is not None and error is not None:
        raise ValueError("A JSON-RPC response cannot carry both result and error")

    envelope: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request_id}
    if error is not None:
        envelope["error"] = error
    else:
        envelope["result"] = result if result is not None else {}
    return envelope


def error_envelope(
    request_id: RequestId,
    code: int,
    message: str,
    data: Any = None,
) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return to_envelope(request_id, error=error)


def tool_result_to_dict(result: CallToolResult) -> dict:
    """Serialize a tool result, keeping nulls inside structured content.

    Fields are read from the aliased dump, never as attributes.
    """
    dumped = result.model_dump(by_alias=True, mode="json")
    payload: dict[str, Any] = {
        "content": [
            block.model_dump(by_alias=True, exclude_none=True, mode="json")
            for block in result.content
        ],
        "isError": bool(dumped.get("isError")),
    }
    if dumped.get("structuredContent") is not None:
        payload["structuredContent"] = dumped["structuredContent"]
    return payload


def _decode(raw: Union[bytes, str, dict]) -> dict:
    if isinstance(raw, (bytes, str)):
        try:
            message = json.loads(raw)
        except ValueError as e:
            raise ParseError(f"Parse error: {e}")
    else:
        message = raw

    if not isinstance(message, dict):
        raise InvalidRequestError("Invalid Request: expected a JSON object")
    return message


def _validate_envelope(message: dict) -> str:
    """Check the envelope and return the method name."""
    if message.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequestError("Invalid Request: jsonrpc must be '2.0'")

    method = message.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequestError("Invalid Request: method is required")
    return method


def _request_id(message: dict) -> RequestId:
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (str, int, float)):
        return None
    if isinstance(request_id, float) and not math.isfinite(request_id):
        return None
    return request_id


def _require_str(params: dict, key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"Invalid params: {key} is required")
    return value


# ==============================================================================
# Router
# ==============================================================================

Handler = Callable[[dict, FlightTrackerServer, UserContext], Awaitable[Any]]


class ProtocolRouter:
    """Dispatches JSON-RPC methods to a server instance."""

    def __init__(self):
        self._handlers: dict[str, Handler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
            "completion/complete": self._complete,
        }

    @property
    def methods(self) -> list[str]:
        return list(self._handlers)

    async def handle(
        self,
        raw: Union[bytes, str, dict],
        server: FlightTrackerServer,
        user: UserContext,
    ) -> Optional[dict]:
        """Handle one JSON-RPC message.

        Returns:
            The response envelope, or None when the message is a notification
        """
        try:
            message = _decode(raw)
        except JSONRPCError as e:
            logger.warning(f"[Router] {e}")
            return error_envelope(None, e.code, str(e))

        request_id = _request_id(message)

        try:
            method = _validate_envelope(message)

            if "id" not in message:
                logger.info(f"[Router] Notification received: {method}")
                return None

            logger.info(f"[Router] {method} (id={request_id}, user={user.user_id})")

            handler = self._handlers.get(method)
            if handler is None:
                raise MethodNotFoundError(f"Method not found: {method}")

            params = message.get("params")
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise InvalidParamsError("Invalid params: expected an object")

            result = await handler(params, server, user)
        except JSONRPCError as e:
            return error_envelope(request_id, e.code, str(e), e.data)
        except UnknownToolError as e:
            return error_envelope(request_id, METHOD_NOT_FOUND, str(e))
        except InvalidInputError as e:
            return error_envelope(request_id, INVALID_PARAMS, str(e), e.errors or None)
        except (ResourceNotFoundError, InvalidPromptError) as e:
            return error_envelope(request_id, INVALID_PARAMS, str(e))
        except Exception as e:
            logger.error(f"[Router] {message.get('method')} failed: {e}", exc_info=True)
            return error_envelope(request_id, INTERNAL_ERROR, str(e))

        return to_envelope(request_id, result)

    # ==========================================================================
    # Method Handlers
    # ==========================================================================

    async def _initialize(self, params, server, user) -> dict:
        client_info = params.get("clientInfo") or {}
        logger.info(
            f"[Router] initialize from {client_info.get('name', 'unknown client')} "
            f"(protocol {params.get('protocolVersion', 'unspecified')})"
        )
        return server.initialize_result()

    async def _ping(self, params, server, user) -> dict:
        return {}

    async def _tools_list(self, params, server, user) -> dict:
        return {"tools": server.list_tools()}

    async def _tools_call(self, params, server, user) -> dict:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidParamsError("Invalid params: name is required")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments must be an object")

        try:
            result = await server.call_tool(name, arguments, user)
        except (UnknownToolError, InvalidInputError):
            raise
        except Exception as e:
            raise InternalError(f"Tool execution error: {e}") from e

        return tool_result_to_dict(result)

    async def _resources_list(self, params, server, user) -> dict:
        return {"resources": server.list_resources()}

    async def _resources_read(self, params, server, user) -> dict:
        return server.read_resource(_require_str(params, "uri"))

    async def _prompts_list(self, params, server, user) -> dict:
        return {"prompts": server.list_prompts()}

    async def _prompts_get(self, params, server, user) -> dict:
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments must be an object")
        return server.get_prompt(_require_str(params, "name"), arguments)

    async def _complete(self, params, server, user) -> dict:
        argument = params.get("argument")
        if not isinstance(argument, dict) or not isinstance(argument.get("name"), str):
            raise InvalidParamsError("Invalid params: argument.name is required")
        return server.complete(argument["name"], str(argument.get("value") or ""))
