"""Predeclared UI resources (MCP Apps) and the host that serves their HTML.

Tools link to a resource through ``_meta.ui.resourceUri``; hosts that render
MCP Apps fetch the template with resources/read and feed it tool results.
"""
import logging
from pathlib import Path
from typing import Protocol

from .config import STATIC_DIR

logger = logging.getLogger(__name__)

UI_MIME_TYPE = "text/html;profile=mcp-app"

UI_RESOURCES = {
    "flightMap": {
        "uri": "ui://opensky/mcp-app.html",
        "name": "mcp_app",
        "path": "flight-map.html",
        "description": (
            "Interactive flight map showing real-time aircraft positions within a geographic "
            "search area, with altitude-based marker colors and clickable aircraft details."
        ),
        "mimeType": UI_MIME_TYPE,
        "_meta": {
            "ui": {
                "csp": {
                    "connectDomains": [],
                    "resourceDomains": ["tile.openstreetmap.org", "basemaps.cartocdn.com"],
                },
                "prefersBorder": True,
            },
        },
    },
}


class ResourceNotFoundError(Exception):
    """Raised when resources/read names a URI that is not declared."""
    pass


class ResourceHost(Protocol):
    def load(self, path: str) -> str:
        ...


class StaticResourceHost:
    """Serves UI templates from a directory on disk."""

    def __init__(self, directory: Path = STATIC_DIR):
        self._directory = Path(directory)

    def load(self, path: str) -> str:
        file_path = (self._directory / path).resolve()
        if self._directory.resolve() not in file_path.parents:
            raise ResourceNotFoundError(f"Resource path outside static directory: {path}")
        if not file_path.is_file():
            raise ResourceNotFoundError(f"Failed to load {path}: file not found")
        return file_path.read_text(encoding="utf-8")


def list_resources() -> list[dict]:
    """Resource descriptors for resources/list."""
    return [
        {
            "uri": r["uri"],
            "name": r["name"],
            "description": r["description"],
            "mimeType": r["mimeType"],
            "_meta": r["_meta"],
        }
        for r in UI_RESOURCES.values()
    ]


def read_resource(uri: str, host: ResourceHost) -> dict:
    """Build the resources/read result for a declared URI.

    Raises:
        ResourceNotFoundError: If the URI is not declared or its file is missing
    """
    for resource in UI_RESOURCES.values():
        if resource["uri"] == uri:
            return {
                "contents": [
                    {
                        "uri": uri,
                        "mimeType": resource["mimeType"],
                        "text": host.load(resource["path"]),
                        "_meta": resource["_meta"],
                    }
                ]
            }
    raise ResourceNotFoundError(f"Unknown resource: {uri}")
