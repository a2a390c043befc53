"""Tool metadata, server instructions and prompt templates.

Tool descriptions follow a four part pattern: purpose, returns, use case,
constraints. They describe capabilities only, never the upstream service.
"""
from typing import Any

TOOL_METADATA = {
    "getAircraftByIcao": {
        "title": "Get Aircraft By ICAO",
        "description": {
            "purpose": "Get real-time aircraft details by ICAO 24-bit transponder address.",
            "returns": "Returns position, velocity, callsign, origin country, and last contact timestamp.",
            "use_case": "Use this when you need to track a specific aircraft by its unique hex identifier (e.g., '3c6444').",
            "constraints": (
                "Note: Only returns data if the aircraft is currently in flight and broadcasting ADS-B "
                "signals. Reports 'not found' if the aircraft is grounded or silent."
            ),
        },
    },
    "findAircraftNearLocation": {
        "title": "Find Aircraft Near Location",
        "description": {
            "purpose": "Find all aircraft currently flying near a geographic location.",
            "returns": "Returns list of aircraft with position, velocity, callsign, ICAO address, and origin country.",
            "use_case": "Use this to discover flight activity in a region. Optionally filter by origin country (ISO code).",
            "constraints": (
                "Note: Searches within a radius up to 1000km. Large search areas may return many "
                "results. Only includes aircraft broadcasting ADS-B signals."
            ),
        },
    },
    "getAircraftByCallsign": {
        "title": "Get Aircraft By Callsign",
        "description": {
            "purpose": "Find a currently flying aircraft by its callsign.",
            "returns": "Returns position, velocity, ICAO address, origin country, and last contact timestamp.",
            "use_case": "Use this when you know a flight's callsign (e.g., 'LOT456') but not its ICAO address.",
            "constraints": (
                "Note: Searches all tracked aircraft worldwide, so it is slower and costs more than an "
                "ICAO lookup. Prefer getAircraftByIcao when the ICAO address is known."
            ),
        },
    },
}


def get_tool_description(tool_name: str) -> str:
    """Join the four description parts of a tool into one string."""
    parts = TOOL_METADATA[tool_name]["description"]
    return " ".join(parts[k] for k in ("purpose", "returns", "use_case", "constraints"))


SERVER_INSTRUCTIONS = """
# OpenSky Flight Tracker - Real-time Aircraft Tracking

Access live flight data covering aircraft worldwide with ADS-B transponder data.

## Available Tools

### getAircraftByIcao
Real-time details for one aircraft by its ICAO 24-bit transponder address.
- `icao24`: 6-character hexadecimal string (e.g. `3c6444`, `a8b2c3`)
- Returns position, velocity, callsign, origin country, last contact and squawk

### findAircraftNearLocation
All aircraft currently flying within a radius of a location.
- `latitude`: -90 to 90 (e.g. 52.2297 for Warsaw)
- `longitude`: -180 to 180 (e.g. 21.0122 for Warsaw)
- `radius_km`: 1 to 1000 (25-50 km suits a city)
- `filter_only_country`: optional ISO 3166-1 alpha-2 code, only when the user asks to filter by country

### getAircraftByCallsign
One aircraft by callsign (e.g. `LOT456`). Scans all aircraft, so prefer the ICAO lookup when possible.

## Usage Patterns
1. Discover aircraft in an area with `findAircraftNearLocation`
2. Follow up on individual aircraft with `getAircraftByIcao` using the `icao24` from the results

## Radius Selection
- 5-15 km: an airport or small town
- 25-50 km: a city or metropolitan area
- 100-200 km: regional airspace
- 500-1000 km: a country; results are approximate at this size

## Constraints
- Only aircraft with active ADS-B transponders currently in flight are shown
- Coverage is best over North America and Europe, limited over oceans and remote areas
- Position data is never cached; every call returns the current state
""".strip()


PROMPTS: dict[str, dict[str, Any]] = {
    "search-aircraft": {
        "title": "Search Aircraft by ICAO Code",
        "description": "Search for an aircraft by ICAO code to get real-time flight details.",
        "arguments": [
            {
                "name": "icao_search",
                "description": "ICAO 24-bit aircraft code (6 hex characters, e.g., '3c6444' or 'a8b2c3')",
                "required": True,
            },
        ],
    },
    "search-aircraft-near-location": {
        "title": "Find Aircraft Near Location",
        "description": "Find all aircraft flying near a geographic location with optional country filter.",
        "arguments": [
            {"name": "latitude", "description": "Center point latitude (-90 to 90)", "required": True},
            {"name": "longitude", "description": "Center point longitude (-180 to 180)", "required": True},
            {"name": "radius_km", "description": "Search radius in kilometers (1-1000)", "required": True},
            {
                "name": "country_filter",
                "description": "Optional ISO 3166-1 alpha-2 country code (e.g., 'US', 'DE')",
                "required": False,
            },
        ],
    },
}


def render_prompt(name: str, arguments: dict[str, Any]) -> str:
    """Build the user message text for a prompt.

    Callers must have checked that ``name`` exists and that every required
    argument is present.
    """
    if name == "search-aircraft":
        return (
            "Please use the 'getAircraftByIcao' tool to fetch real-time flight details for "
            f"aircraft with ICAO code: {arguments['icao_search']}"
        )

    text = (
        "Please use the 'findAircraftNearLocation' tool with these parameters:\n"
        f"- latitude: {arguments['latitude']}\n"
        f"- longitude: {arguments['longitude']}\n"
        f"- radius_km: {arguments['radius_km']}"
    )
    if arguments.get("country_filter"):
        text += f"\n- filter_only_country: {arguments['country_filter']}"
    return text
