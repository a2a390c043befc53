"""Pydantic models for the OpenSky Flight Tracker MCP Server"""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .completions import ISO_COUNTRY_NAMES


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


# ==============================================================================
# Token Models
# ==============================================================================

class OAuthToken(BaseModel):
    """An upstream bearer token and the moment it stops being accepted."""
    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., description="OAuth2 bearer token")
    expires_at: datetime = Field(..., description="Token expiration timestamp")

    def seconds_remaining(self, now: datetime) -> float:
        return (self.expires_at - now).total_seconds()

    def needs_refresh(self, now: datetime, buffer_seconds: float) -> bool:
        """True when the token would expire within the safety buffer."""
        return now + timedelta(seconds=buffer_seconds) >= self.expires_at


# ==============================================================================
# Geospatial / Upstream Models
# ==============================================================================

class BoundingBox(BaseModel):
    """Rectangular lat/lon query area."""
    model_config = ConfigDict(frozen=True)

    lat_min: float
    lon_min: float
    lat_max: float
    lon_max: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.lat_min < latitude < self.lat_max
            and self.lon_min < longitude < self.lon_max
        )

    def to_query_params(self) -> dict[str, float]:
        """Parameter names used by the states/all endpoint."""
        return {
            "lamin": self.lat_min,
            "lomin": self.lon_min,
            "lamax": self.lat_max,
            "lomax": self.lon_max,
        }


class StateVector(BaseModel):
    """One upstream state vector with named fields.

    Upstream sends these as 17 or 18 element arrays; fields missing from a
    short array stay None.
    """
    icao24: Optional[str] = None
    callsign: Optional[str] = None
    origin_country: Optional[str] = None
    time_position: Optional[int] = None
    last_contact: Optional[int] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    baro_altitude: Optional[float] = None
    on_ground: Optional[bool] = None
    velocity: Optional[float] = None
    true_track: Optional[float] = None
    vertical_rate: Optional[float] = None
    sensors: Optional[list[int]] = None
    geo_altitude: Optional[float] = None
    squawk: Optional[str] = None
    spi: Optional[bool] = None
    position_source: Optional[int] = None
    category: Optional[int] = None


class StatesResponse(BaseModel):
    """Raw response of the states/all endpoint."""
    time: Optional[int] = None
    states: Optional[list[list[Any]]] = None


class AircraftPosition(BaseModel):
    latitude: Optional[float] = Field(None, description="WGS-84 latitude in decimal degrees")
    longitude: Optional[float] = Field(None, description="WGS-84 longitude in decimal degrees")
    altitude_m: Optional[float] = Field(None, description="Barometric altitude in meters")
    on_ground: Optional[bool] = Field(None, description="True if aircraft is on ground")


class AircraftVelocity(BaseModel):
    ground_speed_ms: Optional[float] = Field(None, description="Ground speed in meters per second")
    vertical_rate_ms: Optional[float] = Field(None, description="Vertical rate in m/s (positive = climbing)")
    true_track_deg: Optional[float] = Field(None, description="True track in decimal degrees (0 = north)")


class AircraftRecord(BaseModel):
    """Normalized aircraft data returned by the tools."""
    icao24: Optional[str] = Field(None, description="Unique ICAO 24-bit address (hex string, e.g. '3c6444')")
    callsign: Optional[str] = Field(None, description="Aircraft callsign (trimmed, null if not available)")
    origin_country: Optional[str] = Field(None, description="Country where aircraft is registered")
    position: AircraftPosition
    velocity: AircraftVelocity
    last_contact: Optional[int] = Field(None, description="Unix timestamp of last contact (seconds)")
    squawk: Optional[str] = Field(None, description="Transponder squawk code (4 digits)")


class SearchCenter(BaseModel):
    latitude: float
    longitude: float


class NearbySearchResult(BaseModel):
    """Structured result of a geographic search."""
    search_center: SearchCenter
    radius_km: float
    origin_country_filter: Optional[str] = None
    aircraft_count: int = Field(..., description="Number of aircraft found in area (after filtering)")
    aircraft: list[AircraftRecord] = Field(default_factory=list)


# ==============================================================================
# Tool Input Models
# ==============================================================================

_ICAO24_PATTERN = re.compile(r"^[0-9a-fA-F]{6}$")
_CALLSIGN_PATTERN = re.compile(r"^[A-Za-z0-9]{1,8}$")


class GetAircraftByIcaoInput(BaseModel):
    """Input parameters for the getAircraftByIcao tool."""
    model_config = ConfigDict(str_strip_whitespace=True)

    icao24: str = Field(
        ...,
        description="ICAO 24-bit address (6 hex characters, e.g., '3c6444' or 'a8b2c3')",
        min_length=6,
        max_length=6,
        pattern=_ICAO24_PATTERN.pattern,
    )

    @field_validator("icao24")
    @classmethod
    def lowercase_icao24(cls, value: str) -> str:
        return value.lower()


class FindAircraftNearLocationInput(BaseModel):
    """Input parameters for the findAircraftNearLocation tool."""
    model_config = ConfigDict(str_strip_whitespace=True)

    latitude: float = Field(
        ...,
        description="Center point latitude in decimal degrees (-90 to 90, e.g., 52.2297 for Warsaw)",
        ge=-90,
        le=90,
    )
    longitude: float = Field(
        ...,
        description="Center point longitude in decimal degrees (-180 to 180, e.g., 21.0122 for Warsaw)",
        ge=-180,
        le=180,
    )
    radius_km: float = Field(
        ...,
        description="Search radius in kilometers (1-1000, e.g., 25 for 25km radius)",
        ge=1,
        le=1000,
    )
    filter_only_country: Optional[str] = Field(
        default=None,
        description=(
            "Explicit country filter. ISO 3166-1 alpha-2 code (e.g., 'US', 'DE'). ONLY use when "
            "user says 'filter by country', 'only X aircraft', or 'show only X planes'."
        ),
        pattern=r"^[A-Z]{2}$",
    )

    @field_validator("filter_only_country")
    @classmethod
    def known_country(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in ISO_COUNTRY_NAMES:
            raise ValueError(f"Unsupported country code: {value}")
        return value


class GetAircraftByCallsignInput(BaseModel):
    """Input parameters for the getAircraftByCallsign tool."""
    model_config = ConfigDict(str_strip_whitespace=True)

    callsign: str = Field(
        ...,
        description="Aircraft callsign (1-8 alphanumeric characters, e.g., 'LOT456')",
        pattern=_CALLSIGN_PATTERN.pattern,
    )

    @field_validator("callsign")
    @classmethod
    def uppercase_callsign(cls, value: str) -> str:
        return value.upper()


# ==============================================================================
# Caller / Quota Models
# ==============================================================================

class UserContext(BaseModel):
    """The authenticated caller of a request."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == ANONYMOUS_USER_ID


ANONYMOUS_USER_ID = "public"
ANONYMOUS_USER = UserContext(user_id=ANONYMOUS_USER_ID, email="anonymous")


class BalanceCheck(BaseModel):
    """Outcome of a quota ledger balance check."""
    sufficient: bool
    current_balance: int
    user_deleted: bool = False
