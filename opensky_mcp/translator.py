"""Pure conversions between search parameters, upstream rows and tool output.

- ``bounding_box`` turns a center point and radius into a query rectangle
- ``parse_state_vector`` names the fields of one positional upstream row
- ``to_aircraft_record`` reshapes a state vector into the tool output format
"""
import math
from typing import Any, Iterable, Optional, Sequence

from .config import EARTH_RADIUS_KM
from .models import (
    AircraftPosition,
    AircraftRecord,
    AircraftVelocity,
    BoundingBox,
    StateVector,
)

# Upstream array index -> StateVector field
STATE_VECTOR_FIELDS = (
    "icao24",
    "callsign",
    "origin_country",
    "time_position",
    "last_contact",
    "longitude",
    "latitude",
    "baro_altitude",
    "on_ground",
    "velocity",
    "true_track",
    "vertical_rate",
    "sensors",
    "geo_altitude",
    "squawk",
    "spi",
    "position_source",
    "category",
)


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """Calculate the query rectangle around a center point.

    Flat-Earth approximation: accurate for radii well under ~500 km, and
    not a great-circle distance beyond that.
    """
    lat_delta = (radius_km / EARTH_RADIUS_KM) * (180 / math.pi)
    lon_delta = lat_delta / math.cos(lat * math.pi / 180)

    return BoundingBox(
        lat_min=lat - lat_delta,
        lon_min=lon - lon_delta,
        lat_max=lat + lat_delta,
        lon_max=lon + lon_delta,
    )


def parse_state_vector(row: Sequence[Any]) -> StateVector:
    """Map one positional upstream row to named fields.

    The callsign is padded to 8 characters upstream and is trimmed here.
    Nulls and fields absent from a short row stay None.
    """
    values = {
        name: row[index] if index < len(row) else None
        for index, name in enumerate(STATE_VECTOR_FIELDS)
    }
    if values["callsign"] is not None:
        values["callsign"] = values["callsign"].strip()
    return StateVector(**values)


def to_aircraft_record(vector: StateVector) -> AircraftRecord:
    return AircraftRecord(
        icao24=vector.icao24,
        callsign=vector.callsign,
        origin_country=vector.origin_country,
        position=AircraftPosition(
            latitude=vector.latitude,
            longitude=vector.longitude,
            altitude_m=vector.baro_altitude,
            on_ground=vector.on_ground,
        ),
        velocity=AircraftVelocity(
            ground_speed_ms=vector.velocity,
            vertical_rate_ms=vector.vertical_rate,
            true_track_deg=vector.true_track,
        ),
        last_contact=vector.last_contact,
        squawk=vector.squawk,
    )


def parse_states(states: Optional[Iterable[Sequence[Any]]]) -> list[StateVector]:
    if not states:
        return []
    return [parse_state_vector(row) for row in states]


def records_from_states(states: Optional[Iterable[Sequence[Any]]]) -> list[AircraftRecord]:
    """Translate a whole states/all payload into aircraft records."""
    return [to_aircraft_record(v) for v in parse_states(states)]
