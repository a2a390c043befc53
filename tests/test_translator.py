import math

import pytest

from conftest import state_row
from opensky_mcp.translator import (
    bounding_box,
    parse_state_vector,
    records_from_states,
    to_aircraft_record,
)


def test_bounding_box_contains_center():
    bbox = bounding_box(52.2297, 21.0122, 25)
    assert bbox.contains(52.2297, 21.0122)


def test_bounding_box_deltas():
    bbox = bounding_box(52.2297, 21.0122, 25)
    lat_delta = 25 / 6371 * 180 / math.pi

    assert bbox.lat_max - 52.2297 == pytest.approx(lat_delta)
    assert 52.2297 - bbox.lat_min == pytest.approx(lat_delta)
    # Longitude degrees shrink towards the poles, so the box widens
    lon_delta = bbox.lon_max - 21.0122
    assert lon_delta == pytest.approx(lat_delta / math.cos(math.radians(52.2297)))
    assert lon_delta > lat_delta


def test_bounding_box_at_equator_is_square():
    bbox = bounding_box(0, 0, 100)
    assert bbox.lat_max == pytest.approx(bbox.lon_max)
    assert bbox.lat_min == pytest.approx(bbox.lon_min)


def test_bounding_box_query_params():
    params = bounding_box(10, 20, 50).to_query_params()
    assert set(params) == {"lamin", "lomin", "lamax", "lomax"}
    assert params["lamin"] < 10 < params["lamax"]
    assert params["lomin"] < 20 < params["lomax"]


def test_parse_state_vector_trims_callsign():
    vector = parse_state_vector(state_row(callsign="LOT456  "))
    assert vector.callsign == "LOT456"
    assert vector.icao24 == "3c6444"
    assert vector.category == 1


def test_parse_state_vector_keeps_null_callsign():
    vector = parse_state_vector(state_row(callsign=None))
    assert vector.callsign is None


def test_parse_state_vector_blank_callsign_becomes_empty():
    vector = parse_state_vector(state_row(callsign="        "))
    assert vector.callsign == ""


def test_parse_state_vector_short_row():
    vector = parse_state_vector(state_row(with_category=False))
    assert vector.category is None
    assert vector.position_source == 0


def test_record_uses_barometric_altitude():
    record = to_aircraft_record(parse_state_vector(state_row()))
    assert record.position.altitude_m == 10972.8
    assert record.velocity.ground_speed_ms == 231.5
    assert record.velocity.true_track_deg == 87.3
    assert record.last_contact == 1736942395


def test_records_keep_null_fields():
    row = state_row(longitude=None, latitude=None, baro_altitude=None, squawk=None)
    record = records_from_states([row])[0]

    dumped = record.model_dump()
    assert dumped["position"]["latitude"] is None
    assert dumped["position"]["longitude"] is None
    assert dumped["position"]["altitude_m"] is None
    assert dumped["squawk"] is None


def test_records_from_empty_states():
    assert records_from_states(None) == []
    assert records_from_states([]) == []
