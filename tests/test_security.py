import pytest

from opensky_mcp.security import OutputFilter


@pytest.fixture
def output_filter():
    return OutputFilter()


def test_sanitize_strips_markup_and_control_characters(output_filter):
    text = "<b>LOT456</b>\x00 over Warsaw   \n\n\n\nnext line"

    assert output_filter.sanitize(text) == "LOT456 over Warsaw\n\nnext line"


def test_sanitize_truncates_long_output():
    output_filter = OutputFilter(max_length=10)

    result = output_filter.sanitize("x" * 50)

    assert result == "x" * 10 + "\n... (truncated)"


@pytest.mark.parametrize(
    "text,kind",
    [
        ("card 4111 1111 1111 1111 on file", "credit_card"),
        ("ssn 123-45-6789", "ssn"),
        ("pesel 44051401359", "pesel"),
        ("call +48 601 234 567", "polish_phone"),
        ("iban PL61109010140000071219812874", "bank_account"),
    ],
)
def test_redact_detects_pii(output_filter, text, kind):
    result = output_filter.redact(text)

    assert kind in result.detected_kinds
    assert "[REDACTED]" in result.text


def test_redact_skips_numbers_failing_checksum(output_filter):
    result = output_filter.redact("card 4111 1111 1111 1112, pesel 44051401358")

    assert result.detected_kinds == []
    assert "4111 1111 1111 1112" in result.text


def test_flight_data_passes_through(output_filter):
    text = '{"icao24": "3c6444", "callsign": "DLH9LF", "squawk": "1000", "last_contact": 1736942395}'

    result = output_filter.redact(text)

    assert result.text == text
    assert result.detected_kinds == []


def test_emails_kept_unless_enabled():
    text = "contact ops@example.com"

    assert OutputFilter().redact(text).text == text
    assert OutputFilter(redact_emails=True).redact(text).detected_kinds == ["email"]
