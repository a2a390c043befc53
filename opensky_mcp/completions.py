"""Static autocomplete data for completion/complete.

The ICAO24 codes are example values for demonstration, not a registry of
real transponder addresses.
"""

COMMON_AIRCRAFT_ICAO24 = [
    # United States
    ("a0b1c2", "United Airlines - Boeing 737"),
    ("a0b2c3", "United Airlines - Boeing 777"),
    ("a1b1c1", "American Airlines - Airbus A320"),
    ("a1b2c3", "American Airlines - Boeing 787"),
    ("a2b1c1", "Delta Airlines - Airbus A350"),
    ("a2b3c4", "Delta Airlines - Boeing 767"),
    ("a3b4c5", "Southwest Airlines - Boeing 737-800"),
    ("a4b1c2", "JetBlue Airways - Airbus A321"),
    ("a5b2c3", "Alaska Airlines - Boeing 737-900"),
    # Europe
    ("3c6444", "Lufthansa - Airbus A320"),
    ("3c6555", "Lufthansa - Airbus A350"),
    ("3c6666", "Lufthansa - Boeing 747-8"),
    ("400abc", "British Airways - Airbus A380"),
    ("400bcd", "British Airways - Boeing 787"),
    ("39abc1", "Air France - Airbus A350"),
    ("39bcd2", "Air France - Boeing 777"),
    ("4b1234", "KLM - Boeing 777"),
    ("4b2345", "KLM - Boeing 787"),
    ("501abc", "Ryanair - Boeing 737-800"),
    ("4d1abc", "easyJet - Airbus A320"),
    ("501def", "Wizz Air - Airbus A321"),
    ("4bb001", "Turkish Airlines - Boeing 777"),
    # Asia / Middle East
    ("8b0001", "Japan Airlines - Boeing 787"),
    ("780abc", "Singapore Airlines - Airbus A380"),
    ("7c0001", "Korean Air - Boeing 747-8"),
    ("780111", "Cathay Pacific - Airbus A350"),
    ("896001", "Emirates - Airbus A380"),
    ("060abc", "Qatar Airways - Airbus A350"),
    ("894001", "Etihad Airways - Boeing 787"),
    # Americas / Pacific
    ("c01234", "Air Canada - Boeing 777"),
    ("c02111", "WestJet - Boeing 737 MAX"),
    ("7c1111", "Qantas - Airbus A380"),
    ("c82111", "Air New Zealand - Boeing 787"),
    ("e01234", "LATAM Airlines - Boeing 787"),
    ("0d1234", "Aeromexico - Boeing 787"),
    # Cargo
    ("a8c001", "FedEx - Boeing 777F"),
    ("a9d001", "UPS - Boeing 747-8F"),
]

# ISO 3166-1 alpha-2 code -> country name as reported in origin_country
ISO_COUNTRY_NAMES = {
    "AE": "United Arab Emirates",
    "AR": "Argentina",
    "AT": "Austria",
    "AU": "Australia",
    "BE": "Belgium",
    "BR": "Brazil",
    "CA": "Canada",
    "CH": "Switzerland",
    "CL": "Chile",
    "CN": "China",
    "CO": "Colombia",
    "CZ": "Czech Republic",
    "DE": "Germany",
    "DK": "Denmark",
    "EG": "Egypt",
    "ES": "Spain",
    "FI": "Finland",
    "FR": "France",
    "GB": "United Kingdom",
    "GR": "Greece",
    "HK": "Hong Kong",
    "ID": "Indonesia",
    "IE": "Ireland",
    "IL": "Israel",
    "IN": "India",
    "IT": "Italy",
    "JP": "Japan",
    "KR": "Republic of Korea",
    "KW": "Kuwait",
    "MX": "Mexico",
    "MY": "Malaysia",
    "NL": "Kingdom of the Netherlands",
    "NO": "Norway",
    "NZ": "New Zealand",
    "PE": "Peru",
    "PH": "Philippines",
    "PL": "Poland",
    "PT": "Portugal",
    "QA": "Qatar",
    "RO": "Romania",
    "RU": "Russian Federation",
    "SA": "Saudi Arabia",
    "SE": "Sweden",
    "SG": "Singapore",
    "TH": "Thailand",
    "TR": "Turkey",
    "TW": "Taiwan",
    "UA": "Ukraine",
    "US": "United States",
    "VN": "Viet Nam",
    "ZA": "South Africa",
}

MAX_COMPLETION_VALUES = 100

# Prompt/tool argument name -> completion source
_ICAO_ARGUMENTS = {"icao_search", "icao24"}
_COUNTRY_ARGUMENTS = {"country_filter", "filter_only_country"}


def complete_argument(argument_name: str, value: str) -> dict:
    """Build a completion result for a prompt or tool argument.

    Returns the ``completion`` object of a completion/complete response:
    matching values (prefix match, case-insensitive), the total number of
    matches and whether the list was truncated.
    """
    prefix = (value or "").strip().lower()

    if argument_name in _ICAO_ARGUMENTS:
        candidates = [code for code, _ in COMMON_AIRCRAFT_ICAO24]
    elif argument_name in _COUNTRY_ARGUMENTS:
        candidates = sorted(ISO_COUNTRY_NAMES)
    else:
        candidates = []

    matches = [c for c in candidates if c.lower().startswith(prefix)]
    return {
        "values": matches[:MAX_COMPLETION_VALUES],
        "total": len(matches),
        "hasMore": len(matches) > MAX_COMPLETION_VALUES,
    }
