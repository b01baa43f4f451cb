"""Static city, region and airport reference tables."""

from __future__ import annotations

import re

_IATA_CODE = re.compile(r"^[A-Z]{3}$")

CITY_COUNTRY: dict[str, str] = {
    # South Asia
    "delhi": "IN",
    "new delhi": "IN",
    "mumbai": "IN",
    "bangalore": "IN",
    "bengaluru": "IN",
    "chennai": "IN",
    "hyderabad": "IN",
    "kolkata": "IN",
    "pune": "IN",
    "goa": "IN",
    "jaipur": "IN",
    "kathmandu": "NP",
    "colombo": "LK",
    "dhaka": "BD",
    # Europe
    "london": "GB",
    "edinburgh": "GB",
    "manchester": "GB",
    "birmingham": "GB",
    "paris": "FR",
    "lyon": "FR",
    "marseille": "FR",
    "nice": "FR",
    "bordeaux": "FR",
    "amsterdam": "NL",
    "rotterdam": "NL",
    "the hague": "NL",
    "brussels": "BE",
    "berlin": "DE",
    "munich": "DE",
    "frankfurt": "DE",
    "hamburg": "DE",
    "stuttgart": "DE",
    "cologne": "DE",
    "dresden": "DE",
    "leipzig": "DE",
    "nuremberg": "DE",
    "vienna": "AT",
    "salzburg": "AT",
    "innsbruck": "AT",
    "graz": "AT",
    "hallstatt": "AT",
    "zurich": "CH",
    "geneva": "CH",
    "basel": "CH",
    "bern": "CH",
    "lucerne": "CH",
    "interlaken": "CH",
    "rome": "IT",
    "milan": "IT",
    "venice": "IT",
    "florence": "IT",
    "naples": "IT",
    "bologna": "IT",
    "madrid": "ES",
    "barcelona": "ES",
    "seville": "ES",
    "valencia": "ES",
    "bilbao": "ES",
    "lisbon": "PT",
    "porto": "PT",
    "prague": "CZ",
    "brno": "CZ",
    "ostrava": "CZ",
    "cesky krumlov": "CZ",
    "budapest": "HU",
    "warsaw": "PL",
    "krakow": "PL",
    "copenhagen": "DK",
    "stockholm": "SE",
    "oslo": "NO",
    "helsinki": "FI",
    "dublin": "IE",
    "athens": "GR",
    "istanbul": "TR",
    # Middle East
    "dubai": "AE",
    "abu dhabi": "AE",
    "doha": "QA",
    # East and Southeast Asia
    "tokyo": "JP",
    "osaka": "JP",
    "kyoto": "JP",
    "seoul": "KR",
    "beijing": "CN",
    "shanghai": "CN",
    "hong kong": "HK",
    "singapore": "SG",
    "bangkok": "TH",
    "kuala lumpur": "MY",
    # Americas
    "new york": "US",
    "san francisco": "US",
    "los angeles": "US",
    "chicago": "US",
    "toronto": "CA",
    "mexico city": "MX",
    "sao paulo": "BR",
    # Oceania and Africa
    "sydney": "AU",
    "melbourne": "AU",
    "cape town": "ZA",
    "nairobi": "KE",
    "cairo": "EG",
}

COUNTRY_REGION: dict[str, str] = {
    **{code: "south-asia" for code in ("IN", "PK", "BD", "NP", "BT", "LK", "MV", "AF")},
    **{
        code: "europe"
        for code in (
            "GB", "IE", "FR", "NL", "BE", "LU", "DE", "AT", "CH", "IT", "ES", "PT",
            "CZ", "SK", "HU", "PL", "DK", "SE", "NO", "FI", "IS", "GR", "HR", "SI",
            "RO", "BG", "EE", "LV", "LT", "MT", "TR",
        )
    },
    **{code: "middle-east" for code in ("AE", "QA", "SA", "OM", "BH", "KW", "JO", "IL")},
    **{code: "east-asia" for code in ("JP", "KR", "CN", "HK", "TW", "MO")},
    **{code: "southeast-asia" for code in ("SG", "TH", "MY", "ID", "VN", "PH", "KH")},
    **{code: "north-america" for code in ("US", "CA")},
    **{code: "latin-america" for code in ("MX", "BR", "AR", "CL", "PE", "CO")},
    **{code: "oceania" for code in ("AU", "NZ")},
    **{code: "africa" for code in ("ZA", "KE", "EG", "MA", "TZ", "NG")},
}

CAPITAL_CITIES: frozenset[str] = frozenset(
    {
        "london", "paris", "amsterdam", "brussels", "berlin", "vienna", "bern",
        "rome", "madrid", "lisbon", "prague", "budapest", "warsaw", "copenhagen",
        "stockholm", "oslo", "helsinki", "dublin", "athens", "delhi", "new delhi",
        "tokyo", "seoul", "beijing", "bangkok", "kuala lumpur", "singapore",
        "abu dhabi", "doha", "mexico city", "cairo", "nairobi",
    }
)

TIER1_HUBS: frozenset[str] = frozenset(
    {
        "frankfurt", "munich", "zurich", "milan", "barcelona", "istanbul", "dubai",
        "new york", "san francisco", "los angeles", "chicago", "toronto",
        "hong kong", "shanghai", "sydney", "sao paulo", "mumbai", "bangalore",
    }
)

WHITELISTED_GATEWAYS: frozenset[str] = frozenset(
    {"venice", "nice", "geneva", "manchester", "edinburgh", "osaka", "melbourne", "cape town"}
)

# Secondary cities mapped to the closest long-haul gateway reachable by ground.
NEAREST_ELIGIBLE_HUB: dict[str, str] = {
    "salzburg": "Vienna",
    "innsbruck": "Vienna",
    "graz": "Vienna",
    "hamburg": "Frankfurt",
    "stuttgart": "Frankfurt",
    "cologne": "Frankfurt",
    "dresden": "Berlin",
    "leipzig": "Berlin",
    "nuremberg": "Munich",
    "lyon": "Paris",
    "marseille": "Paris",
    "bordeaux": "Paris",
    "rotterdam": "Amsterdam",
    "the hague": "Amsterdam",
    "basel": "Zurich",
    "lucerne": "Zurich",
    "interlaken": "Zurich",
    "florence": "Rome",
    "naples": "Rome",
    "bologna": "Milan",
    "seville": "Madrid",
    "bilbao": "Madrid",
    "valencia": "Barcelona",
    "porto": "Lisbon",
    "brno": "Prague",
    "ostrava": "Prague",
    "krakow": "Warsaw",
    "birmingham": "London",
    "kyoto": "Osaka",
    "chennai": "Delhi",
    "kolkata": "Delhi",
    "hyderabad": "Delhi",
    "pune": "Mumbai",
    "goa": "Mumbai",
    "jaipur": "Delhi",
}

# Large origin markets that always keep their own departure airport.
PRIMARY_ORIGIN_CITIES: frozenset[str] = frozenset(
    {"bangalore", "bengaluru", "delhi", "new delhi", "mumbai", "chennai", "hyderabad", "kolkata"}
)

AIRPORT_CODES: dict[str, str] = {
    "delhi": "DEL",
    "new delhi": "DEL",
    "mumbai": "BOM",
    "bangalore": "BLR",
    "bengaluru": "BLR",
    "chennai": "MAA",
    "hyderabad": "HYD",
    "kolkata": "CCU",
    "london": "LHR",
    "manchester": "MAN",
    "edinburgh": "EDI",
    "paris": "CDG",
    "nice": "NCE",
    "amsterdam": "AMS",
    "brussels": "BRU",
    "berlin": "BER",
    "munich": "MUC",
    "frankfurt": "FRA",
    "vienna": "VIE",
    "zurich": "ZRH",
    "geneva": "GVA",
    "rome": "FCO",
    "milan": "MXP",
    "venice": "VCE",
    "madrid": "MAD",
    "barcelona": "BCN",
    "lisbon": "LIS",
    "prague": "PRG",
    "budapest": "BUD",
    "warsaw": "WAW",
    "copenhagen": "CPH",
    "stockholm": "ARN",
    "oslo": "OSL",
    "helsinki": "HEL",
    "dublin": "DUB",
    "athens": "ATH",
    "istanbul": "IST",
    "dubai": "DXB",
    "abu dhabi": "AUH",
    "doha": "DOH",
    "tokyo": "HND",
    "osaka": "KIX",
    "seoul": "ICN",
    "hong kong": "HKG",
    "singapore": "SIN",
    "bangkok": "BKK",
    "new york": "JFK",
    "san francisco": "SFO",
    "los angeles": "LAX",
    "chicago": "ORD",
    "toronto": "YYZ",
    "sydney": "SYD",
}


def normalize_city(value: str) -> str:
    return " ".join(value.strip().lower().split())


def city_keys(value: str) -> tuple[str, ...]:
    """Lookup keys for a city label: the full name, then the part before a comma."""
    full = normalize_city(value)
    head = normalize_city(full.split(",", 1)[0])
    if head and head != full:
        return (full, head)
    return (full,)


def _label_parts(value: str) -> tuple[str, ...]:
    return tuple(part for part in (normalize_city(piece) for piece in value.split(",")) if part)


def same_city(left: str, right: str) -> bool:
    """Two labels name one city when they match in full.

    A bare name ("Paris") also matches a qualified label ("Paris, France"), but
    two labels with different qualifiers ("Paris, France", "Paris, Texas") do not.
    """
    left_parts = _label_parts(left)
    right_parts = _label_parts(right)
    if not left_parts or not right_parts:
        return left_parts == right_parts
    if left_parts == right_parts:
        return True
    if len(left_parts) == 1 or len(right_parts) == 1:
        return left_parts[0] == right_parts[0]
    return False


def lookup_city(table: dict[str, str], city: str) -> str | None:
    for key in city_keys(city):
        if key in table:
            return table[key]
    return None


def city_in(collection: frozenset[str], city: str) -> bool:
    return any(key in collection for key in city_keys(city))


def country_of_city(city: str) -> str | None:
    return lookup_city(CITY_COUNTRY, city)


def region_of_country(country_code: str | None) -> str | None:
    if not country_code:
        return None
    return COUNTRY_REGION.get(country_code.strip().upper())


def airport_code_for(city_or_code: str) -> str | None:
    candidate = city_or_code.strip()
    if _IATA_CODE.match(candidate):
        return candidate
    return lookup_city(AIRPORT_CODES, candidate)
