"""
Feature Extraction

Normalizes a QuoteSnapshot into one comparable field per matching criterion.

Design decisions:
- Pure function of its input: no database, no clock
- A field that cannot be established is None (absent), never 0
- Units are converted up front (kg, cubic metres) so scorers compare like with like
- Unrecognized unit labels make the measurement absent
- Negative weights, dimensions or piece counts are rejected, not clamped
"""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from app.errors import ValidationError
from app.models.quote_snapshot import QuoteSnapshot

logger = structlog.get_logger(__name__)

# Freight service vocabulary (substring -> category)
SERVICE_TYPE_MAPPING = {
    "ground": "GROUND", "ftl": "GROUND", "ltl": "GROUND", "trucking": "GROUND",
    "flatbed": "GROUND", "dry van": "GROUND",
    "drayage": "DRAYAGE", "container pickup": "DRAYAGE", "container delivery": "DRAYAGE",
    "port pickup": "DRAYAGE", "pier pickup": "DRAYAGE", "terminal": "DRAYAGE",
    "ocean": "OCEAN", "sea freight": "OCEAN", "fcl": "OCEAN", "lcl": "OCEAN",
    "roro": "OCEAN", "ro-ro": "OCEAN", "breakbulk": "OCEAN",
    "intermodal": "INTERMODAL", "multimodal": "INTERMODAL",
    "transload": "TRANSLOAD", "cross-dock": "TRANSLOAD", "devanning": "TRANSLOAD",
    "stripping": "TRANSLOAD", "stuffing": "TRANSLOAD",
    "air": "AIR",
    "storage": "STORAGE", "warehous": "STORAGE",
}

# US regions by state code
US_STATE_REGIONS = {
    "NORTHEAST": {"NY", "NJ", "PA", "MA", "CT", "RI", "NH", "VT", "ME", "MD", "DE"},
    "SOUTHEAST": {"GA", "FL", "SC", "NC", "VA", "WV"},
    "GULF": {"TX", "LA", "AL", "MS"},
    "WEST_COAST": {"CA", "WA", "OR"},
    "MIDWEST": {"IL", "OH", "MI", "IN", "WI", "MN", "IA", "MO", "ND", "SD"},
    "CENTRAL": {"TN", "KY", "KS", "CO", "OK", "NE", "AR"},
    "MOUNTAIN": {"AZ", "NV", "UT", "NM", "ID", "MT", "WY"},
    "NONCONTIGUOUS": {"AK", "HI", "PR"},
}
US_STATE_CODES = frozenset(code for codes in US_STATE_REGIONS.values() for code in codes) | {"DC"}

# Country name aliases -> two-letter code
COUNTRY_ALIASES = {
    "us": "US", "usa": "US", "u.s.": "US", "u.s.a.": "US", "united states": "US",
    "united states of america": "US", "america": "US",
    "ca": "CA", "can": "CA", "canada": "CA",
    "mx": "MX", "mex": "MX", "mexico": "MX",
    "cn": "CN", "china": "CN", "jp": "JP", "japan": "JP", "kr": "KR", "korea": "KR",
    "south korea": "KR", "tw": "TW", "taiwan": "TW", "vn": "VN", "vietnam": "VN",
    "th": "TH", "thailand": "TH", "sg": "SG", "singapore": "SG", "my": "MY",
    "malaysia": "MY", "id": "ID", "indonesia": "ID", "ph": "PH", "philippines": "PH",
    "in": "IN", "india": "IN", "bd": "BD", "bangladesh": "BD",
    "de": "DE", "germany": "DE", "fr": "FR", "france": "FR", "gb": "GB", "uk": "GB",
    "united kingdom": "GB", "es": "ES", "spain": "ES", "it": "IT", "italy": "IT",
    "nl": "NL", "netherlands": "NL", "be": "BE", "belgium": "BE", "pl": "PL", "poland": "PL",
    "ae": "AE", "uae": "AE", "united arab emirates": "AE", "sa": "SA", "saudi arabia": "SA",
    "qa": "QA", "qatar": "QA", "tr": "TR", "turkey": "TR", "eg": "EG", "egypt": "EG",
    "br": "BR", "brazil": "BR", "co": "CO", "colombia": "CO", "cl": "CL", "chile": "CL",
    "pe": "PE", "peru": "PE", "ar": "AR", "argentina": "AR", "pa": "PA", "panama": "PA",
    "za": "ZA", "south africa": "ZA", "ma": "MA", "morocco": "MA", "ng": "NG", "nigeria": "NG",
    "ke": "KE", "kenya": "KE",
}

WORLD_REGIONS = {
    "NORTH_AMERICA": {"US", "CA", "MX"},
    "ASIA_PACIFIC": {"CN", "JP", "KR", "TW", "VN", "TH", "SG", "MY", "ID", "PH", "IN", "BD"},
    "EUROPE": {"DE", "FR", "GB", "ES", "IT", "NL", "BE", "PL"},
    "MIDDLE_EAST": {"AE", "SA", "QA", "TR", "EG"},
    "LATIN_AMERICA": {"BR", "CO", "CL", "PE", "AR", "PA"},
    "AFRICA": {"ZA", "MA", "NG", "KE"},
}

CARGO_CATEGORIES = {
    "HAZMAT": ["hazardous", "dangerous goods", "chemical", "flammable", "corrosive", "explosive"],
    "MACHINERY": ["machine", "machinery", "equipment", "excavator", "loader", "dozer", "crane",
                  "forklift", "tractor", "generator", "compressor", "heat exchanger"],
    "VEHICLES": ["vehicle", "car", "truck", "bus", "trailer", "automobile", "suv"],
    "CONTAINERS": ["container", "20ft", "40ft", "high cube", "flat rack", "open top"],
    "INDUSTRIAL": ["steel", "metal", "pipe", "coil", "beam", "plate", "iron", "aluminum"],
    "AGRICULTURAL": ["grain", "feed", "fertilizer", "seed", "agricultural", "farm"],
    "OVERSIZED": ["overweight", "overdimensional", "heavy haul", "project cargo", "oog", "out of gauge"],
}

# Conversion factors
KG_PER_UNIT = {
    "kg": 1.0, "kgs": 1.0, "kilogram": 1.0, "kilograms": 1.0,
    "lb": 0.453592, "lbs": 0.453592, "pound": 0.453592, "pounds": 0.453592,
    "t": 1000.0, "ton": 1000.0, "tons": 1000.0, "tonne": 1000.0, "tonnes": 1000.0, "mt": 1000.0,
}
METRES_PER_UNIT = {
    "m": 1.0, "meter": 1.0, "meters": 1.0, "metre": 1.0, "metres": 1.0,
    "cm": 0.01, "mm": 0.001,
    "in": 0.0254, "inch": 0.0254, "inches": 0.0254,
    "ft": 0.3048, "foot": 0.3048, "feet": 0.3048,
}
DEFAULT_WEIGHT_UNIT = "kg"
DEFAULT_DIMENSION_UNIT = "in"  # Freight emails quote dimensions in inches unless stated


@dataclass(frozen=True)
class Location:
    """Normalized endpoint of a lane."""
    city: Optional[str]
    state: Optional[str]
    country: str
    region: Optional[str]
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class QuoteFeatures:
    """
    Comparable feature set for one quote.

    Field names double as criterion names in match_criteria.
    """
    quote_id: int
    origin: Optional[Location]
    destination: Optional[Location]
    weight: Optional[float]  # kg
    volume: Optional[float]  # cubic metres
    service_type: Optional[str]
    hazmat: Optional[bool]
    cargo_category: Optional[str]
    piece_count: Optional[int]


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    cleaned = " ".join(text.strip().lower().split())
    return cleaned or None


def normalize_country(country: Optional[str], state: Optional[str] = None) -> Optional[str]:
    """
    Map free-form country text to a two-letter code.

    A missing country is inferred as US when the state is a US state code.
    Unknown names are kept upper-cased so equal spellings still compare equal.
    """
    cleaned = _clean(country)
    if cleaned:
        return COUNTRY_ALIASES.get(cleaned, cleaned.upper())
    state_code = (state or "").strip().upper()
    if state_code in US_STATE_CODES:
        return "US"
    return None


def get_world_region(country: Optional[str]) -> Optional[str]:
    for region, codes in WORLD_REGIONS.items():
        if country in codes:
            return region
    return None


def get_region(country: Optional[str], state: Optional[str]) -> Optional[str]:
    """US quotes resolve to a US region by state; others to a world region."""
    if country == "US":
        state_code = (state or "").strip().upper()
        for region, codes in US_STATE_REGIONS.items():
            if state_code in codes:
                return region
        return "OTHER_US"
    return get_world_region(country)


def extract_location(
    city: Optional[str],
    state: Optional[str],
    country: Optional[str],
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Optional[Location]:
    country_code = normalize_country(country, state)
    if country_code is None:
        return None
    state_clean = (state or "").strip().upper() or None
    return Location(
        city=_clean(city),
        state=state_clean,
        country=country_code,
        region=get_region(country_code, state_clean),
        latitude=latitude,
        longitude=longitude,
    )


def normalize_service_type(service_type: Optional[str]) -> Optional[str]:
    """
    Map a service description to a service category.

    Multi-part descriptions ("ocean + drayage") resolve to INTERMODAL when
    ocean is combined with trucking. Unmapped text keeps its own label.
    """
    cleaned = _clean(service_type)
    if not cleaned:
        return None

    categories = []
    for part in re.split(r"[/,;+&]+", cleaned):
        part = part.strip()
        for pattern, category in SERVICE_TYPE_MAPPING.items():
            if pattern in part:
                if category not in categories:
                    categories.append(category)
                break

    if not categories:
        return cleaned.upper()
    if len(categories) == 1:
        return categories[0]
    if "OCEAN" in categories and ("GROUND" in categories or "DRAYAGE" in categories):
        return "INTERMODAL"
    if "GROUND" in categories and "DRAYAGE" in categories:
        return "GROUND"
    return categories[0]


def classify_cargo(description: Optional[str]) -> Optional[str]:
    """Keyword classification of cargo; GENERAL when nothing specific matches."""
    cleaned = _clean(description)
    if not cleaned:
        return None
    for category, keywords in CARGO_CATEGORIES.items():
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}s?\b", cleaned):
                return category
    return "GENERAL"


def _non_negative(value: Optional[float], field: str, quote_id: int) -> Optional[float]:
    if value is None:
        return None
    if value < 0:
        raise ValidationError(f"Quote {quote_id}: {field} must not be negative (got {value})", field=field)
    return float(value)


def _unit_factor(unit: Optional[str], table: dict, default: str) -> Optional[float]:
    """Conversion factor for a unit label; None for labels we can't interpret."""
    key = (_clean(unit) or default).rstrip(".")
    return table.get(key)


def convert_weight_kg(weight: Optional[float], unit: Optional[str], quote_id: int = 0) -> Optional[float]:
    weight = _non_negative(weight, "cargo_weight", quote_id)
    if weight is None:
        return None
    factor = _unit_factor(unit, KG_PER_UNIT, DEFAULT_WEIGHT_UNIT)
    if factor is None:
        logger.debug("unknown_weight_unit", quote_id=quote_id, unit=unit)
        return None
    return weight * factor


def compute_volume_m3(
    length: Optional[float],
    width: Optional[float],
    height: Optional[float],
    unit: Optional[str],
    quote_id: int = 0,
) -> Optional[float]:
    dims = [
        _non_negative(length, "cargo_length", quote_id),
        _non_negative(width, "cargo_width", quote_id),
        _non_negative(height, "cargo_height", quote_id),
    ]
    if any(d is None for d in dims):
        return None
    factor = _unit_factor(unit, METRES_PER_UNIT, DEFAULT_DIMENSION_UNIT)
    if factor is None:
        logger.debug("unknown_dimension_unit", quote_id=quote_id, unit=unit)
        return None
    return (dims[0] * factor) * (dims[1] * factor) * (dims[2] * factor)


def extract_features(quote: QuoteSnapshot) -> QuoteFeatures:
    """
    Build the comparable feature set for a quote.

    Raises:
        ValidationError: negative weight, dimension or piece count
    """
    pieces = quote.number_of_pieces
    if pieces is not None and pieces < 0:
        raise ValidationError(
            f"Quote {quote.quote_id}: number_of_pieces must not be negative (got {pieces})",
            field="number_of_pieces",
        )

    return QuoteFeatures(
        quote_id=quote.quote_id,
        origin=extract_location(
            quote.origin_city, quote.origin_state_province, quote.origin_country,
            quote.origin_latitude, quote.origin_longitude,
        ),
        destination=extract_location(
            quote.destination_city, quote.destination_state_province, quote.destination_country,
            quote.destination_latitude, quote.destination_longitude,
        ),
        weight=convert_weight_kg(quote.cargo_weight, quote.weight_unit, quote.quote_id),
        volume=compute_volume_m3(
            quote.cargo_length, quote.cargo_width, quote.cargo_height,
            quote.dimension_unit, quote.quote_id,
        ),
        service_type=normalize_service_type(quote.service_type),
        hazmat=quote.hazardous_material,
        cargo_category=classify_cargo(quote.cargo_description),
        piece_count=pieces,
    )
