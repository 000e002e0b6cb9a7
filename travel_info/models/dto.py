# Data models for geocoding results, enrichment bundles and batch outcomes.
# Public JSON uses camelCase aliases; Python code uses the snake_case names.

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# --- Geocoding ---

class GeoResult(BaseModel):
    """A place resolved by one of the geocoding providers."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name of the place.")
    country: Optional[str] = Field(None, description="Country name, if the provider returned one.")
    country_code: Optional[str] = Field(None, description="ISO-3166 alpha-2 code, upper-cased.")
    latitude: float
    longitude: float
    timezone: Optional[str] = Field(None, description="IANA timezone; None lets the weather provider infer it.")
    provider: Optional[str] = Field(None, description="Name of the provider that produced this result.")

# --- Enrichment ---

class Coordinates(CamelModel):
    latitude: float
    longitude: float

class Destination(CamelModel):
    input: str = Field(..., description="Destination text as submitted (trimmed).")
    resolved_name: str
    country: Optional[str] = None
    country_code: Optional[str] = None
    coordinates: Coordinates
    timezone: Optional[str] = None

class WeatherInfo(CamelModel):
    current: Optional[Dict[str, Any]] = Field(None, description="Current conditions block from the forecast provider.")
    daily: Optional[Dict[str, Any]] = Field(None, description="7-day daily series (max/min temperature, precipitation, wind).")

class Currency(CamelModel):
    code: str
    name: Optional[str] = None
    symbol: Optional[str] = None

class CountryInfo(CamelModel):
    name_official: Optional[str] = None
    region: Optional[str] = None
    subregion: Optional[str] = None
    capital: Optional[str] = None
    currencies: List[Currency] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    calling_code: Optional[str] = None

class HolidayInfo(CamelModel):
    year: int
    upcoming: List[Dict[str, Any]] = Field(default_factory=list, description="Up to 5 holidays on or after today, earliest first.")
    past: List[Dict[str, Any]] = Field(default_factory=list, description="Up to 5 most recent holidays before today.")

class ExchangeInfo(CamelModel):
    base: str
    quote: str
    rate: float

class EnrichmentBundle(CamelModel):
    """Best-effort composite; any branch is None when its provider call failed."""
    destination: Destination
    weather: Optional[WeatherInfo] = None
    country_info: Optional[CountryInfo] = None
    holidays: Optional[HolidayInfo] = None
    exchange: Optional[ExchangeInfo] = None
    sources: List[str] = Field(default_factory=list)

# --- Batch processing ---

class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"

class ItemOutcome(CamelModel):
    original_item: Any = Field(..., description="The input item (trimmed text when it was usable).")
    processed: bool
    status: OutcomeStatus
    processed_at: datetime
    data: Optional[EnrichmentBundle] = None
    error: Optional[str] = None

class ProcessResponse(CamelModel):
    success: bool = True
    total_items: int
    results: List[ItemOutcome]

# --- Diagnostics ---

class ExternalProbe(BaseModel):
    ok: bool
    url: Optional[str] = None
    status: Optional[int] = None

class ApiCheckResult(BaseModel):
    name: str
    status: Optional[int] = None
    error: Optional[str] = None

class ApiChecksResponse(BaseModel):
    ok: bool = True
    results: List[ApiCheckResult]

# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="A human-readable explanation.")
    hint: Optional[str] = Field(None, description="What the operator can do about it.")
    example: Optional[Dict[str, Any]] = Field(None, description="A valid request body, for validation errors.")
    details: Optional[Dict[str, Any]] = None
