# travel_info/services/enrichment.py
"""Fans out the weather, country, holiday and exchange-rate lookups for a
resolved place and assembles a best-effort EnrichmentBundle.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import quote

import structlog

from travel_info.core.config import settings
from travel_info.models.dto import (
    Coordinates,
    CountryInfo,
    Currency,
    Destination,
    EnrichmentBundle,
    ExchangeInfo,
    GeoResult,
    HolidayInfo,
    WeatherInfo,
)
from travel_info.services.http_fetch import JsonFetcher

logger = structlog.get_logger(__name__)

DAILY_WEATHER_VARS = "temperature_2m_max,temperature_2m_min,precipitation_sum,windspeed_10m_max"
FORECAST_DAYS = 7
MAX_HOLIDAYS_PER_SIDE = 5

SOURCES = [
    "https://nominatim.openstreetmap.org/",
    "https://geocode.maps.co/",
    "https://open-meteo.com/en/docs",
    "https://restcountries.com/",
    "https://date.nager.at",
    "https://exchangerate.host",
]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_country(payload: Any) -> CountryInfo:
    """Extracts the fields we expose from a restcountries v3.1 record."""
    c = payload[0] if isinstance(payload, list) else payload
    c = c or {}

    currencies = [
        Currency(code=code, name=(v or {}).get("name"), symbol=(v or {}).get("symbol"))
        for code, v in (c.get("currencies") or {}).items()
    ]
    languages = list((c.get("languages") or {}).values())
    capitals = c.get("capital") or []
    idd = c.get("idd") or {}
    suffixes = idd.get("suffixes") or []
    calling_code = f"{idd['root']}{suffixes[0]}" if idd.get("root") and suffixes else None

    return CountryInfo(
        name_official=(c.get("name") or {}).get("official"),
        region=c.get("region"),
        subregion=c.get("subregion"),
        capital=capitals[0] if capitals else None,
        currencies=currencies,
        languages=languages,
        calling_code=calling_code,
    )


def split_holidays(holidays: List[dict], today: str) -> Tuple[List[dict], List[dict]]:
    """
    Partitions a year of holidays around ``today`` (ISO date string):
    the first 5 on/after today and the last 5 before it, both in date order.
    """
    ordered = sorted(holidays, key=lambda h: h.get("date") or "")
    upcoming = [h for h in ordered if (h.get("date") or "") >= today][:MAX_HOLIDAYS_PER_SIDE]
    past = [h for h in ordered if (h.get("date") or "") < today][-MAX_HOLIDAYS_PER_SIDE:]
    return upcoming, past


class EnrichmentAggregator:
    """
    Runs the four enrichment branches concurrently. A failed branch is logged
    and left as None; no branch failure cancels its siblings or escapes enrich().
    """

    def __init__(
        self,
        fetcher: JsonFetcher,
        *,
        quote_currency: str = settings.EXCHANGE_QUOTE_CURRENCY,
        today: Callable[[], date] = utc_today,
    ):
        self.fetcher = fetcher
        self.quote_currency = quote_currency
        self._today = today

    async def get_weather(self, lat: float, lon: float, tz: Optional[str]) -> WeatherInfo:
        data = await self.fetcher.fetch_json(
            settings.OPEN_METEO_FORECAST_URL,
            params={
                "latitude": lat,
                "longitude": lon,
                "daily": DAILY_WEATHER_VARS,
                "current_weather": True,
                "timezone": tz or "auto",
                "forecast_days": FORECAST_DAYS,
            },
            timeout=settings.WEATHER_TIMEOUT,
        )
        data = data or {}
        return WeatherInfo(current=data.get("current_weather"), daily=data.get("daily"))

    async def get_country_info(self, iso2: Optional[str]) -> Optional[CountryInfo]:
        if not iso2:
            return None
        data = await self.fetcher.fetch_json(
            f"{settings.RESTCOUNTRIES_URL}/{quote(iso2, safe='')}",
            timeout=settings.COUNTRY_TIMEOUT,
        )
        return parse_country(data)

    async def get_holidays(self, iso2: Optional[str]) -> Optional[HolidayInfo]:
        if not iso2:
            return None
        today = self._today()
        data = await self.fetcher.fetch_json(
            f"{settings.NAGER_HOLIDAYS_URL}/{today.year}/{quote(iso2, safe='')}",
            timeout=settings.HOLIDAYS_TIMEOUT,
        )
        upcoming, past = split_holidays(list(data or []), today.isoformat())
        return HolidayInfo(year=today.year, upcoming=upcoming, past=past)

    async def get_exchange_rate(self, base: Optional[str], quote_code: str) -> Optional[float]:
        if not base:
            return None
        data = await self.fetcher.fetch_json(
            settings.EXCHANGE_RATE_URL,
            params={"base": base, "symbols": quote_code, "access_key": settings.EXCHANGE_ACCESS_KEY},
            timeout=settings.EXCHANGE_TIMEOUT,
        )
        rate = ((data or {}).get("rates") or {}).get(quote_code)
        return float(rate) if rate else None

    async def get_exchange(self, iso2: Optional[str]) -> Optional[ExchangeInfo]:
        # Independent country lookup: this branch must not depend on the
        # outcome of the country-info branch running next to it.
        info = await self.get_country_info(iso2)
        base = info.currencies[0].code if info and info.currencies else None
        if not base:
            return None
        rate = await self.get_exchange_rate(base, self.quote_currency)
        if rate is None:
            return None
        return ExchangeInfo(base=base, quote=self.quote_currency, rate=rate)

    async def enrich(self, geo: GeoResult, place: Optional[str] = None) -> EnrichmentBundle:
        branches = {
            "weather": self.get_weather(geo.latitude, geo.longitude, geo.timezone),
            "country_info": self.get_country_info(geo.country_code),
            "holidays": self.get_holidays(geo.country_code),
            "exchange": self.get_exchange(geo.country_code),
        }
        settled = await asyncio.gather(*branches.values(), return_exceptions=True)

        values = {}
        for name, outcome in zip(branches, settled):
            if isinstance(outcome, Exception):
                logger.warning(
                    "enrichment_branch_failed",
                    branch=name,
                    place=place or geo.name,
                    error=str(outcome),
                )
                values[name] = None
            else:
                values[name] = outcome

        return EnrichmentBundle(
            destination=Destination(
                input=place or geo.name,
                resolved_name=geo.name,
                country=geo.country,
                country_code=geo.country_code,
                coordinates=Coordinates(latitude=geo.latitude, longitude=geo.longitude),
                timezone=geo.timezone,
            ),
            weather=values["weather"],
            country_info=values["country_info"],
            holidays=values["holidays"],
            exchange=values["exchange"],
            sources=list(SOURCES),
        )
