# travel_info/services/geocoding.py
"""Resolves a free-text place name to coordinates and a country code.

Providers are tried in order (Open-Meteo, official Nominatim, geocode.maps.co);
the first one that yields a result wins. The two Nominatim-backed providers
share one RateGate and recover a missing country code with a reverse lookup.
"""

import math
from typing import Any, Dict, List, Optional, Protocol, Sequence

import structlog

from travel_info.core.config import settings
from travel_info.models.dto import GeoResult
from travel_info.services.http_fetch import JsonFetcher
from travel_info.services.rate_gate import RateGate

logger = structlog.get_logger(__name__)


class GeocodingProvider(Protocol):
    """A single geocoding source in the fallback chain."""
    name: str

    async def search(self, place: str) -> Optional[GeoResult]: ...


class OpenMeteoGeocoder:
    """Fast provider without aggressive limits; returns timezone and ISO2 code directly."""

    name = "open-meteo"

    def __init__(self, fetcher: JsonFetcher, *, url: str = settings.OPEN_METEO_GEOCODE_URL,
                 language: str = settings.GEOCODE_LANGUAGE):
        self.fetcher = fetcher
        self.url = url
        self.language = language

    async def search(self, place: str) -> Optional[GeoResult]:
        data = await self.fetcher.fetch_json(
            self.url,
            params={"name": place, "count": 1, "language": self.language, "format": "json"},
            timeout=settings.OPEN_METEO_GEOCODE_TIMEOUT,
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            return None

        r = results[0]
        code = r.get("country_code")
        return GeoResult(
            name=r.get("name") or place,
            country=r.get("country"),
            country_code=code.upper() if isinstance(code, str) and code else None,
            latitude=r["latitude"],
            longitude=r["longitude"],
            timezone=r.get("timezone"),
            provider=self.name,
        )


def _country_code(payload: Any) -> Optional[str]:
    address = payload.get("address") if isinstance(payload, dict) else None
    code = address.get("country_code") if isinstance(address, dict) else None
    if not isinstance(code, str):
        return None
    return code.strip().upper() or None


def _parse_coordinate(value: Any) -> Optional[float]:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


class NominatimStyleGeocoder:
    """
    Shared behavior of Nominatim-compatible search endpoints.

    Each call passes through the RateGate. When the search result has
    coordinates but no country code, one reverse lookup is issued against the
    official Nominatim endpoint; its failure leaves the code as None.
    """

    name = "nominatim-style"
    search_timeout = settings.NOMINATIM_SEARCH_TIMEOUT

    def __init__(
        self,
        fetcher: JsonFetcher,
        gate: RateGate,
        *,
        url: str,
        reverse_url: str = settings.NOMINATIM_REVERSE_URL,
        language: str = settings.GEOCODE_LANGUAGE,
        email: Optional[str] = settings.NOMINATIM_EMAIL,
    ):
        self.fetcher = fetcher
        self.gate = gate
        self.url = url
        self.reverse_url = reverse_url
        self.language = language
        self.email = email

    @property
    def headers(self) -> Dict[str, str]:
        return {"Accept-Language": self.language}

    def search_params(self, place: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def search(self, place: str) -> Optional[GeoResult]:
        await self.gate.acquire()
        data = await self.fetcher.fetch_json(
            self.url,
            params=self.search_params(place),
            headers=self.headers,
            timeout=self.search_timeout,
        )
        if not isinstance(data, list) or not data:
            return None

        r = data[0]
        lat = _parse_coordinate(r.get("lat"))
        lon = _parse_coordinate(r.get("lon"))
        if lat is None or lon is None:
            logger.warning("geocode_unparseable_coordinates", provider=self.name, place=place)
            return None

        code = _country_code(r)
        if code is None:
            code = await self.reverse_country_code(lat, lon)

        address = r.get("address")
        display_name = r.get("display_name") or ""
        return GeoResult(
            name=r.get("name") or display_name.split(",")[0].strip() or place,
            country=address.get("country") if isinstance(address, dict) else None,
            country_code=code,
            latitude=lat,
            longitude=lon,
            timezone=None,  # the forecast provider infers it with timezone=auto
            provider=self.name,
        )

    async def reverse_country_code(self, lat: float, lon: float) -> Optional[str]:
        await self.gate.acquire()
        try:
            payload = await self.fetcher.fetch_json(
                self.reverse_url,
                params={
                    "lat": lat,
                    "lon": lon,
                    "format": "jsonv2",
                    "addressdetails": 1,
                    "accept-language": self.language,
                    "email": self.email,
                },
                headers=self.headers,
                timeout=settings.NOMINATIM_REVERSE_TIMEOUT,
            )
            return _country_code(payload)
        except Exception as e:
            logger.warning("geocode_reverse_failed", provider=self.name, lat=lat, lon=lon, error=str(e))
            return None


class NominatimGeocoder(NominatimStyleGeocoder):
    """Official OpenStreetMap Nominatim (usage policy: at most 1 request/second)."""

    name = "nominatim"

    def __init__(self, fetcher: JsonFetcher, gate: RateGate, **kwargs):
        kwargs.setdefault("url", settings.NOMINATIM_SEARCH_URL)
        super().__init__(fetcher, gate, **kwargs)

    def search_params(self, place: str) -> Dict[str, Any]:
        return {
            "q": place,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": 1,
            "accept-language": self.language,
            "email": self.email,
        }


class MapsCoGeocoder(NominatimStyleGeocoder):
    """geocode.maps.co, another Nominatim front end."""

    name = "maps.co"
    search_timeout = settings.MAPS_CO_TIMEOUT

    def __init__(self, fetcher: JsonFetcher, gate: RateGate, **kwargs):
        kwargs.setdefault("url", settings.MAPS_CO_SEARCH_URL)
        super().__init__(fetcher, gate, **kwargs)

    def search_params(self, place: str) -> Dict[str, Any]:
        return {"q": place, "limit": 1}


class GeocodeResolver:
    """Ordered fallback chain over GeocodingProvider instances."""

    def __init__(self, providers: Sequence[GeocodingProvider]):
        self.providers: List[GeocodingProvider] = list(providers)

    @classmethod
    def default(cls, fetcher: JsonFetcher, gate: RateGate) -> "GeocodeResolver":
        return cls([
            OpenMeteoGeocoder(fetcher),
            NominatimGeocoder(fetcher, gate),
            MapsCoGeocoder(fetcher, gate),
        ])

    async def resolve(self, place: str) -> Optional[GeoResult]:
        """
        Returns the first provider result for ``place``, or None when every
        provider failed or found nothing. Provider errors never escape.
        """
        for provider in self.providers:
            try:
                result = await provider.search(place)
            except Exception as e:
                logger.warning("geocode_provider_failed", provider=provider.name, place=place, error=str(e))
                continue
            if result is not None:
                logger.info(
                    "geocode_resolved",
                    provider=provider.name,
                    place=place,
                    country_code=result.country_code,
                )
                return result
            logger.info("geocode_provider_empty", provider=provider.name, place=place)

        logger.warning("geocode_exhausted", place=place, providers=len(self.providers))
        return None
