# travel_info/services/health.py
# Outbound connectivity diagnostics. Each probe is a single request without retries.

import logging
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

import httpx

from travel_info.core.config import settings
from travel_info.models.dto import ApiCheckResult, ExternalProbe

logger = logging.getLogger(__name__)

EXTERNAL_PROBES: Sequence[Tuple[str, int]] = (
    ("https://www.google.com/generate_204", 204),
    ("https://cloudflare.com/cdn-cgi/trace", 200),
)


def provider_checks(year: int) -> List[Tuple[str, str]]:
    """One lightweight request per provider used by the resolution engine."""
    return [
        ("open-meteo-geocode", f"{settings.OPEN_METEO_GEOCODE_URL}?name=Lisboa&count=1&format=json"),
        ("nominatim", f"{settings.NOMINATIM_SEARCH_URL}?q=Lisboa&format=jsonv2&addressdetails=1&limit=1"),
        ("maps-co", f"{settings.MAPS_CO_SEARCH_URL}?q=Lisboa&limit=1"),
        ("open-meteo-forecast", f"{settings.OPEN_METEO_FORECAST_URL}?latitude=38.72&longitude=-9.14&current_weather=true&forecast_days=1"),
        ("restcountries", f"{settings.RESTCOUNTRIES_URL}/PT"),
        ("nager-date", f"{settings.NAGER_HOLIDAYS_URL}/{year}/PT"),
        ("exchangerate-host", f"{settings.EXCHANGE_RATE_URL}?base=EUR&symbols={settings.EXCHANGE_QUOTE_CURRENCY}"),
    ]


async def external_healthcheck(
    client: httpx.AsyncClient,
    probes: Sequence[Tuple[str, int]] = EXTERNAL_PROBES,
) -> ExternalProbe:
    """Succeeds as soon as one well-known endpoint answers with its expected status."""
    for url, expected in probes:
        try:
            response = await client.get(url, timeout=settings.EXTERNAL_PROBE_TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"External probe {url} failed: {e!r}")
            continue
        if response.status_code == expected:
            return ExternalProbe(ok=True, url=url, status=response.status_code)
        logger.warning(f"External probe {url} returned {response.status_code}, expected {expected}")
    return ExternalProbe(ok=False)


async def check_apis(client: httpx.AsyncClient) -> List[ApiCheckResult]:
    results: List[ApiCheckResult] = []
    year = datetime.now(timezone.utc).year
    for name, url in provider_checks(year):
        try:
            response = await client.get(
                url,
                timeout=settings.API_CHECK_TIMEOUT,
                headers={"Accept-Language": settings.GEOCODE_LANGUAGE, "User-Agent": settings.USER_AGENT},
            )
            results.append(ApiCheckResult(name=name, status=response.status_code))
        except httpx.HTTPError as e:
            results.append(ApiCheckResult(name=name, error=str(e) or type(e).__name__))
    return results
