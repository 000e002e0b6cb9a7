# travel_info/services/http_fetch.py
"""Resilient JSON fetch: one logical provider request with a bounded timeout,
exponential backoff with jitter, and classified failures.
"""

import asyncio
import json
import random
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx
import structlog

from travel_info.core.config import settings
from travel_info.models.errors import (
    FetchError,
    HTTPStatusFetchError,
    MalformedPayloadError,
    TransportFetchError,
    classify_transport_error,
    describe_transport_error,
)
from travel_info.utils.urls import truncate, with_query

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})

SleepFunc = Callable[[float], Awaitable[None]]


class JsonFetcher:
    """
    Issues JSON requests over a shared ``httpx.AsyncClient``.

    ``sleep`` and ``jitter`` are injectable so backoff can be observed in tests
    without waiting on the wall clock.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        user_agent: str = settings.USER_AGENT,
        sleep: SleepFunc = asyncio.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ):
        self.client = client
        self.default_headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
        }
        self._sleep = sleep
        self._jitter = jitter or (lambda: random.uniform(0, settings.FETCH_MAX_JITTER_SECONDS))

    def backoff_delay(self, attempt: int, base_delay: float) -> float:
        """Delay before the attempt following ``attempt`` (0-based)."""
        return base_delay * (2 ** attempt) + self._jitter()

    def _build_headers(self, headers: Optional[Mapping[str, str]], has_body: bool) -> httpx.Headers:
        # httpx.Headers merges case-insensitively, so "accept" from a caller replaces "Accept"
        merged = httpx.Headers(self.default_headers)
        if has_body:
            merged["Content-Type"] = "application/json"
        if headers:
            merged.update(headers)
        return merged

    async def _send(self, method: str, url: str, headers: httpx.Headers, content: Optional[bytes]):
        response = await self.client.request(method, url, headers=headers, content=content)
        # Reading the body inside the timeout window keeps slow bodies bounded too
        return response.status_code, response.text

    async def fetch_json(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        timeout: float = settings.FETCH_TIMEOUT_SECONDS,
        retries: int = settings.FETCH_MAX_RETRIES,
        base_delay: float = settings.FETCH_BASE_DELAY_SECONDS,
    ) -> Any:
        """
        Returns the parsed JSON body of ``url``.

        Makes up to ``retries + 1`` attempts. Retryable statuses, malformed
        payloads and transport failures are retried; any other status fails
        immediately.

        Raises:
            HTTPStatusFetchError: non-2xx status that is not retryable, or on the last attempt.
            MalformedPayloadError: the last attempt returned a body that is not JSON.
            TransportFetchError: the last attempt failed below the HTTP layer.
        """
        final_url = with_query(url, params)
        has_body = body is not None
        request_headers = self._build_headers(headers, has_body)
        content = json.dumps(body).encode("utf-8") if has_body else None
        last_error: Optional[FetchError] = None

        for attempt in range(retries + 1):
            is_last = attempt == retries
            try:
                status_code, text = await asyncio.wait_for(
                    self._send(method, final_url, request_headers, content),
                    timeout=timeout,
                )
            except (httpx.RequestError, TimeoutError, OSError) as exc:
                kind = classify_transport_error(exc)
                message = describe_transport_error(exc, final_url, kind)
                last_error = TransportFetchError(message, url=final_url, kind=kind, attempts=attempt + 1)
                if is_last:
                    raise last_error from exc
                logger.warning(
                    "fetch_transport_error",
                    url=final_url,
                    kind=kind.value,
                    attempt=attempt + 1,
                    max_attempts=retries + 1,
                    error=message,
                )
            else:
                if 200 <= status_code < 300:
                    try:
                        return json.loads(text)
                    except ValueError as exc:
                        last_error = MalformedPayloadError(url=final_url, attempts=attempt + 1)
                        if is_last:
                            raise last_error from exc
                        logger.warning("fetch_invalid_json", url=final_url, attempt=attempt + 1)
                else:
                    last_error = HTTPStatusFetchError(
                        url=final_url,
                        status_code=status_code,
                        body_snippet=truncate(text),
                        attempts=attempt + 1,
                    )
                    if status_code not in RETRYABLE_STATUS_CODES or is_last:
                        raise last_error
                    logger.warning(
                        "fetch_retryable_status",
                        url=final_url,
                        status_code=status_code,
                        attempt=attempt + 1,
                        max_attempts=retries + 1,
                    )

            delay = self.backoff_delay(attempt, base_delay)
            logger.debug("fetch_retry_scheduled", url=final_url, delay_s=round(delay, 3))
            await self._sleep(delay)

        # Only reachable with a negative retry count
        raise last_error or FetchError(f"No attempt made for {final_url}", url=final_url, attempts=0)
