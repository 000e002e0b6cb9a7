"""Unit tests for the resilient JSON fetcher."""

import asyncio
import json
import socket

import httpx
import pytest

from travel_info.models.errors import (
    HTTPStatusFetchError,
    MalformedPayloadError,
    TransportErrorKind,
    TransportFetchError,
    classify_transport_error,
)
from travel_info.services.http_fetch import RETRYABLE_STATUS_CODES, JsonFetcher

from stubs import RecordingSleep

URL = "https://api.example.test/v1/data"


@pytest.fixture
async def make_fetcher():
    """Builds fetchers over MockTransport handlers; their clients are closed on teardown."""
    clients = []

    def build(handler, sleep=None, jitter=lambda: 0.0):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return JsonFetcher(client, user_agent="TestAgent/1.0", sleep=sleep or RecordingSleep(), jitter=jitter)

    yield build
    for client in clients:
        await client.aclose()


class Sequenced:
    """Handler that plays back a list of responses, repeating the last one."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        item = self.responses[index]
        if isinstance(item, Exception):
            raise item
        # Fresh response per request; httpx binds a response to one request
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)


class TestSuccess:
    async def test_returns_parsed_json(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(200, json={"ok": True, "items": [1, 2]}))
        fetcher = make_fetcher(handler)
        assert await fetcher.fetch_json(URL) == {"ok": True, "items": [1, 2]}
        assert len(handler.requests) == 1

    async def test_sends_default_headers(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(200, json={}))
        fetcher = make_fetcher(handler)
        await fetcher.fetch_json(URL)
        sent = handler.requests[0]
        assert sent.method == "GET"
        assert sent.headers["User-Agent"] == "TestAgent/1.0"
        assert sent.headers["Accept"] == "application/json"
        assert "Content-Type" not in sent.headers

    async def test_caller_headers_override_defaults(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(200, json={}))
        fetcher = make_fetcher(handler)
        await fetcher.fetch_json(URL, headers={"Accept": "text/plain", "Accept-Language": "pt"})
        sent = handler.requests[0]
        assert sent.headers["Accept"] == "text/plain"
        assert sent.headers["Accept-Language"] == "pt"

    async def test_body_is_sent_as_json(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(201, json={"created": 1}))
        fetcher = make_fetcher(handler)
        result = await fetcher.fetch_json(URL, method="POST", body={"city": "Lisboa"})
        sent = handler.requests[0]
        assert result == {"created": 1}
        assert sent.method == "POST"
        assert sent.headers["Content-Type"] == "application/json"
        assert json.loads(sent.content) == {"city": "Lisboa"}

    async def test_params_merge_into_existing_query(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(200, json={}))
        fetcher = make_fetcher(handler)
        await fetcher.fetch_json(
            f"{URL}?format=xml&keep=1",
            params={"format": "json", "count": 1, "email": None, "current_weather": True},
        )
        params = handler.requests[0].url.params
        assert params["keep"] == "1"
        assert params["format"] == "json"
        assert params["count"] == "1"
        assert params["current_weather"] == "true"
        assert "email" not in params


class TestRetries:
    async def test_retryable_status_then_success(self, make_fetcher) -> None:
        handler = Sequenced(
            httpx.Response(503, text="busy"),
            httpx.Response(503, text="busy"),
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"ok": True}),
        )
        sleep = RecordingSleep()
        fetcher = make_fetcher(handler, sleep=sleep)

        result = await fetcher.fetch_json(URL, retries=4, base_delay=0.35)

        assert result == {"ok": True}
        assert len(handler.requests) == 4
        assert len(sleep.delays) == 3

    async def test_each_delay_at_least_exponential_base(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(429), httpx.Response(429), httpx.Response(200, json=[]))
        sleep = RecordingSleep()
        fetcher = make_fetcher(handler, sleep=sleep, jitter=lambda: 0.1)

        await fetcher.fetch_json(URL, retries=4, base_delay=0.35)

        for attempt, delay in enumerate(sleep.delays):
            assert delay >= 0.35 * 2 ** attempt
        assert sleep.delays == pytest.approx([0.45, 0.8])

    async def test_non_retryable_status_fails_after_one_attempt(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(404, text="Not Found: " + "x" * 500))
        sleep = RecordingSleep()
        fetcher = make_fetcher(handler, sleep=sleep)

        with pytest.raises(HTTPStatusFetchError) as excinfo:
            await fetcher.fetch_json(URL, retries=4)

        assert len(handler.requests) == 1
        assert sleep.delays == []
        assert "404" in str(excinfo.value)
        assert excinfo.value.status_code == 404
        assert len(excinfo.value.body_snippet) == 200
        assert excinfo.value.body_snippet.startswith("Not Found")

    async def test_retryable_status_exhausts_retries(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(502, text="bad gateway"))
        sleep = RecordingSleep()
        fetcher = make_fetcher(handler, sleep=sleep)

        with pytest.raises(HTTPStatusFetchError) as excinfo:
            await fetcher.fetch_json(URL, retries=2)

        assert len(handler.requests) == 3
        # No delay after the final attempt
        assert len(sleep.delays) == 2
        assert excinfo.value.status_code == 502
        assert excinfo.value.attempts == 3
        assert "bad gateway" in str(excinfo.value)

    @pytest.mark.parametrize("status_code", sorted(RETRYABLE_STATUS_CODES))
    async def test_all_retryable_statuses_are_retried(self, make_fetcher, status_code: int) -> None:
        handler = Sequenced(httpx.Response(status_code), httpx.Response(200, json={"ok": 1}))
        fetcher = make_fetcher(handler)
        assert await fetcher.fetch_json(URL, retries=1) == {"ok": 1}
        assert len(handler.requests) == 2

    async def test_total_backoff_grows_with_retry_count(self, make_fetcher) -> None:
        totals = []
        for retries in range(1, 5):
            sleep = RecordingSleep()
            fetcher = make_fetcher(Sequenced(httpx.Response(503)), sleep=sleep)
            with pytest.raises(HTTPStatusFetchError):
                await fetcher.fetch_json(URL, retries=retries, base_delay=0.35)
            totals.append(sum(sleep.delays))
        assert totals == sorted(totals)
        assert totals[-1] == pytest.approx(0.35 * (1 + 2 + 4 + 8))

    async def test_zero_retries_makes_single_attempt(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(503))
        fetcher = make_fetcher(handler)
        with pytest.raises(HTTPStatusFetchError):
            await fetcher.fetch_json(URL, retries=0)
        assert len(handler.requests) == 1


class TestMalformedPayload:
    async def test_invalid_json_is_retried(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(200, text="<html>oops</html>"), httpx.Response(200, json={"ok": 1}))
        fetcher = make_fetcher(handler)
        assert await fetcher.fetch_json(URL, retries=2) == {"ok": 1}
        assert len(handler.requests) == 2

    async def test_invalid_json_on_last_attempt(self, make_fetcher) -> None:
        handler = Sequenced(httpx.Response(200, text="not json"))
        fetcher = make_fetcher(handler)
        with pytest.raises(MalformedPayloadError, match="Invalid JSON"):
            await fetcher.fetch_json(URL, retries=1)
        assert len(handler.requests) == 2


class TestTransportErrors:
    async def test_connection_refused_is_retried_then_described(self, make_fetcher) -> None:
        def refuse(request):
            try:
                raise ConnectionRefusedError(111, "Connection refused")
            except ConnectionRefusedError as cause:
                raise httpx.ConnectError("All connection attempts failed", request=request) from cause

        sleep = RecordingSleep()
        fetcher = make_fetcher(refuse, sleep=sleep)

        with pytest.raises(TransportFetchError) as excinfo:
            await fetcher.fetch_json(URL, retries=3)

        error = excinfo.value
        assert error.kind == TransportErrorKind.CONNECTION_REFUSED
        assert error.attempts == 4
        assert len(sleep.delays) == 3
        message = str(error)
        assert "kind=connection_refused" in message
        assert "errno=111" in message
        assert "host=api.example.test" in message
        assert "port=443" in message

    async def test_transport_error_then_success(self, make_fetcher) -> None:
        handler = Sequenced(httpx.ReadError("connection reset"), httpx.Response(200, json={"ok": True}))
        fetcher = make_fetcher(handler)
        assert await fetcher.fetch_json(URL, retries=1) == {"ok": True}

    async def test_slow_response_times_out(self, make_fetcher) -> None:
        async def slow(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={})

        fetcher = make_fetcher(slow)
        with pytest.raises(TransportFetchError) as excinfo:
            await fetcher.fetch_json(URL, timeout=0.05, retries=0)
        assert excinfo.value.kind == TransportErrorKind.TIMEOUT


class TestClassification:
    def test_dns_failure(self) -> None:
        try:
            raise socket.gaierror(-3, "Temporary failure in name resolution")
        except socket.gaierror as cause:
            exc = httpx.ConnectError("name resolution failed")
            exc.__cause__ = cause
        assert classify_transport_error(exc) == TransportErrorKind.DNS_FAILURE

    def test_reset(self) -> None:
        exc = httpx.ReadError("reset")
        exc.__cause__ = ConnectionResetError(104, "Connection reset by peer")
        assert classify_transport_error(exc) == TransportErrorKind.RESET

    def test_timeout(self) -> None:
        assert classify_transport_error(httpx.ReadTimeout("timed out")) == TransportErrorKind.TIMEOUT
        assert classify_transport_error(TimeoutError()) == TransportErrorKind.TIMEOUT

    def test_other(self) -> None:
        assert classify_transport_error(httpx.UnsupportedProtocol("ftp")) == TransportErrorKind.OTHER


async def test_default_jitter_is_bounded(make_fetcher) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200), jitter=None)
    for attempt in range(4):
        delay = fetcher.backoff_delay(attempt, 0.35)
        assert 0.35 * 2 ** attempt <= delay <= 0.35 * 2 ** attempt + 0.25
