import httpx
import pytest

from stubs import TODAY, FakeClock, ProviderStub, RecordingSleep
from travel_info.services.batch_runner import BatchRunner
from travel_info.services.enrichment import EnrichmentAggregator
from travel_info.services.geocoding import GeocodeResolver
from travel_info.services.http_fetch import JsonFetcher
from travel_info.services.rate_gate import RateGate


@pytest.fixture
def stub():
    return ProviderStub()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
async def http_client(stub):
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
        yield client


@pytest.fixture
def fetcher(http_client, sleep):
    return JsonFetcher(http_client, sleep=sleep, jitter=lambda: 0.0)


@pytest.fixture
def gate():
    clock = FakeClock()
    return RateGate(1.2, clock=clock, sleep=RecordingSleep(clock))


@pytest.fixture
def resolver(fetcher, gate):
    return GeocodeResolver.default(fetcher, gate)


@pytest.fixture
def aggregator(fetcher):
    return EnrichmentAggregator(fetcher, quote_currency="BRL", today=lambda: TODAY)


@pytest.fixture
def runner(resolver, aggregator):
    return BatchRunner(resolver, aggregator)
