from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import httpx
import logging
import uuid

from travel_info.core.config import settings
from travel_info.logging import configure_logging
from travel_info.middleware.logging import LoggingMiddleware
from travel_info.api.routes import router as api_router
from travel_info.services.batch_runner import BatchRunner
from travel_info.services.enrichment import EnrichmentAggregator
from travel_info.services.geocoding import GeocodeResolver
from travel_info.services.http_fetch import JsonFetcher
from travel_info.services.rate_gate import RateGate

configure_logging()
logger = logging.getLogger(__name__)

def build_http_client() -> httpx.AsyncClient:
    # No client-wide read/write/pool deadline: JsonFetcher bounds each attempt with the
    # per-provider timeout (up to 15s for Nominatim search). Only connection setup is capped here.
    return httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=settings.HTTP_CONNECT_TIMEOUT_SECONDS),
        limits=httpx.Limits(
            max_connections=settings.HTTP_MAX_CONNECTIONS,
            keepalive_expiry=settings.HTTP_KEEPALIVE_EXPIRY_SECONDS,
        ),
        follow_redirects=True,
    )

def wire_services(app: FastAPI, client: httpx.AsyncClient) -> None:
    """Builds the resolution engine around ``client`` and stores it on app.state."""
    fetcher = JsonFetcher(client)
    gate = RateGate(settings.GEOCODE_MIN_INTERVAL_SECONDS)
    app.state.http_client = client
    app.state.rate_gate = gate
    app.state.batch_runner = BatchRunner(
        GeocodeResolver.default(fetcher, gate),
        EnrichmentAggregator(fetcher),
    )

# --- Application Lifecycle Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application startup: v{settings.VERSION} ({settings.ENV})")
    client = build_http_client()
    wire_services(app, client)

    yield

    logger.info("Application shutdown: closing HTTP client.")
    await client.aclose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.BRIEF_DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)
app.include_router(api_router)

# --- Global Exception Handler (for unhandled errors) ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())
    logger.error(f"Unhandled exception (ID: {error_id}): {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "error_id": error_id,
        }
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
