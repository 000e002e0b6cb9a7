# travel_info/api/routes.py
# HTTP front end: batch processing plus connectivity diagnostics.

from fastapi import APIRouter, Body, Request, HTTPException, status, Depends
from fastapi.responses import JSONResponse
import httpx
import logging
import time
from typing import Any

from structlog.contextvars import bind_contextvars

from travel_info.core.config import settings
from travel_info.models.dto import (
    ApiChecksResponse,
    ErrorResponse,
    ProcessResponse,
)
from travel_info.services.batch_runner import BatchRunner
from travel_info.services.health import check_apis, external_healthcheck

router = APIRouter()
logger = logging.getLogger(__name__)

EXAMPLE_BODY = {"items": ["Lisboa", "Buenos Aires", "Tokyo"]}

# ----------------------------------------------------------------------
# Dependencies (wired in main.lifespan)
# ----------------------------------------------------------------------
def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client

def get_batch_runner(request: Request) -> BatchRunner:
    return request.app.state.batch_runner

# ----------------------------------------------------------------------
# Info
# ----------------------------------------------------------------------
@router.get("/")
async def index():
    return {
        "message": f"{settings.PROJECT_NAME} API v{settings.VERSION} ok",
        "endpoints": {
            "POST /process": "Input: destinations; output: weather, country, currency, exchange rate and holidays",
            "GET /health/external": "Outbound network diagnostics",
            "GET /health/apis": "Per-provider diagnostics",
        },
        "tips": [
            "Optional: export NOMINATIM_EMAIL=you@domain (improves acceptance by Nominatim)",
            "Behind a proxy, export HTTPS_PROXY/HTTP_PROXY",
        ],
    }

# ----------------------------------------------------------------------
# Diagnostics
# ----------------------------------------------------------------------
@router.get("/health/external")
async def health_external(client: httpx.AsyncClient = Depends(get_http_client)):
    probe = await external_healthcheck(client)
    if probe.ok:
        return {"ok": True, "probe": probe.model_dump()}
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"ok": False, "message": "No outbound access. Check proxy/firewall/DNS."},
    )

@router.get("/health/apis", response_model=ApiChecksResponse)
async def health_apis(client: httpx.AsyncClient = Depends(get_http_client)):
    return ApiChecksResponse(ok=True, results=await check_apis(client))

# ----------------------------------------------------------------------
# Batch processing
# ----------------------------------------------------------------------
@router.post(
    "/process",
    response_model=ProcessResponse,
    responses={
        400: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def process(
    payload: Any = Body(None, examples=[EXAMPLE_BODY]),
    client: httpx.AsyncClient = Depends(get_http_client),
    runner: BatchRunner = Depends(get_batch_runner),
):
    """Resolve every destination in `items`, one outcome per item, in order."""
    # Any other shape (no body, a bare array, a string) gets the same 400 as a missing field
    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorResponse(
                error='Field "items" is required and must be an array',
                example=EXAMPLE_BODY,
            ).model_dump(exclude_none=True),
        )
    if not items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorResponse(error='Array "items" must not be empty').model_dump(exclude_none=True),
        )

    if settings.CHECK_EXTERNAL_BEFORE_PROCESS:
        probe = await external_healthcheck(client)
        if not probe.ok:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=ErrorResponse(
                    error="No internet access from the server",
                    hint="Configure proxy/firewall/DNS or run locally with egress allowed",
                    details=probe.model_dump(),
                ).model_dump(exclude_none=True),
            )

    bind_contextvars(batch_size=len(items))
    start_time = time.perf_counter()
    results = await runner.process(items)
    logger.info(f"Processed {len(items)} destinations in {time.perf_counter() - start_time:.2f}s")

    return ProcessResponse(success=True, total_items=len(items), results=results)
