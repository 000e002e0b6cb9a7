import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

log = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Scopes structlog context to one API call. A caller-supplied X-Request-ID is
    kept so a batch can be correlated across a proxy; otherwise one is minted.
    Server errors are logged at warning level so failed batches stand out.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        clear_contextvars()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_contextvars(request_id=request_id, route=f"{request.method} {request.url.path}")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("api_call_crashed", elapsed_ms=round((time.perf_counter() - started) * 1000, 1))
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        emit = log.warning if response.status_code >= 500 else log.info
        emit("api_call", status_code=response.status_code, elapsed_ms=elapsed_ms)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
