import logging
import sys
import structlog
from travel_info.core.config import settings

# Logger names that log every outbound provider request on their own
PROVIDER_CLIENT_LOGGERS = ("httpx", "httpcore")


def configure_logging():
    """
    One structlog pipeline for the service and the libraries under it.

    Events from a batch carry ``request_id``, ``batch_size`` and ``item_index``
    (bound by the middleware, the /process route and BatchRunner), so every
    provider retry can be traced back to the destination that caused it.
    """
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.ENV.lower() == "development"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=logging.INFO)
    logging.getLogger("travel_info").setLevel(settings.LOG_LEVEL.upper())
    for name in PROVIDER_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(settings.PROVIDER_LOG_LEVEL.upper())

    # uvicorn installs its own handlers; send its records through the root logger instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
