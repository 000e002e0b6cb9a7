"""Error types raised by the resilient fetch layer.

Every failure is classified once, where it happens, so callers never need to
pattern-match on message text.
"""

import errno
import socket
from enum import Enum
from typing import List, Optional

import httpx


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    DNS_FAILURE = "dns_failure"
    RESET = "reset"
    OTHER = "other"


class FetchError(Exception):
    """Base class for a provider call that failed after all attempts."""

    def __init__(self, message: str, *, url: str, attempts: int = 1):
        super().__init__(message)
        self.url = url
        self.attempts = attempts


class HTTPStatusFetchError(FetchError):
    """Provider answered with a non-2xx status (non-retryable, or retries exhausted)."""

    def __init__(self, *, url: str, status_code: int, body_snippet: str = "", attempts: int = 1):
        message = f"HTTP {status_code} at {url}"
        if body_snippet:
            message = f"{message} - {body_snippet}"
        super().__init__(message, url=url, attempts=attempts)
        self.status_code = status_code
        self.body_snippet = body_snippet


class MalformedPayloadError(FetchError):
    """A 2xx response whose body is not valid JSON."""

    def __init__(self, *, url: str, attempts: int = 1):
        super().__init__(f"Invalid JSON from {url}", url=url, attempts=attempts)


class TransportFetchError(FetchError):
    """DNS, connect, reset or timeout failure below the HTTP layer."""

    def __init__(self, message: str, *, url: str, kind: TransportErrorKind, attempts: int = 1):
        super().__init__(message, url=url, attempts=attempts)
        self.kind = kind


def _exception_chain(exc: BaseException) -> List[BaseException]:
    chain = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def classify_transport_error(exc: BaseException) -> TransportErrorKind:
    """Map an httpx/asyncio/OS exception onto a TransportErrorKind."""
    for item in _exception_chain(exc):
        if isinstance(item, (httpx.TimeoutException, TimeoutError)):
            return TransportErrorKind.TIMEOUT
        if isinstance(item, socket.gaierror):
            return TransportErrorKind.DNS_FAILURE
        if isinstance(item, ConnectionRefusedError):
            return TransportErrorKind.CONNECTION_REFUSED
        if isinstance(item, (ConnectionResetError, BrokenPipeError, httpx.RemoteProtocolError)):
            return TransportErrorKind.RESET
        if isinstance(item, OSError) and item.errno == errno.ECONNREFUSED:
            return TransportErrorKind.CONNECTION_REFUSED
        if isinstance(item, OSError) and item.errno == errno.ECONNRESET:
            return TransportErrorKind.RESET
    return TransportErrorKind.OTHER


def describe_transport_error(
    exc: BaseException,
    url: Optional[str] = None,
    kind: Optional[TransportErrorKind] = None,
) -> str:
    """
    Builds a one-line diagnostic from the exception and whatever it wraps:
    message, kind, errno, strerror, host and port where known.
    """
    parts = [str(exc) or type(exc).__name__]
    parts.append(f"kind={(kind or classify_transport_error(exc)).value}")

    for item in _exception_chain(exc):
        if isinstance(item, OSError):
            if item.errno is not None:
                parts.append(f"errno={item.errno}")
            if item.strerror:
                parts.append(f"strerror={item.strerror}")
            break

    if url:
        target = httpx.URL(url)
        if target.host:
            parts.append(f"host={target.host}")
        parts.append(f"port={target.port or (443 if target.scheme == 'https' else 80)}")
    return " | ".join(parts)
