from typing import Any, Mapping, Optional

import httpx


def _query_value(value: Any) -> str:
    # Providers expect JS-style booleans ("true"/"false")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def with_query(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Merges ``params`` into the query string of ``url``.

    Existing parameters are preserved, a supplied key replaces any parameter
    of the same name, and ``None`` values are skipped rather than sent as text.
    """
    if not params:
        return url
    merged = httpx.URL(url)
    for key, value in params.items():
        if value is None:
            continue
        merged = merged.copy_set_param(key, _query_value(value))
    return str(merged)


def truncate(text: str, limit: int = 200) -> str:
    return text[:limit]
