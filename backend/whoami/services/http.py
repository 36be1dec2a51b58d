import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    fetched_at: str
    value: Any = None
    error: str | None = None


# (url, timeout_ms) -> FetchResult. Implementations must not raise.
FetchJson = Callable[[str, int], Awaitable[FetchResult]]


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


async def _get(
    url: str, timeout_ms: int, transport: httpx.AsyncBaseTransport | None
) -> httpx.Response:
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_ms / 1000),
        follow_redirects=False,
        headers={"Accept": "application/json"},
        transport=transport,
    ) as client:
        return await client.get(url)


async def fetch_json(
    url: str, timeout_ms: int, transport: httpx.AsyncBaseTransport | None = None
) -> FetchResult:
    """GET a JSON document without cookies, credentials or redirects.

    ``timeout_ms`` caps the whole call, not each connect/read step.
    Every failure (timeout, bad URL, transport error, non-2xx, bad JSON) is
    returned as ``FetchResult(ok=False, error=...)``.
    """
    try:
        response = await asyncio.wait_for(
            _get(url, timeout_ms, transport), timeout=timeout_ms / 1000
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        return FetchResult(
            ok=False, fetched_at=utc_now_iso(), error=f"timeout after {timeout_ms}ms"
        )
    except httpx.InvalidURL as e:
        return FetchResult(
            ok=False, fetched_at=utc_now_iso(), error=f"invalid URL: {e}"
        )
    except httpx.HTTPError as e:
        return FetchResult(
            ok=False,
            fetched_at=utc_now_iso(),
            error=str(e) or e.__class__.__name__,
        )

    fetched_at = utc_now_iso()
    if not response.is_success:
        return FetchResult(
            ok=False, fetched_at=fetched_at, error=f"HTTP {response.status_code}"
        )
    try:
        value = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return FetchResult(ok=False, fetched_at=fetched_at, error="invalid JSON response")
    return FetchResult(ok=True, fetched_at=fetched_at, value=value)
