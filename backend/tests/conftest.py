from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from whoami.config import Settings, get_settings
from whoami.dependencies import get_dns_lookup, get_fetcher
from whoami.main import app
from whoami.rate_limit import limiter
from whoami.services.http import FetchResult


class FakeFetch:
    """Scripted stand-in for fetch_json; records every URL requested."""

    def __init__(self, results: dict[str, FetchResult] | None = None):
        self.results = results or {}
        self.calls: list[str] = []

    async def __call__(self, url: str, timeout_ms: int) -> FetchResult:
        self.calls.append(url)
        for fragment, result in self.results.items():
            if fragment in url:
                return result
        return FetchResult(ok=False, fetched_at=FETCHED_AT, error="HTTP 503")


async def no_ptr(ip: str, timeout_ms: int) -> list[str] | None:
    return None


FETCHED_AT = "2026-01-01T00:00:00Z"

BGPVIEW_PAYLOAD = {
    "status": "ok",
    "data": {
        "ip": "1.1.1.1",
        "prefix": "1.1.1.0/24",
        "asn": {
            "asn": 13335,
            "name": "CLOUDFLARENET",
            "description_short": "Cloudflare, Inc.",
            "country_code": "US",
        },
    },
}

IPAPI_PAYLOAD = {
    "ip": "1.1.1.1",
    "asn": "AS13335",
    "org": "CLOUDFLARENET",
    "country_code": "AU",
    "network": "1.1.1.0/24",
}


@pytest.fixture(autouse=True)
def _reset_limiter():
    """Rate-limit buckets are process-wide; start each test clean."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def settings() -> Settings:
    # Limiting off and socket address ignored unless a test opts in
    return Settings(rate_limit_max="0", trust_socket_address="false")


@pytest.fixture
def fake_fetch() -> FakeFetch:
    return FakeFetch()


@pytest_asyncio.fixture
async def client(
    settings: Settings, fake_fetch: FakeFetch
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_fetcher] = lambda: fake_fetch
    app.dependency_overrides[get_dns_lookup] = lambda: no_ptr
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
