import pytest
from httpx import AsyncClient

from whoami.config import Settings

LIMIT_ONE = Settings(rate_limit_max="1", rate_limit_window_ms="60000", trust_socket_address="0")


@pytest.mark.asyncio
class TestWhoAmIRateLimit:
    @pytest.mark.parametrize("settings", [LIMIT_ONE])
    async def test_returns_429_with_retry_after(self, client: AsyncClient):
        first = await client.get("/api/whoami?enrich=0&format=text")
        assert first.status_code == 200
        assert first.headers["x-ratelimit-limit"] == "1"
        assert first.headers["x-ratelimit-remaining"] == "0"

        second = await client.get("/api/whoami?enrich=0&format=text")
        assert second.status_code == 429
        assert int(second.headers["retry-after"]) >= 1
        assert "error=rate_limited" in second.text.splitlines()

    @pytest.mark.parametrize("settings", [LIMIT_ONE])
    async def test_json_429_body(self, client: AsyncClient):
        await client.get("/api/whoami?enrich=0")
        resp = await client.get("/api/whoami?enrich=0")
        assert resp.status_code == 429
        body = resp.json()
        assert body["error"] == "rate_limited"
        assert body["retry_after"] == 60

    @pytest.mark.parametrize("settings", [LIMIT_ONE])
    async def test_rate_limit_is_per_ip(self, client: AsyncClient):
        """Different resolved IPs have independent buckets."""
        headers = {"X-Real-IP": "10.0.0.1"}
        assert (await client.get("/api/whoami?enrich=0", headers=headers)).status_code == 200
        assert (await client.get("/api/whoami?enrich=0", headers=headers)).status_code == 429

        other = await client.get("/api/whoami?enrich=0", headers={"X-Real-IP": "10.0.0.2"})
        assert other.status_code == 200

    async def test_disabled_limiter_never_blocks(self, client: AsyncClient):
        for _ in range(5):
            resp = await client.get("/api/whoami?enrich=0")
            assert resp.status_code == 200
            assert "x-ratelimit-limit" not in resp.headers
