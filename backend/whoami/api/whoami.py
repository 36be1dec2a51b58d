import math
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from whoami.config import Settings, get_settings
from whoami.dependencies import (
    RequestFacts,
    WhoAmIFlags,
    get_dns_lookup,
    get_fetcher,
    get_flags,
    get_request_facts,
)
from whoami.rate_limit import FixedWindowRateLimiter, get_limiter, resolve_config
from whoami.schemas.whoami import ErrorResponse, RateLimitResult
from whoami.services.client_ip import IpSignals, resolve_client_ip
from whoami.services.http import FetchJson
from whoami.services.report import DnsLookup, build_report, render_text

router = APIRouter(tags=["whoami"])

NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    if not result.enabled:
        return {}
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_in_ms / 1000)),
    }


def _rate_limited_response(result: RateLimitResult, text: bool) -> Response:
    retry_after = max(1, math.ceil(result.reset_in_ms / 1000))
    headers = {**NO_STORE, **_rate_limit_headers(result), "Retry-After": str(retry_after)}
    body = ErrorResponse(
        error="rate_limited",
        message="Rate limit exceeded. Please try again later.",
        retry_after=retry_after,
    )
    if text:
        content = "\n".join(f"{k}={v}" for k, v in body.model_dump().items()) + "\n"
        return PlainTextResponse(
            content, status_code=status.HTTP_429_TOO_MANY_REQUESTS, headers=headers
        )
    return JSONResponse(
        body.model_dump(),
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers=headers,
    )


@router.get("/whoami")
async def whoami(
    facts: RequestFacts = Depends(get_request_facts),
    flags: WhoAmIFlags = Depends(get_flags),
    settings: Settings = Depends(get_settings),
    limiter: FixedWindowRateLimiter = Depends(get_limiter),
    fetch: FetchJson = Depends(get_fetcher),
    dns_lookup: DnsLookup = Depends(get_dns_lookup),
):
    started = time.perf_counter()
    client = resolve_client_ip(
        IpSignals.from_raw(
            facts.platform_ip,
            facts.cf_connecting_ip,
            facts.x_real_ip,
            facts.x_forwarded_for,
        )
    )
    config = resolve_config(settings.rate_limit_max, settings.rate_limit_window_ms)
    rate_limit = limiter.check(client.ip, config)
    if rate_limit.exceeded:
        return _rate_limited_response(rate_limit, flags.text)

    report = await build_report(
        facts,
        flags,
        settings,
        fetch,
        dns_lookup,
        rate_limit,
        client=client,
        started=started,
    )
    headers = {**NO_STORE, **_rate_limit_headers(rate_limit)}
    if flags.text:
        return PlainTextResponse(render_text(report), headers=headers)
    return JSONResponse(report, headers=headers)
