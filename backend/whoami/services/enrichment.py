"""ASN/organization enrichment with ordered provider fallback.

Providers are tried one at a time in the configured order. The first
reachable provider wins, even when its payload carries no usable ASN
(``asn=None``). Failures never raise; they are recorded as attempts.
"""

import logging
import re
import time
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from whoami.config import DEFAULT_ENRICH_TIMEOUT_MS
from whoami.ip import normalize
from whoami.schemas.whoami import (
    AsnSummary,
    EnrichmentAttempt,
    EnrichmentProvider,
    EnrichmentResult,
)
from whoami.services.http import FetchJson

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_ORDER: tuple[EnrichmentProvider, ...] = (
    EnrichmentProvider.BGPVIEW,
    EnrichmentProvider.IPAPI,
)

_AS_NUMBER = re.compile(r"AS([0-9]+)")


def resolve_providers(raw: str | None) -> list[EnrichmentProvider]:
    """Parse a comma-separated provider list.

    Unknown ids are dropped, duplicates keep their first position, and an
    empty result falls back to the default order.
    """
    order: list[EnrichmentProvider] = []
    for token in (raw or "").split(","):
        token = token.strip().lower()
        try:
            provider = EnrichmentProvider(token)
        except ValueError:
            continue
        if provider not in order:
            order.append(provider)
    return order or list(DEFAULT_PROVIDER_ORDER)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class BgpViewProvider:
    id = EnrichmentProvider.BGPVIEW

    def __init__(self, base_url: str = "https://api.bgpview.io"):
        self.base_url = base_url.rstrip("/")

    def url_for(self, ip: str) -> str:
        return f"{self.base_url}/ip/{quote(ip, safe='')}"

    @staticmethod
    def parse(payload: Any) -> AsnSummary | None:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        asn = data.get("asn")
        if not isinstance(asn, dict):
            return None
        number = asn.get("asn")
        if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
            return None
        return AsnSummary(
            asn=number,
            name=_text(asn.get("name")),
            description=_text(asn.get("description_short")),
            country=_text(asn.get("country_code")),
            prefix=_text(data.get("prefix")),
        )


class IpApiProvider:
    id = EnrichmentProvider.IPAPI

    def __init__(self, base_url: str = "https://ipapi.co"):
        self.base_url = base_url.rstrip("/")

    def url_for(self, ip: str) -> str:
        return f"{self.base_url}/{quote(ip, safe='')}/json/"

    @staticmethod
    def parse(payload: Any) -> AsnSummary | None:
        # ipapi reports lookup problems in-band: {"error": true, "reason": ...}
        if not isinstance(payload, dict) or payload.get("error"):
            return None
        number = parse_as_number(payload.get("asn"))
        if number is None:
            return None
        # ipapi has no short description field
        return AsnSummary(
            asn=number,
            name=_text(payload.get("org")),
            country=_text(payload.get("country_code")),
            prefix=_text(payload.get("network")),
        )


def parse_as_number(value: Any) -> int | None:
    """``"AS13335"`` -> 13335; anything else -> None."""
    if not isinstance(value, str):
        return None
    match = _AS_NUMBER.fullmatch(value.strip().upper())
    if not match:
        return None
    number = int(match.group(1))
    return number if number > 0 else None


def build_providers(
    order: Sequence[EnrichmentProvider],
    bgpview_base_url: str = "https://api.bgpview.io",
    ipapi_base_url: str = "https://ipapi.co",
) -> list[BgpViewProvider | IpApiProvider]:
    providers: list[BgpViewProvider | IpApiProvider] = []
    for provider_id in order:
        if provider_id is EnrichmentProvider.BGPVIEW:
            providers.append(BgpViewProvider(bgpview_base_url))
        elif provider_id is EnrichmentProvider.IPAPI:
            providers.append(IpApiProvider(ipapi_base_url))
    return providers


async def enrich(
    ip: str,
    providers: Sequence[BgpViewProvider | IpApiProvider],
    fetch: FetchJson,
    timeout_ms: int = DEFAULT_ENRICH_TIMEOUT_MS,
) -> EnrichmentResult:
    """Try each provider in sequence and return the first success.

    Raises ValueError if ``ip`` is not a canonical address; that is a caller
    bug, not a remote failure.
    """
    if normalize(ip) != ip:
        raise ValueError(f"Not a canonical IP address: {ip!r}")

    attempts: list[EnrichmentAttempt] = []
    for provider in providers:
        started = time.perf_counter()
        res = await fetch(provider.url_for(ip), timeout_ms)
        duration_ms = round((time.perf_counter() - started) * 1000)

        if res.ok:
            attempts.append(
                EnrichmentAttempt(
                    provider=provider.id,
                    ok=True,
                    fetched_at=res.fetched_at,
                    duration_ms=duration_ms,
                )
            )
            logger.debug(
                "Enrichment via %s succeeded in %dms", provider.id.value, duration_ms
            )
            return EnrichmentResult(
                provider=provider.id,
                raw=res.value,
                asn=provider.parse(res.value),
                fetched_at=res.fetched_at,
                attempts=tuple(attempts),
            )

        attempts.append(
            EnrichmentAttempt(
                provider=provider.id,
                ok=False,
                fetched_at=res.fetched_at,
                duration_ms=duration_ms,
                error=res.error or "unknown error",
            )
        )
        logger.warning(
            "Enrichment via %s failed after %dms: %s",
            provider.id.value,
            duration_ms,
            res.error,
        )

    if attempts:
        logger.warning("No enrichment providers succeeded for %s", ip)
    return EnrichmentResult(attempts=tuple(attempts))
