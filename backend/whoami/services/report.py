"""Assemble the whoami payload from the core components."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from whoami.config import Settings
from whoami.dependencies import RequestFacts, WhoAmIFlags
from whoami.ip import is_likely_public
from whoami.schemas.whoami import (
    ClientIpResolution,
    EnrichmentResult,
    IpCandidates,
    ProxyHeaders,
    RateLimitResult,
    RequestHeaders,
    TrustLabel,
    shown_or_redacted,
)
from whoami.services.client_ip import UNKNOWN_IP, IpSignals, resolve_client_ip
from whoami.services.enrichment import build_providers, enrich, resolve_providers
from whoami.services.http import FetchJson, utc_now_iso

DnsLookup = Callable[[str, int], Awaitable[list[str] | None]]

NOTES = (
    "Some request headers (User-Agent, Accept-Language) are client-controlled and spoofable.",
    "Forwarded IP headers (X-Forwarded-For, X-Real-IP, CF-Connecting-IP) are spoofable unless set/overwritten by a trusted reverse proxy.",
    "Enrichment and reverse DNS are best-effort external data; treat as approximate.",
    "Enrichment provider order can be configured by WHOAMI_ENRICH_PROVIDERS.",
    "This endpoint avoids cookies/credentials on outbound fetches.",
)

EXTERNAL = TrustLabel.EXTERNAL.value


def _skip_reason(flags: WhoAmIFlags, client: ClientIpResolution) -> str | None:
    if not flags.enrich:
        return "enrich=0"
    if client.ip == UNKNOWN_IP:
        return "unknown ip"
    if not is_likely_public(client.ip):
        return "non-public ip"
    return None


def _enrichment_blocks(
    enrichment: EnrichmentResult | None, order: list, skip_reason: str | None
) -> tuple[dict[str, Any], dict[str, Any]]:
    if enrichment is None:
        skipped = {"skipped": True, "reason": skip_reason, "trust": EXTERNAL}
        diagnostics = {
            "attemptedProviders": [],
            "selectedProvider": None,
            "attempts": [],
            **skipped,
        }
        return skipped, diagnostics

    attempts = [a.to_json_dict(exclude_none=True) for a in enrichment.attempts]
    if enrichment.provider is not None:
        bgpview = {
            "provider": enrichment.provider.value,
            "data": enrichment.raw,
            "fetchedAt": enrichment.fetched_at,
            "trust": EXTERNAL,
        }
    else:
        errors = "; ".join(
            f"{a.provider.value}: {a.error or 'unknown error'}"
            for a in enrichment.attempts
        )
        last = enrichment.attempts[-1].fetched_at if enrichment.attempts else None
        bgpview = {
            "error": errors or "no enrichment providers succeeded",
            "fetchedAt": last or utc_now_iso(),
            "trust": EXTERNAL,
        }
    diagnostics = {
        "attemptedProviders": [p.value for p in order],
        "selectedProvider": enrichment.provider.value if enrichment.provider else None,
        "attempts": attempts,
        "trust": EXTERNAL,
    }
    return bgpview, diagnostics


async def _no_ptr() -> None:
    return None


async def build_report(
    facts: RequestFacts,
    flags: WhoAmIFlags,
    settings: Settings,
    fetch: FetchJson,
    dns_lookup: DnsLookup,
    rate_limit: RateLimitResult,
    client: ClientIpResolution | None = None,
    started: float | None = None,
) -> dict[str, Any]:
    started = time.perf_counter() if started is None else started
    signals = IpSignals.from_raw(
        facts.platform_ip,
        facts.cf_connecting_ip,
        facts.x_real_ip,
        facts.x_forwarded_for,
    )
    if client is None:
        client = resolve_client_ip(signals)
    timestamp = utc_now_iso()

    skip_reason = _skip_reason(flags, client)
    order = resolve_providers(settings.enrich_providers)

    ptr_task = (
        dns_lookup(client.ip, settings.reverse_dns_timeout)
        if client.ip != UNKNOWN_IP
        else _no_ptr()
    )
    if skip_reason is None:
        providers = build_providers(
            order, settings.bgpview_base_url, settings.ipapi_base_url
        )
        ptr, enrichment = await asyncio.gather(
            ptr_task, enrich(client.ip, providers, fetch, settings.enrich_timeout)
        )
    else:
        ptr, enrichment = await ptr_task, None

    bgpview, diagnostics = _enrichment_blocks(enrichment, order, skip_reason)
    asn = enrichment.asn if enrichment is not None else None

    request_headers = RequestHeaders(
        user_agent=facts.user_agent or "",
        accept_language=facts.accept_language or "",
    )
    proxy_headers = ProxyHeaders(
        cf_connecting_ip=facts.cf_connecting_ip or "",
        x_real_ip=facts.x_real_ip or "",
        x_forwarded_for=facts.x_forwarded_for or "",
        x_forwarded_for_chain=signals.x_forwarded_for_chain,
    )
    candidates = IpCandidates(
        platform_ip=signals.platform_ip,
        cf_connecting_ip=signals.cf_connecting_ip,
        x_real_ip=signals.x_real_ip,
        x_forwarded_for_chain=signals.x_forwarded_for_chain,
    )
    show = flags.show_headers

    return {
        "clientIp": {
            "ip": client.ip,
            "ipVersion": client.version.value,
            "source": client.source.value,
            "trust": client.trust.value,
            "timestamp": timestamp,
        },
        "platform": {
            "requestIp": signals.platform_ip,
            "trust": TrustLabel.TRUSTED.value,
        },
        "ipCandidates": shown_or_redacted(candidates, show).to_json_dict(),
        "requestHeaders": shown_or_redacted(request_headers, show).to_json_dict(),
        "proxyHeaders": shown_or_redacted(proxy_headers, show).to_json_dict(),
        "reverseDns": {"ptr": ptr, "trust": EXTERNAL},
        "bgpview": bgpview,
        "enrichmentDiagnostics": diagnostics,
        "asnSummary": {
            "asn": asn.to_json_dict() if asn is not None else None,
            "trust": EXTERNAL,
        },
        "rateLimit": rate_limit.to_json_dict(),
        "timing": {
            "serverTimingMs": round((time.perf_counter() - started) * 1000),
            "trust": TrustLabel.TRUSTED.value,
        },
        "notes": list(NOTES),
    }


def _flat(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_flat(v) for v in value)
    return str(value).replace("\n", " ")


def render_text(report: dict[str, Any]) -> str:
    """Flat ``key=value`` rendering of a report, one pair per line."""
    client = report["clientIp"]
    asn = report["asnSummary"]["asn"] or {}
    rate = report["rateLimit"]
    lines = [
        ("format", "text"),
        ("ip", client["ip"]),
        ("ip_version", client["ipVersion"]),
        ("ip_source", client["source"]),
        ("ip_trust", client["trust"]),
        ("timestamp", client["timestamp"]),
        ("reverse_dns", report["reverseDns"]["ptr"]),
        ("asn", asn.get("asn")),
        ("asn_name", asn.get("name")),
        ("asn_country", asn.get("country")),
        ("asn_prefix", asn.get("prefix")),
        ("enrichment_provider", report["enrichmentDiagnostics"]["selectedProvider"]),
        ("server_timing_ms", report["timing"]["serverTimingMs"]),
        ("rate_limit_enabled", rate["enabled"]),
        ("rate_limit_limit", rate["limit"]),
        ("rate_limit_remaining", rate["remaining"]),
        ("rate_limit_reset_in_ms", rate["resetInMs"]),
    ]
    return "\n".join(f"{key}={_flat(value)}" for key, value in lines) + "\n"
