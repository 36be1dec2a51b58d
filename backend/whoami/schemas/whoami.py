from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from whoami.ip import AddressVersion


class TrustLabel(str, Enum):
    TRUSTED = "trusted"  # platform-provided transport fact
    SPOOFABLE = "spoofable"  # client- or intermediary-controlled header
    EXTERNAL = "external"  # third-party data, best-effort


class ClientIpSource(str, Enum):
    PLATFORM = "platform"
    CF_CONNECTING_IP = "cf-connecting-ip"
    X_REAL_IP = "x-real-ip"
    X_FORWARDED_FOR = "x-forwarded-for"
    UNKNOWN = "unknown"


class EnrichmentProvider(str, Enum):
    BGPVIEW = "bgpview"
    IPAPI = "ipapi"


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }

    def to_json_dict(self, **kwargs) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class ClientIpResolution(CamelModel):
    ip: str  # canonical address or "unknown"
    version: AddressVersion
    source: ClientIpSource
    trust: TrustLabel


class AsnSummary(CamelModel):
    asn: int | None
    name: str = ""
    description: str = ""
    country: str = ""
    prefix: str = ""


class EnrichmentAttempt(CamelModel):
    provider: EnrichmentProvider
    ok: bool
    fetched_at: str
    duration_ms: int
    error: str | None = None


class EnrichmentResult(CamelModel):
    provider: EnrichmentProvider | None = None
    raw: Any = None
    asn: AsnSummary | None = None
    fetched_at: str | None = None
    attempts: tuple[EnrichmentAttempt, ...] = ()


class RateLimitConfig(CamelModel):
    enabled: bool
    max: int
    window_ms: int


class RateLimitResult(CamelModel):
    enabled: bool
    limit: int
    remaining: int
    reset_in_ms: int
    exceeded: bool


# ── Header blocks (shown or redacted) ─────────────────────────


class Redacted(CamelModel):
    redacted: Literal[True] = True
    trust: TrustLabel


class RequestHeaders(CamelModel):
    user_agent: str
    accept_language: str
    trust: TrustLabel = TrustLabel.SPOOFABLE


class ProxyHeaders(CamelModel):
    cf_connecting_ip: str
    x_real_ip: str
    x_forwarded_for: str
    x_forwarded_for_chain: list[str]
    trust: TrustLabel = TrustLabel.SPOOFABLE


class IpCandidates(CamelModel):
    platform_ip: str | None
    cf_connecting_ip: str | None
    x_real_ip: str | None
    x_forwarded_for_chain: list[str]
    trust: TrustLabel = TrustLabel.SPOOFABLE


def shown_or_redacted(block: CamelModel, show: bool) -> CamelModel:
    """Keep the block as-is, or replace it by its redacted form."""
    if show:
        return block
    return Redacted(trust=block.trust)


class ErrorResponse(BaseModel):
    error: str
    message: str
    retry_after: int
