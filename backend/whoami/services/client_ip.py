from dataclasses import dataclass, field

from whoami.ip import AddressVersion, ip_version, normalize, parse_chain
from whoami.schemas.whoami import ClientIpResolution, ClientIpSource, TrustLabel

UNKNOWN_IP = "unknown"


@dataclass(frozen=True)
class IpSignals:
    """Normalized candidates, one per tier."""

    platform_ip: str | None
    cf_connecting_ip: str | None
    x_real_ip: str | None
    x_forwarded_for_chain: list[str] = field(default_factory=list)

    @classmethod
    def from_raw(
        cls,
        platform: str | None,
        cf_connecting_ip: str | None,
        x_real_ip: str | None,
        x_forwarded_for: str | None,
    ) -> "IpSignals":
        return cls(
            platform_ip=normalize(platform),
            cf_connecting_ip=normalize(cf_connecting_ip),
            x_real_ip=normalize(x_real_ip),
            x_forwarded_for_chain=parse_chain(x_forwarded_for),
        )


def resolve_client_ip(signals: IpSignals) -> ClientIpResolution:
    """Pick the client IP in strict priority order.

    platform > CF-Connecting-IP > X-Real-IP > first valid X-Forwarded-For hop.
    Only the platform address (or no answer at all) is trusted; every header
    is client- or intermediary-controlled.
    """
    xff_first = (
        signals.x_forwarded_for_chain[0] if signals.x_forwarded_for_chain else None
    )
    tiers = (
        (ClientIpSource.PLATFORM, signals.platform_ip),
        (ClientIpSource.CF_CONNECTING_IP, signals.cf_connecting_ip),
        (ClientIpSource.X_REAL_IP, signals.x_real_ip),
        (ClientIpSource.X_FORWARDED_FOR, xff_first),
    )
    for source, candidate in tiers:
        if candidate is not None:
            trust = (
                TrustLabel.TRUSTED
                if source is ClientIpSource.PLATFORM
                else TrustLabel.SPOOFABLE
            )
            return ClientIpResolution(
                ip=candidate,
                version=ip_version(candidate),
                source=source,
                trust=trust,
            )

    return ClientIpResolution(
        ip=UNKNOWN_IP,
        version=AddressVersion.UNKNOWN,
        source=ClientIpSource.UNKNOWN,
        trust=TrustLabel.TRUSTED,
    )
