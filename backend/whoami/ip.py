"""Client address parsing and classification.

Everything here is pure string/address work. Invalid input is never an
error: parsers return ``None`` (or drop the entry) and the classifier reports
``AddressVersion.UNKNOWN`` / not public.
"""

import ipaddress
import re
from enum import Enum

_IPV4_WITH_PORT = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+:[0-9]+")
_IPV4_OCTET = re.compile(r"[0-9]+")
_IPV6_CHARSET = re.compile(r"[0-9a-fA-F:.]+")


class AddressVersion(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    UNKNOWN = "unknown"


# Hand-maintained exclusion list, not the IANA special-purpose registry.
# New reserved allocations will not be picked up automatically.
_NON_PUBLIC_V4 = tuple(
    ipaddress.IPv4Network(net)
    for net in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "100.64.0.0/10",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "192.0.2.0/24",
        "198.18.0.0/15",
        "198.51.100.0/24",
        "203.0.113.0/24",
        "224.0.0.0/3",  # multicast and everything reserved above it
    )
)

_NON_PUBLIC_V6 = tuple(
    ipaddress.IPv6Network(net)
    for net in (
        "::/128",
        "::1/128",
        "fe80::/10",
        "fc00::/7",
        "fd00::/8",
        "ff00::/8",
        "2001:db8::/32",
    )
)


def _ipv4_octets(value: str) -> list[int] | None:
    parts = value.split(".")
    if len(parts) != 4:
        return None
    octets = []
    for part in parts:
        if not _IPV4_OCTET.fullmatch(part):
            return None
        n = int(part)
        if n > 255:
            return None
        octets.append(n)
    return octets


def is_ipv4(value: str) -> bool:
    return _ipv4_octets(value) is not None


def is_ipv6(value: str) -> bool:
    if ":" not in value or not _IPV6_CHARSET.fullmatch(value):
        return False
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def normalize(raw: str | None) -> str | None:
    """Reduce a raw header/transport value to a bare IP literal.

    Accepts forms like ``1.2.3.4:1234``, ``[2001:db8::1]:443``,
    ``fe80::1%en0`` and ``client, proxy1, proxy2`` (first hop only).
    The literal is returned as written; case and ``::`` compression are
    left alone.
    """
    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    if "," in s:
        s = s.split(",", 1)[0].strip()
    if s.startswith("["):
        close = s.find("]")
        if close > 0:
            s = s[1:close]
    if "%" in s:
        s = s.split("%", 1)[0].strip()
    if _IPV4_WITH_PORT.fullmatch(s):
        s = s.split(":", 1)[0]
    if is_ipv4(s) or is_ipv6(s):
        return s
    return None


def parse_chain(raw: str | None) -> list[str]:
    """Every valid hop of an X-Forwarded-For style chain, in order, duplicates kept."""
    if not raw:
        return []
    chain = []
    for part in raw.split(","):
        ip = normalize(part)
        if ip is not None:
            chain.append(ip)
    return chain


def ip_version(ip: str) -> AddressVersion:
    if is_ipv4(ip):
        return AddressVersion.IPV4
    if is_ipv6(ip):
        return AddressVersion.IPV6
    return AddressVersion.UNKNOWN


def is_likely_public(ip: str) -> bool:
    """Conservative public-address check by exclusion of well-known ranges."""
    octets = _ipv4_octets(ip)
    if octets is not None:
        addr = ipaddress.IPv4Address(bytes(octets))
        return not any(addr in net for net in _NON_PUBLIC_V4)
    if is_ipv6(ip):
        addr6 = ipaddress.IPv6Address(ip)
        return not any(addr6 in net for net in _NON_PUBLIC_V6)
    return False
