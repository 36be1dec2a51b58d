import asyncio
import logging
import socket

from whoami.config import DEFAULT_REVERSE_DNS_TIMEOUT_MS

logger = logging.getLogger(__name__)


def _lookup(ip: str) -> list[str]:
    hostname, aliases, _ = socket.gethostbyaddr(ip)
    return [hostname, *aliases]


async def reverse_dns(
    ip: str, timeout_ms: int = DEFAULT_REVERSE_DNS_TIMEOUT_MS
) -> list[str] | None:
    """Best-effort PTR lookup. Any failure or timeout yields None."""
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_lookup, ip), timeout=timeout_ms / 1000
        )
    except (OSError, UnicodeError, asyncio.TimeoutError) as e:
        logger.debug("Reverse DNS for %s failed: %r", ip, e)
        return None
