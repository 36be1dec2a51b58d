import logging
import threading
import time
from dataclasses import dataclass

from whoami.schemas.whoami import RateLimitConfig, RateLimitResult

logger = logging.getLogger(__name__)

DEFAULT_MAX = 120
DEFAULT_WINDOW_MS = 60_000


def _parse_non_negative_int(raw: str | None, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    return max(0, int(value))


def resolve_config(raw_max: str | None, raw_window_ms: str | None) -> RateLimitConfig:
    """Build a limiter config from raw env strings. Never raises.

    ``max=0`` or ``window_ms=0`` disables limiting entirely.
    """
    max_requests = _parse_non_negative_int(raw_max, DEFAULT_MAX)
    window_ms = _parse_non_negative_int(raw_window_ms, DEFAULT_WINDOW_MS)
    return RateLimitConfig(
        enabled=max_requests > 0 and window_ms > 0,
        max=max_requests,
        window_ms=window_ms,
    )


@dataclass
class _Bucket:
    count: int
    reset_at_ms: int


def _now_ms() -> int:
    return int(time.time() * 1000)


class FixedWindowRateLimiter:
    """Per-key fixed-window counter held in process memory.

    A burst straddling a window boundary can pass up to 2x max requests.
    State is per-process and lost on restart.
    """

    def __init__(self):
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def check(
        self, key: str, config: RateLimitConfig, now_ms: int | None = None
    ) -> RateLimitResult:
        if not config.enabled:
            return RateLimitResult(
                enabled=False,
                limit=config.max,
                remaining=config.max,
                reset_in_ms=0,
                exceeded=False,
            )

        now = _now_ms() if now_ms is None else now_ms
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or now >= bucket.reset_at_ms:
                self._buckets[key] = _Bucket(count=1, reset_at_ms=now + config.window_ms)
                return RateLimitResult(
                    enabled=True,
                    limit=config.max,
                    remaining=max(0, config.max - 1),
                    reset_in_ms=config.window_ms,
                    exceeded=False,
                )

            # Keep counting past the limit so remaining stays pinned at 0
            bucket.count += 1
            count = bucket.count
            reset_at_ms = bucket.reset_at_ms

        exceeded = count > config.max
        if exceeded:
            logger.info("Rate limit exceeded for %s (%d/%d)", key, count, config.max)
        return RateLimitResult(
            enabled=True,
            limit=config.max,
            remaining=max(0, config.max - count),
            reset_in_ms=max(0, reset_at_ms - now),
            exceeded=exceeded,
        )

    def sweep(self, now_ms: int | None = None) -> int:
        """Drop buckets whose window has elapsed. Returns how many were removed."""
        now = _now_ms() if now_ms is None else now_ms
        with self._lock:
            expired = [k for k, b in self._buckets.items() if now >= b.reset_at_ms]
            for key in expired:
                del self._buckets[key]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


# In-memory, per-instance state. Limits reset on deploy/restart; running
# several workers gives each its own buckets.
limiter = FixedWindowRateLimiter()


def get_limiter() -> FixedWindowRateLimiter:
    return limiter
