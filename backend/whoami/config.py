from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Look for .env in the project root (parent of backend/)
ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"

DEFAULT_ENRICH_TIMEOUT_MS = 4000
DEFAULT_REVERSE_DNS_TIMEOUT_MS = 1200


def parse_timeout_ms(raw: str | None, default: int) -> int:
    """Parse a millisecond timeout, clamped to 1..default.

    The default doubles as the hard cap. Malformed values fall back to it.
    """
    if raw is None or not raw.strip():
        return default
    try:
        value = int(float(raw))
    except ValueError:
        return default
    return max(1, min(default, value))


class Settings(BaseSettings):
    # Environment
    env: str = "development"  # development, staging, or production

    # Enrichment
    enrich_providers: str | None = None  # e.g. "ipapi,bgpview"
    bgpview_base_url: str = "https://api.bgpview.io"
    ipapi_base_url: str = "https://ipapi.co"
    enrich_timeout_ms: str | None = None
    reverse_dns_timeout_ms: str | None = None

    # Rate limiting (raw strings, parsed by whoami.rate_limit.resolve_config)
    rate_limit_max: str | None = None
    rate_limit_window_ms: str | None = None

    # Use the ASGI peer address as the "platform" tier. Turn off when the
    # socket peer is a reverse proxy rather than the client.
    trust_socket_address: str | None = None

    @field_validator("bgpview_base_url", "ipapi_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def enrich_timeout(self) -> int:
        return parse_timeout_ms(self.enrich_timeout_ms, DEFAULT_ENRICH_TIMEOUT_MS)

    @property
    def reverse_dns_timeout(self) -> int:
        return parse_timeout_ms(
            self.reverse_dns_timeout_ms, DEFAULT_REVERSE_DNS_TIMEOUT_MS
        )

    @property
    def use_socket_address(self) -> bool:
        raw = (self.trust_socket_address or "").strip().lower()
        if raw in ("0", "false", "no", "off"):
            return False
        return True

    model_config = {
        "env_prefix": "WHOAMI_",
        "env_file": str(ENV_FILE) if ENV_FILE.exists() else None,
        "extra": "ignore",  # Ignore extra env vars not defined in model
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Lazy proxy so that `from whoami.config import settings` still works,
# but construction is deferred until first attribute access.
class _SettingsProxy:
    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()
