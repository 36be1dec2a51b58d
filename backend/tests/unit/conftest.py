import pytest

from whoami.rate_limit import FixedWindowRateLimiter


@pytest.fixture
def fresh_limiter() -> FixedWindowRateLimiter:
    """A private limiter so unit tests never touch the shared instance."""
    return FixedWindowRateLimiter()
