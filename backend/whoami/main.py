import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from whoami.api.router import api_router
from whoami.config import settings
from whoami.rate_limit import limiter, resolve_config
from whoami.services.enrichment import resolve_providers

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=()"
        )

        # Add HSTS in production/staging (TLS usually terminates at the proxy)
        if settings.env in ["production", "staging"]:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    providers = resolve_providers(settings.enrich_providers)
    config = resolve_config(settings.rate_limit_max, settings.rate_limit_window_ms)
    logger.info(
        "Enrichment providers: %s", ", ".join(p.value for p in providers)
    )
    logger.info(
        "Rate limit: %s (max=%d, window_ms=%d)",
        "enabled" if config.enabled else "disabled",
        config.max,
        config.window_ms,
    )
    yield
    limiter.reset()


app = FastAPI(title="whoami", lifespan=lifespan)

# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Configure CORS for development
if settings.env == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],  # Vite dev server
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
