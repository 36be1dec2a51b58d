from dataclasses import dataclass

from fastapi import Depends, Request

from whoami.config import Settings, get_settings
from whoami.services.http import FetchJson, fetch_json
from whoami.services.reverse_dns import reverse_dns


def truthy_param(value: str | list[str] | None, default: bool = True) -> bool:
    """Query flag convention: "0" is false, anything else (or absent) is true."""
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return default
    return value != "0"


@dataclass(frozen=True)
class WhoAmIFlags:
    enrich: bool = True
    show_headers: bool = True
    text: bool = False


def parse_flags(query: dict[str, str | list[str] | None]) -> WhoAmIFlags:
    fmt = query.get("format")
    if isinstance(fmt, list):
        fmt = fmt[0] if fmt else None
    return WhoAmIFlags(
        enrich=truthy_param(query.get("enrich")),
        show_headers=truthy_param(query.get("showHeaders")),
        text=(fmt or "").lower() == "text",
    )


@dataclass(frozen=True)
class RequestFacts:
    """Raw, unvalidated inputs taken from the inbound request."""

    platform_ip: str | None = None
    x_forwarded_for: str | None = None
    x_real_ip: str | None = None
    cf_connecting_ip: str | None = None
    user_agent: str | None = None
    accept_language: str | None = None


def get_flags(request: Request) -> WhoAmIFlags:
    query = {key: request.query_params.getlist(key) for key in request.query_params}
    return parse_flags(query)


def get_request_facts(
    request: Request, settings: Settings = Depends(get_settings)
) -> RequestFacts:
    platform_ip = None
    if settings.use_socket_address and request.client:
        platform_ip = request.client.host
    headers = request.headers
    return RequestFacts(
        platform_ip=platform_ip,
        x_forwarded_for=headers.get("X-Forwarded-For"),
        x_real_ip=headers.get("X-Real-IP"),
        cf_connecting_ip=headers.get("CF-Connecting-IP"),
        user_agent=headers.get("User-Agent"),
        accept_language=headers.get("Accept-Language"),
    )


def get_fetcher() -> FetchJson:
    return fetch_json


def get_dns_lookup():
    return reverse_dns
