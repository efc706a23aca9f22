"""Request utility functions."""

from ipaddress import ip_address

from fastapi import Request

from app.core.config import settings


def _parse_ip(value: str):
    try:
        return ip_address(value.strip())
    except ValueError:
        return None


def is_trusted_proxy(host: str | None) -> bool:
    """True when ``host`` falls inside one of the configured TRUSTED_PROXIES."""
    addr = _parse_ip(host) if host else None
    if addr is None:
        return False
    return any(addr in network for network in settings.trusted_proxy_networks)


def _forwarded_client_ip(forwarded: str) -> str | None:
    # Walk right to left: entries appended by our own proxies are skipped and
    # anything left of the first untrusted hop is client-controlled.
    candidates = [part.strip() for part in forwarded.split(",") if _parse_ip(part)]
    for candidate in reversed(candidates):
        if not is_trusted_proxy(candidate):
            return candidate
    return candidates[0] if candidates else None


def get_client_ip(request: Request) -> str:
    """
    Extract real client IP, respecting proxy headers from trusted proxies only.

    When the direct peer is a trusted proxy, checks headers in order:
    1. X-Forwarded-For (may contain chain: "client, proxy1, proxy2")
    2. X-Real-IP (single IP from nginx)

    Otherwise the headers are ignored and the direct connection IP is used,
    since any caller can send them.
    """
    peer = request.client.host if request.client else None

    if is_trusted_proxy(peer):
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = _forwarded_client_ip(forwarded)
            if client_ip:
                return client_ip

        # X-Real-IP is typically set by nginx
        real_ip = request.headers.get("X-Real-IP")
        if real_ip and _parse_ip(real_ip):
            return real_ip.strip()

    return peer or "unknown"


def get_user_agent(request: Request) -> str | None:
    """Return the User-Agent header, if the client sent one."""
    return request.headers.get("User-Agent") or None
