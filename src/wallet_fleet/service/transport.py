"""Outbound HTTP transport — shared httpx client factory and proxy self-test.

Every request the fleet makes goes through a client built here, so a
configured forward proxy applies uniformly to login, action and
connectivity-check calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from wallet_fleet.errors.fleet_errors import ServerError, UnauthorizedError

if TYPE_CHECKING:
    from wallet_fleet.config.settings import ProxyConfig

logger = logging.getLogger(__name__)

_UNAUTHORIZED_MARKER = "unauthorized"


@dataclass(frozen=True)
class ConnectivityReport:
    """Outcome of a connectivity self-test."""

    reachable: bool
    ip: str = ""
    error: str = ""
    hint: str = ""


def build_client(
    proxy: ProxyConfig,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` honoring the proxy configuration.

    Args:
        proxy: Proxy settings; an empty URL means direct connections.
        timeout: Per-request timeout in seconds.
        headers: Default headers sent with every request.
        transport: Explicit transport (tests inject ``httpx.MockTransport``).
    """
    kwargs: dict[str, Any] = {
        "timeout": timeout,
        "headers": headers or {},
    }
    if transport is not None:
        kwargs["transport"] = transport
    elif proxy.enabled:
        kwargs["proxy"] = proxy.url
    return httpx.AsyncClient(**kwargs)


def _hint_for(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.ProxyError) and "407" in str(exc):
        return "Proxy authentication error. Check your username and password."
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 407:
        return "Proxy authentication error. Check your username and password."
    if isinstance(exc, httpx.ConnectError) and "refused" in str(exc).lower():
        return "Make sure the proxy server is running and accessible."
    return ""


async def check_connectivity(
    proxy: ProxyConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ConnectivityReport:
    """Fetch the public IP through the configured transport.

    The result is advisory: callers decide whether to proceed when the
    check fails.
    """
    async with build_client(proxy, timeout=proxy.check_timeout, transport=transport) as client:
        try:
            response = await client.get(proxy.check_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            report = ConnectivityReport(
                reachable=False,
                error=str(exc) or type(exc).__name__,
                hint=_hint_for(exc),
            )
            logger.warning("Connectivity check failed: %s", report.error)
            return report

    try:
        ip = str(response.json().get("ip", ""))
    except (ValueError, AttributeError):
        ip = response.text.strip()
    logger.info("Connectivity check succeeded, public IP %s", ip)
    return ConnectivityReport(reachable=True, ip=ip)


def raise_for_status(response: httpx.Response, operation: str) -> None:
    """Translate a non-2xx response into the fleet error taxonomy.

    A 401, or any error body mentioning "unauthorized", means the
    credential is no longer valid; everything else is a server error.
    """
    if response.is_success:
        return
    status = response.status_code
    text = response.text
    if status == 401 or _UNAUTHORIZED_MARKER in text.lower():
        raise UnauthorizedError(f"{operation} unauthorized ({status})", status_code=status)
    detail = text.strip()[:200] or response.reason_phrase
    raise ServerError(f"{operation} failed ({status}): {detail}", status_code=status)
