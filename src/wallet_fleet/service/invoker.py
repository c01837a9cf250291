"""Action invoker client — the periodic authenticated request each wallet makes.

POST <action_url> with an empty body and ``Authorization: Bearer <token>``.
A successful answer is a JSON object; the server-reported elapsed time is
read from it with :func:`extract_elapsed`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from wallet_fleet.errors.fleet_errors import MalformedResponseError, TransportError
from wallet_fleet.service.transport import build_client, raise_for_status

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wallet_fleet.config.settings import ProxyConfig, ServiceConfig


def extract_elapsed(payload: dict[str, Any], fields: Iterable[str]) -> float | None:
    """Return the first elapsed-time value found at one of the dotted *fields*.

    Numeric strings are coerced; a present but non-numeric value counts as
    ``0.0``.  Returns ``None`` when no field is present at all.
    """
    for path in fields:
        node: Any = payload
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                node = None
                break
            node = node[part]
        if node is None:
            continue
        try:
            return float(node)
        except (TypeError, ValueError):
            return 0.0
    return None


class ActionInvoker:
    """Async HTTP client for the periodic action endpoint.

    Usage::

        invoker = ActionInvoker(service_config, proxy_config)
        await invoker.connect()
        try:
            payload = await invoker.invoke(token)
        finally:
            await invoker.close()
    """

    def __init__(
        self,
        config: ServiceConfig,
        proxy: ProxyConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._proxy = proxy
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = build_client(
            self._proxy,
            timeout=self._config.action_timeout,
            headers={
                "Accept": "application/json, text/plain, */*",
                "User-Agent": self._config.user_agent,
            },
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    async def invoke(self, credential: str | None) -> dict[str, Any]:
        """Perform one action request with *credential*.

        Returns:
            The decoded JSON object.

        Raises:
            TransportError: On network failures and timeouts.
            UnauthorizedError: When the credential is rejected.
            ServerError: On any other non-2xx answer.
            MalformedResponseError: When a 2xx body is not a JSON object.
        """
        client = self._ensure_connected()
        headers = {"Authorization": f"Bearer {credential or ''}"}
        try:
            response = await client.post(self._config.action_url, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        raise_for_status(response, "action")

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError("action response is not JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError("action response is not a JSON object")
        return payload

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "ActionInvoker is not connected, call connect() first"
            raise RuntimeError(msg)
        return self._client
