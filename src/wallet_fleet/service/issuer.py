"""Credential issuer client — exchanges a wallet signature for an access token.

POST <login_url> with ``{message, walletAddress, signature, referralCode}``;
the token is returned under ``data.accessToken``.  The same call serves
first-time enrollment (with a referral code) and credential refresh
(without one).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from wallet_fleet.errors.fleet_errors import (
    CredentialRejectedError,
    MalformedResponseError,
    TransportError,
)
from wallet_fleet.service.transport import build_client, raise_for_status

if TYPE_CHECKING:
    from wallet_fleet.config.settings import ProxyConfig, ServiceConfig


class CredentialIssuer:
    """Async HTTP client for the login endpoint.

    Usage::

        issuer = CredentialIssuer(service_config, proxy_config)
        await issuer.connect()
        try:
            token = await issuer.issue(public_id, message, signature)
        finally:
            await issuer.close()
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
            timeout=self._config.login_timeout,
            headers={"Accept": "application/json, text/plain, */*"},
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

    async def issue(
        self,
        public_id: str,
        message: str,
        signature: str,
        referral_code: str = "",
    ) -> str:
        """Request a fresh access credential for a wallet.

        Args:
            public_id: Base58 wallet address.
            message: The challenge message that was signed.
            signature: Base58 detached signature over *message*.
            referral_code: Referral code for first-time enrollment.

        Returns:
            The access token.

        Raises:
            TransportError: On network failures.
            UnauthorizedError / ServerError: On non-2xx answers.
            CredentialRejectedError: When the answer holds no token.
        """
        client = self._ensure_connected()
        body = {
            "message": message,
            "walletAddress": public_id,
            "signature": signature,
            "referralCode": referral_code,
        }
        try:
            response = await client.post(self._config.login_url, json=body)
        except httpx.HTTPError as exc:
            raise TransportError(f"login request failed: {exc}") from exc

        raise_for_status(response, "login")

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise MalformedResponseError("login response is not JSON") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token:
            raise CredentialRejectedError
        return str(token)

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "CredentialIssuer is not connected, call connect() first"
            raise RuntimeError(msg)
        return self._client
