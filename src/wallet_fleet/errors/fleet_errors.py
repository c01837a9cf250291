"""FleetError — base exception class and the error taxonomy of the fleet.

Every failure a poll cycle can observe is one of these classes; the
service clients translate transport-library exceptions into them at their
boundary so the engine never sees ``httpx`` types.
"""

from __future__ import annotations


class FleetError(Exception):
    """Base error for all wallet-fleet operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "fleet-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def reason(self) -> str:
        """Short classification shown as the failure reason of a cycle."""
        return self.message


class TransportError(FleetError):
    """Network-level failure: connect error, timeout, proxy failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="transport-error")


class ServiceError(FleetError):
    """The remote service answered with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, code: str = "service-error") -> None:
        super().__init__(message, code=code)
        self.status_code = status_code

    @property
    def reason(self) -> str:
        return str(self.status_code)


class UnauthorizedError(ServiceError):
    """The access credential is missing, expired or otherwise rejected."""

    def __init__(self, message: str = "unauthorized", *, status_code: int = 401) -> None:
        super().__init__(message, status_code=status_code, code="unauthorized")


class ServerError(ServiceError):
    """Any non-2xx answer that is not an authorization failure."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message, status_code=status_code, code="server-error")


class MalformedResponseError(FleetError):
    """A 2xx response whose body could not be decoded."""

    def __init__(self, message: str = "malformed response body") -> None:
        super().__init__(message, code="malformed-response")


class CredentialRejectedError(FleetError):
    """The credential issuer answered but did not hand out a credential."""

    def __init__(self, message: str = "no access token in login response") -> None:
        super().__init__(message, code="credential-rejected")


class StoreError(FleetError):
    """The identity store could not complete a read or write."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="store-error")
