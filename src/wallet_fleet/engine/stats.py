"""Per-wallet runtime statistics and the immutable snapshots rendered from them.

Each :class:`WalletStats` is written by exactly one poll loop.  The
reporter never sees the live object, only :class:`StatsSnapshot` copies
taken between two awaits, so a rendered row is always self-consistent.
"""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field

_HISTORY_LEN = 16


class LoopState(enum.Enum):
    """Where a wallet's poll loop currently is."""

    IDLE = "idle"
    INVOKING = "invoking"
    AWAITING_REFRESH = "awaiting_refresh"


class WalletStatus(enum.StrEnum):
    """Last visible status of a wallet, as shown in the stats table."""

    READY = "Ready"
    SENDING = "Sending"
    SUCCESS = "Success"
    PARSE_ERROR = "Parse Error"
    TOKEN_EXPIRED = "Token Expired"
    REFRESHING = "Refreshing Token..."
    REFRESHED = "Token Refreshed"
    REFRESH_FAILED = "Refresh Failed"
    FAILED = "Failed"


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of one wallet's statistics."""

    public_id: str
    short_id: str
    requests_sent: int
    successes: int
    failures: int
    server_time: float
    status: WalletStatus
    failure_reason: str
    state: LoopState

    @property
    def refreshing(self) -> bool:
        return self.state is LoopState.AWAITING_REFRESH

    @property
    def status_text(self) -> str:
        if self.status is WalletStatus.FAILED and self.failure_reason:
            return f"{self.status}: {self.failure_reason}"
        return str(self.status)


@dataclass
class WalletStats:
    """Mutable counters owned by a single poll loop."""

    public_id: str
    short_id: str = ""
    requests_sent: int = 0
    successes: int = 0
    failures: int = 0
    server_time: float = 0.0
    status: WalletStatus = WalletStatus.READY
    failure_reason: str = ""
    state: LoopState = LoopState.IDLE
    history: deque[WalletStatus] = field(default_factory=lambda: deque(maxlen=_HISTORY_LEN))

    def __post_init__(self) -> None:
        if not self.short_id:
            self.short_id = self.public_id
        self.history.append(self.status)

    @property
    def refreshing(self) -> bool:
        """True only while a credential refresh is in flight."""
        return self.state is LoopState.AWAITING_REFRESH

    def set_status(self, status: WalletStatus, reason: str = "") -> None:
        """Record a status transition."""
        self.status = status
        self.failure_reason = reason if status is WalletStatus.FAILED else ""
        self.history.append(status)

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            public_id=self.public_id,
            short_id=self.short_id,
            requests_sent=self.requests_sent,
            successes=self.successes,
            failures=self.failures,
            server_time=self.server_time,
            status=self.status,
            failure_reason=self.failure_reason,
            state=self.state,
        )
