"""Fleet engine — per-wallet poll loops, coordinator, reporter and enrollment.

``FleetCoordinator`` loads every stored wallet and runs one ``PollLoop``
per wallet as an asyncio task.  Each loop owns its ``WalletStats``; the
``StatsReporter`` redraws immutable snapshots of them on a fixed tick.
"""

from __future__ import annotations

from wallet_fleet.engine.coordinator import FleetCoordinator
from wallet_fleet.engine.enrollment import EnrollmentResult, EnrollmentService, EnrollmentStatus
from wallet_fleet.engine.poll_loop import PollLoop
from wallet_fleet.engine.reporter import StatsReporter
from wallet_fleet.engine.stats import LoopState, StatsSnapshot, WalletStats, WalletStatus

__all__ = [
    "EnrollmentResult",
    "EnrollmentService",
    "EnrollmentStatus",
    "FleetCoordinator",
    "LoopState",
    "PollLoop",
    "StatsReporter",
    "StatsSnapshot",
    "WalletStats",
    "WalletStatus",
]
