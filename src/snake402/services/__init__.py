"""Business logic services for the Snake402 server."""

from .broadcaster import EventBroadcaster, Subscription
from .container import ServiceContainer, build_services
from .journal import PayoutJournal
from .payment import (
    FacilitatorPaymentVerifier,
    PaymentVerification,
    PaymentVerifier,
    SandboxPaymentVerifier,
)
from .payout import PayoutEngine, compute_allocation
from .scheduler import PayoutScheduler
from .sessions import GameSession, PaymentState, SessionRegistry
from .settlement import SettlementClient, SettlementResult, SettlementStatus
from .stats_store import LeaderboardKind, StatsScope, StatsStore

__all__ = [
    "EventBroadcaster",
    "Subscription",
    "ServiceContainer",
    "build_services",
    "PayoutJournal",
    "FacilitatorPaymentVerifier",
    "PaymentVerification",
    "PaymentVerifier",
    "SandboxPaymentVerifier",
    "PayoutEngine",
    "compute_allocation",
    "PayoutScheduler",
    "GameSession",
    "PaymentState",
    "SessionRegistry",
    "SettlementClient",
    "SettlementResult",
    "SettlementStatus",
    "LeaderboardKind",
    "StatsScope",
    "StatsStore",
]
