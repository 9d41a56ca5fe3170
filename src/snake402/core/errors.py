"""Error taxonomy shared by the session, stats and payout services.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer renders it with.
"""

from __future__ import annotations


class Snake402Error(RuntimeError):
    """Base exception for all domain failures."""

    code = "internal_error"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class SessionNotFound(Snake402Error):
    """Raised when a session id is unknown or already expired."""

    code = "session_not_found"
    status_code = 404
    default_message = "Session not found or already expired"


class SessionNotPaid(Snake402Error):
    """Raised when a score is submitted before the session was paid for."""

    code = "session_not_paid"
    status_code = 403
    default_message = "Session payment has not been verified"


class SessionPayerMismatch(Snake402Error):
    """Raised when the submitting wallet differs from the wallet that paid."""

    code = "session_payer_mismatch"
    status_code = 403
    default_message = "Wallet does not match the session payer"


class PaymentUnverified(Snake402Error):
    """Raised when the payment verifier rejects a proof."""

    code = "payment_unverified"
    status_code = 402
    default_message = "Payment proof could not be verified"


class StoreUnavailable(Snake402Error):
    """Raised when persistent storage cannot be read or written."""

    code = "store_unavailable"
    status_code = 503
    default_message = "Storage is unavailable"


class SettlementFailed(Snake402Error):
    """Raised when the external ledger call fails or reverts."""

    code = "settlement_failed"
    status_code = 502
    default_message = "Settlement on the external ledger failed"


class CycleAlreadyRunning(Snake402Error):
    """Raised when a payout cycle is triggered while another one is in progress."""

    code = "cycle_already_running"
    status_code = 409
    default_message = "Payout already running"


__all__ = [
    "CycleAlreadyRunning",
    "PaymentUnverified",
    "SessionNotFound",
    "SessionNotPaid",
    "SessionPayerMismatch",
    "SettlementFailed",
    "Snake402Error",
    "StoreUnavailable",
]
