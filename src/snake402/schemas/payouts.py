# src/snake402/schemas/payouts.py
"""Payout scheduler and administration schemas."""

from pydantic import BaseModel, Field


class PayoutStatusResponse(BaseModel):
    """Scheduler clock and last settlement reference."""

    last_payout_at: int
    next_payout_at: int
    last_payout_at_iso: str
    next_payout_at_iso: str
    last_tx_hash: str | None = None
    last_tx_link: str | None = None
    running: bool = False


class PayoutRunResponse(PayoutStatusResponse):
    """Result of a forced payout cycle."""

    status: str = "ok"
    cycle_id: str
    pool: str
    winners: int
    settlement_status: str


class RemovePlayersRequest(BaseModel):
    """Body of ``POST /admin/remove-players``."""

    wallets: list[str] = Field(..., min_length=1)

    def normalized(self) -> list[str]:
        return [wallet.lower() for wallet in self.wallets]
