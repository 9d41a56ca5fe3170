"""Payment proof verification.

Verification itself is delegated to an x402 facilitator. This module only
narrows what crosses the boundary: a validated ``PaymentProof`` goes out and a
validated facilitator answer comes back. Anything that does not conform is
treated as unverified.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from snake402.core.settings import Settings
from snake402.schemas.session import PaymentProof

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentVerification:
    """Outcome of verifying one payment proof."""

    verified: bool
    payer: str | None = None
    reason: str | None = None


class PaymentVerifier(Protocol):
    """Anything able to decide whether a payment proof is genuine."""

    async def verify(self, proof: PaymentProof) -> PaymentVerification: ...

    async def close(self) -> None: ...


class FacilitatorVerifyResponse(BaseModel):
    """Subset of the facilitator ``/verify`` response the server relies on."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_valid: bool = Field(alias="isValid")
    invalid_reason: str | None = Field(default=None, alias="invalidReason")
    payer: str | None = None


class FacilitatorPaymentVerifier:
    """Verify proofs against a remote x402 facilitator over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        network: str,
        amount: str,
        recipient: str | None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.network = network
        self.amount = amount
        self.recipient = recipient
        self._timeout = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self._timeout),
                    transport=self._transport,
                )
        return self._client

    async def verify(self, proof: PaymentProof) -> PaymentVerification:
        client = await self._ensure_client()
        payload = {
            "txHash": proof.tx_hash,
            "payer": proof.payer,
            "payload": proof.payload,
            "requirements": {
                "network": self.network,
                "maxAmountRequired": self.amount,
                "payTo": self.recipient,
            },
        }
        try:
            response = await client.post("/verify", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Facilitator request failed for %s: %s", proof.tx_hash, exc)
            return PaymentVerification(verified=False, reason="facilitator_unreachable")

        if response.status_code >= 400:
            logger.warning(
                "Facilitator rejected %s with HTTP %d", proof.tx_hash, response.status_code
            )
            return PaymentVerification(verified=False, reason=f"http_{response.status_code}")

        try:
            body = FacilitatorVerifyResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("Facilitator returned a malformed body for %s: %s", proof.tx_hash, exc)
            return PaymentVerification(verified=False, reason="malformed_response")

        if not body.is_valid:
            return PaymentVerification(
                verified=False, reason=body.invalid_reason or "invalid_payment"
            )
        payer = body.payer.lower() if body.payer else proof.payer
        return PaymentVerification(verified=True, payer=payer)

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class SandboxPaymentVerifier:
    """Accept every well-formed proof without touching the network."""

    async def verify(self, proof: PaymentProof) -> PaymentVerification:
        logger.info("SANDBOX MODE: simulating payment verification for %s", proof.tx_hash)
        return PaymentVerification(verified=True, payer=proof.payer)

    async def close(self) -> None:
        return None


def build_payment_verifier(config: Settings) -> PaymentVerifier:
    """Return the verifier selected by configuration."""
    if config.sandbox_mode:
        return SandboxPaymentVerifier()
    return FacilitatorPaymentVerifier(
        config.facilitator_url,
        network=config.cdp_network,
        amount=config.entry_fee_usdc,
        recipient=config.prize_pool_contract or config.cdp_recipient_address,
        timeout_seconds=config.facilitator_timeout_seconds,
    )
