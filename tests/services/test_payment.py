import json

import httpx
import pytest
from pydantic import ValidationError

from snake402.core.settings import Settings
from snake402.schemas import PaymentProof
from snake402.services.payment import (
    FacilitatorPaymentVerifier,
    SandboxPaymentVerifier,
    build_payment_verifier,
)
from tests.conftest import TX_HASH, WALLET_A, WALLET_B


def _verifier(handler) -> FacilitatorPaymentVerifier:
    return FacilitatorPaymentVerifier(
        "http://facilitator.test/api",
        network="base-sepolia",
        amount="0.001",
        recipient=WALLET_B,
        transport=httpx.MockTransport(handler),
    )


def test_proof_is_normalized_and_strict():
    proof = PaymentProof(tx_hash="0x" + TX_HASH[2:].upper(), payer="0x" + WALLET_A[2:].upper())
    assert proof.tx_hash == TX_HASH
    assert proof.payer == WALLET_A

    with pytest.raises(ValidationError):
        PaymentProof(tx_hash="0x1234")
    with pytest.raises(ValidationError):
        PaymentProof(tx_hash=TX_HASH, unexpected="field")


@pytest.mark.asyncio
async def test_facilitator_accepts_valid_payment():
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"isValid": True, "payer": "0x" + WALLET_A[2:].upper()})

    verifier = _verifier(handler)
    result = await verifier.verify(PaymentProof(tx_hash=TX_HASH))
    await verifier.close()

    assert result.verified
    assert result.payer == WALLET_A
    assert seen["url"] == "http://facilitator.test/api/verify"
    body = seen["body"]
    assert body["txHash"] == TX_HASH
    assert body["requirements"] == {
        "network": "base-sepolia",
        "maxAmountRequired": "0.001",
        "payTo": WALLET_B,
    }


@pytest.mark.asyncio
async def test_facilitator_rejection_is_unverified():
    verifier = _verifier(
        lambda request: httpx.Response(200, json={"isValid": False, "invalidReason": "insufficient_funds"})
    )

    result = await verifier.verify(PaymentProof(tx_hash=TX_HASH, payer=WALLET_A))

    assert not result.verified
    assert result.reason == "insufficient_funds"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "reason"),
    [
        (httpx.Response(500, text="boom"), "http_500"),
        (httpx.Response(200, text="not json"), "malformed_response"),
        (httpx.Response(200, json={"valid": "yes"}), "malformed_response"),
    ],
)
async def test_non_conforming_answers_are_unverified(response: httpx.Response, reason: str):
    verifier = _verifier(lambda request: response)

    result = await verifier.verify(PaymentProof(tx_hash=TX_HASH))

    assert not result.verified
    assert result.reason == reason


@pytest.mark.asyncio
async def test_transport_errors_are_unverified():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _verifier(handler).verify(PaymentProof(tx_hash=TX_HASH))

    assert not result.verified
    assert result.reason == "facilitator_unreachable"


@pytest.mark.asyncio
async def test_sandbox_accepts_any_wellformed_proof():
    result = await SandboxPaymentVerifier().verify(PaymentProof(tx_hash=TX_HASH, payer=WALLET_A))
    assert result.verified
    assert result.payer == WALLET_A


def test_verifier_selection_follows_sandbox_flag():
    assert isinstance(build_payment_verifier(Settings(SANDBOX_MODE=True)), SandboxPaymentVerifier)
    assert isinstance(
        build_payment_verifier(Settings(SANDBOX_MODE=False)), FacilitatorPaymentVerifier
    )
