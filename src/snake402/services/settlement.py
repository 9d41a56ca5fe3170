"""Settlement of a payout cycle on the external ledger.

The whole cycle is submitted as one ``endCycle(winners, rewards)`` transaction
so the ledger sees it atomically. Settlement is never retried automatically:
a failure is logged and journaled, and the operator replays the cycle from the
audit journal. A cycle that settled successfully is never submitted twice by
the same client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from web3 import Web3

from snake402.core.errors import SettlementFailed, StoreUnavailable
from snake402.core.settings import Settings
from snake402.services.broadcaster import EventBroadcaster
from snake402.services.journal import (
    ENTRY_SETTLED,
    ENTRY_SETTLEMENT_ERROR,
    ENTRY_SETTLEMENT_SKIPPED,
    PayoutJournal,
)

logger = logging.getLogger(__name__)

MAINNET_EXPLORER_TX_URL = "https://basescan.org/tx/"
TESTNET_EXPLORER_TX_URL = "https://sepolia.basescan.org/tx/"

PRIZE_POOL_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "endCycle",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "winners", "type": "address[]"},
            {"name": "rewards", "type": "uint256[]"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "Payout",
        "anonymous": False,
        "inputs": [
            {"name": "to", "type": "address", "indexed": True},
            {"name": "amount", "type": "uint256", "indexed": False},
        ],
    },
]


class SettlementStatus(str, Enum):
    """Outcome of one settlement attempt."""

    SETTLED = "settled"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SettlementRequest:
    """Everything the ledger needs for one cycle, in fixed-point units."""

    cycle_id: str
    timestamp: str
    winners: tuple[str, ...] = ()
    amounts: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if len(self.winners) != len(self.amounts):
            raise ValueError("winners and amounts must have the same length")


@dataclass(frozen=True)
class SettlementResult:
    """Recorded outcome of settling one cycle."""

    cycle_id: str
    status: SettlementStatus
    tx_hash: str | None = None
    tx_link: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class LedgerReceipt:
    """Mined transaction reference returned by a ledger gateway."""

    tx_hash: str
    status: int = 1
    block_number: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class LedgerGateway(Protocol):
    """Submits a full cycle payout to an external ledger."""

    async def end_cycle(self, winners: Sequence[str], amounts: Sequence[int]) -> LedgerReceipt: ...


def build_explorer_tx_link(tx_hash: str | None, *, mainnet: bool) -> str | None:
    """Return a BaseScan URL for ``tx_hash``."""
    if not tx_hash:
        return None
    base_url = MAINNET_EXPLORER_TX_URL if mainnet else TESTNET_EXPLORER_TX_URL
    return f"{base_url}{tx_hash}"


class Web3PrizePoolLedger:
    """Call ``endCycle`` on the prize-pool contract through web3.py.

    web3's HTTP provider is blocking, so each submission runs in a worker
    thread. Once sent, the transaction is awaited to completion.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        *,
        receipt_timeout_seconds: float = 300.0,
        web3: Web3 | None = None,
    ) -> None:
        self.web3 = web3 or Web3(Web3.HTTPProvider(rpc_url))
        self.account = self.web3.eth.account.from_key(private_key)
        self.contract = self.web3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=PRIZE_POOL_ABI,
        )
        self.receipt_timeout_seconds = receipt_timeout_seconds

    async def end_cycle(self, winners: Sequence[str], amounts: Sequence[int]) -> LedgerReceipt:
        return await asyncio.to_thread(self._end_cycle_sync, list(winners), list(amounts))

    def _end_cycle_sync(self, winners: list[str], amounts: list[int]) -> LedgerReceipt:
        sender = self.account.address
        checksummed = [Web3.to_checksum_address(wallet) for wallet in winners]
        tx = self.contract.functions.endCycle(checksummed, amounts).build_transaction(
            {
                "from": sender,
                "nonce": self.web3.eth.get_transaction_count(sender, "pending"),
                "chainId": self.web3.eth.chain_id,
            }
        )
        signed = self.account.sign_transaction(tx)
        tx_hash = Web3.to_hex(self.web3.eth.send_raw_transaction(signed.raw_transaction))
        logger.info("endCycle submitted: %s (%d winners)", tx_hash, len(winners))

        receipt = self.web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.receipt_timeout_seconds
        )
        status = int(receipt.get("status", 1))
        if status != 1:
            raise SettlementFailed(f"endCycle transaction {tx_hash} reverted")
        return LedgerReceipt(
            tx_hash=tx_hash,
            status=status,
            block_number=receipt.get("blockNumber"),
        )


class SettlementClient:
    """Submit cycle allocations once and record what happened."""

    def __init__(
        self,
        ledger: LedgerGateway | None,
        journal: PayoutJournal,
        broadcaster: EventBroadcaster,
        *,
        mainnet: bool = False,
        timeout_seconds: float | None = None,
    ) -> None:
        self.ledger = ledger
        self.journal = journal
        self.broadcaster = broadcaster
        self.mainnet = mainnet
        self.timeout_seconds = timeout_seconds if timeout_seconds else None
        self._settled: dict[str, SettlementResult] = {}
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.ledger is not None

    def result_for(self, cycle_id: str) -> SettlementResult | None:
        return self._settled.get(cycle_id)

    async def settle(self, request: SettlementRequest) -> SettlementResult:
        """Settle ``request`` on the ledger. Failures are returned, not raised."""
        async with self._lock:
            prior = self._settled.get(request.cycle_id)
            if prior is not None:
                logger.info("Cycle %s already settled (%s)", request.cycle_id, prior.tx_hash)
                return prior

            if self.ledger is None:
                logger.info("On-chain payouts disabled or missing config; logged rewards only.")
                result = SettlementResult(cycle_id=request.cycle_id, status=SettlementStatus.SKIPPED)
                await self._journal_outcome(
                    {"type": ENTRY_SETTLEMENT_SKIPPED},
                    request,
                )
                return result

            try:
                receipt = await self._submit(request)
            except SettlementFailed as exc:
                logger.error(
                    "On-chain endCycle failed for cycle %s: %s",
                    request.cycle_id,
                    exc,
                    exc_info=True,
                )
                await self._journal_outcome(
                    {"type": ENTRY_SETTLEMENT_ERROR, "error": str(exc)},
                    request,
                )
                return SettlementResult(
                    cycle_id=request.cycle_id,
                    status=SettlementStatus.FAILED,
                    error=str(exc),
                )

            tx_link = build_explorer_tx_link(receipt.tx_hash, mainnet=self.mainnet)
            result = SettlementResult(
                cycle_id=request.cycle_id,
                status=SettlementStatus.SETTLED,
                tx_hash=receipt.tx_hash,
                tx_link=tx_link,
            )
            self._settled[request.cycle_id] = result
            logger.info("endCycle tx: %s | %s", receipt.tx_hash, tx_link)
            await self._journal_outcome(
                {
                    "type": ENTRY_SETTLED,
                    "tx_hash": receipt.tx_hash,
                    "tx_link": tx_link,
                    "status": receipt.status,
                },
                request,
            )

        for wallet, amount in zip(request.winners, request.amounts, strict=True):
            self.broadcaster.publish(
                {
                    "type": "payout",
                    "to": wallet,
                    "amount": str(amount),
                    "tx_hash": receipt.tx_hash,
                }
            )
        return result

    async def _submit(self, request: SettlementRequest) -> LedgerReceipt:
        if self.ledger is None:
            raise SettlementFailed("No ledger gateway is configured")
        call = self.ledger.end_cycle(list(request.winners), list(request.amounts))
        try:
            if self.timeout_seconds is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except SettlementFailed:
            raise
        except TimeoutError as exc:
            raise SettlementFailed(
                f"endCycle did not complete within {self.timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            raise SettlementFailed(f"endCycle call failed: {exc}") from exc

    async def _journal_outcome(self, entry: dict[str, Any], request: SettlementRequest) -> None:
        entry.update({"cycle_id": request.cycle_id, "timestamp": request.timestamp})
        try:
            await self.journal.append([entry])
        except StoreUnavailable:
            # Allocation lines are already on disk; the outcome is still in the logs.
            logger.error(
                "Could not journal settlement outcome %s for cycle %s",
                entry["type"],
                request.cycle_id,
            )


def build_ledger(config: Settings) -> LedgerGateway | None:
    """Return the configured ledger gateway, or None when on-chain payouts are off."""
    if not config.onchain_payouts_enabled:
        return None
    rpc_url = config.base_rpc_url
    contract = config.prize_pool_contract
    private_key = config.private_key
    if not (rpc_url and contract and private_key):
        raise ValueError("BASE_RPC_URL, PRIZE_POOL_CONTRACT and PRIVATE_KEY are required")
    return Web3PrizePoolLedger(
        rpc_url,
        contract,
        private_key,
        receipt_timeout_seconds=config.settlement_timeout_seconds or 300.0,
    )
