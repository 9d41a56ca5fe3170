"""Re-submit a journaled payout cycle to the prize-pool contract.

Settlement is never retried automatically. When a cycle's ``endCycle`` call
failed or timed out, the operator replays it from the audit journal:

  python -m snake402.scripts.replay_payout 2026-01-01T00:00:00+00:00

A cycle that already has an ``onchain_end_cycle`` line is refused unless
``--force`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from snake402.core.settings import settings
from snake402.services.broadcaster import EventBroadcaster
from snake402.services.journal import ENTRY_ALLOCATION, ENTRY_SETTLED, PayoutJournal
from snake402.services.settlement import (
    SettlementClient,
    SettlementRequest,
    SettlementResult,
    build_ledger,
)

logger = logging.getLogger(__name__)


class ReplayError(RuntimeError):
    """Raised when a cycle cannot be replayed from the journal."""


def build_replay_request(entries: list[dict[str, Any]], cycle_id: str) -> SettlementRequest:
    """Rebuild the settlement request from a cycle's allocation lines."""
    allocations = [entry for entry in entries if entry.get("type") == ENTRY_ALLOCATION]
    winners = tuple(str(entry["wallet"]) for entry in allocations)
    amounts = tuple(int(entry["reward_units"]) for entry in allocations)
    timestamp = allocations[0]["timestamp"] if allocations else cycle_id
    return SettlementRequest(
        cycle_id=cycle_id, timestamp=str(timestamp), winners=winners, amounts=amounts
    )


async def replay_cycle(
    journal: PayoutJournal,
    settlement: SettlementClient,
    cycle_id: str,
    *,
    force: bool = False,
) -> SettlementResult:
    """Settle ``cycle_id`` again from what the journal recorded."""
    entries = await journal.cycle_entries(cycle_id)
    if not entries:
        raise ReplayError(f"No journal entries for cycle {cycle_id}")
    if not force and any(entry.get("type") == ENTRY_SETTLED for entry in entries):
        raise ReplayError(f"Cycle {cycle_id} already settled; use --force to resubmit")
    if not settlement.enabled:
        raise ReplayError("On-chain payouts are not configured")

    request = build_replay_request(entries, cycle_id)
    logger.info("Replaying cycle %s with %d winners", cycle_id, len(request.winners))
    return await settlement.settle(request)


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay a payout cycle from the audit journal")
    parser.add_argument("cycle_id", help="Cycle id as written in the journal")
    parser.add_argument(
        "--journal",
        default=None,
        help="Journal path (defaults to PAYOUT_JOURNAL_PATH)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Resubmit even if the journal records a successful settlement.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    journal = PayoutJournal(args.journal or settings.payout_journal_path)
    settlement = SettlementClient(
        build_ledger(settings),
        journal,
        EventBroadcaster(),
        mainnet=settings.is_mainnet,
        timeout_seconds=settings.settlement_timeout_seconds,
    )
    try:
        result = asyncio.run(replay_cycle(journal, settlement, args.cycle_id, force=args.force))
    except ReplayError as exc:
        print(f"[replay_payout] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"[replay_payout] cycle {result.cycle_id}: {result.status.value}")
    if result.tx_link:
        print(f"[replay_payout] {result.tx_link}")
    if result.error:
        print(f"[replay_payout] {result.error}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
