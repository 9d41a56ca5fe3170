"""Append-only payout audit journal.

The journal is a JSON-lines file kept apart from the stats tables. Allocation
lines are written before any settlement is attempted, so the file stays the
source of truth for reconciliation and replay even when the ledger call never
happens or fails.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from snake402.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

ENTRY_ALLOCATION = "allocation"
ENTRY_TREASURY = "treasury"
ENTRY_SETTLED = "onchain_end_cycle"
ENTRY_SETTLEMENT_ERROR = "onchain_end_cycle_error"
ENTRY_SETTLEMENT_SKIPPED = "onchain_end_cycle_skipped"


class PayoutJournal:
    """Serialized appends to a JSON-lines audit file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def append(self, entries: Iterable[Mapping[str, Any]]) -> None:
        """Append ``entries`` as one write; raises ``StoreUnavailable`` on I/O errors."""
        text = "".join(json.dumps(dict(entry), sort_keys=True) + "\n" for entry in entries)
        if not text:
            return
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, text)
            except OSError as exc:
                logger.error("Failed to write payout journal %s: %s", self.path, exc)
                raise StoreUnavailable("Payout journal is not writable") from exc

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())

    async def read(self) -> list[dict[str, Any]]:
        """Return every journal entry in write order."""
        async with self._lock:
            try:
                return await asyncio.to_thread(self._read)
            except OSError as exc:
                raise StoreUnavailable("Payout journal is not readable") from exc

    def _read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        entries: list[dict[str, Any]] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt journal line %d in %s", line_number, self.path)
        return entries

    async def cycle_entries(self, cycle_id: str) -> list[dict[str, Any]]:
        """Return the entries written for one payout cycle."""
        return [entry for entry in await self.read() if entry.get("cycle_id") == cycle_id]
