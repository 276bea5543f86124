"""In-memory implementation of the EventLedger protocol.

State lives for the process lifetime only. Nothing is deduplicated: a
redelivered webhook is recorded again.
"""

from __future__ import annotations

import threading
from typing import Sequence

from stamp_indexer.models.events import BurnEvent, MintEvent, MintType, TransferEvent
from stamp_indexer.models.records import Stats, StatsSnapshot


class InMemoryEventLedger:
    """Append-only event log plus running Stats.

    Invariants:
        total_mints == paid_mints + free_mints + owner_mints == len(mints)
        total_transfers == len(transfers), total_burns == len(burns)
        active_users only grows.
    """

    def __init__(self) -> None:
        self._mints: list[MintEvent] = []
        self._transfers: list[TransferEvent] = []
        self._burns: list[BurnEvent] = []
        self._stats = Stats()
        # Guards each append + stats update pair when shared across threads.
        self._lock = threading.Lock()

    # ── Appends ────────────────────────────────────────────

    def append_mint(self, event: MintEvent) -> None:
        with self._lock:
            self._mints.append(event)
            self._stats.total_mints += 1
            self._stats.active_users.add(event.minter)
            if event.mint_type is MintType.PAID:
                self._stats.paid_mints += 1
            elif event.mint_type is MintType.FREE:
                self._stats.free_mints += 1
            elif event.mint_type is MintType.OWNER:
                self._stats.owner_mints += 1

    def append_transfer(self, event: TransferEvent) -> None:
        with self._lock:
            self._transfers.append(event)
            self._stats.total_transfers += 1
            self._stats.active_users.add(event.sender)
            self._stats.active_users.add(event.recipient)

    def append_burn(self, event: BurnEvent) -> None:
        with self._lock:
            self._burns.append(event)
            self._stats.total_burns += 1
            self._stats.active_users.add(event.owner)

    # ── Reads ──────────────────────────────────────────────

    @property
    def mints(self) -> Sequence[MintEvent]:
        return self._mints

    @property
    def transfers(self) -> Sequence[TransferEvent]:
        return self._transfers

    @property
    def burns(self) -> Sequence[BurnEvent]:
        return self._burns

    def stats_snapshot(self) -> StatsSnapshot:
        with self._lock:
            s = self._stats
            return StatsSnapshot(
                total_mints=s.total_mints,
                paid_mints=s.paid_mints,
                free_mints=s.free_mints,
                owner_mints=s.owner_mints,
                total_transfers=s.total_transfers,
                total_burns=s.total_burns,
                active_users=len(s.active_users),
            )
