"""EventLedger protocol - append-only store of mint/transfer/burn events."""

from __future__ import annotations

from typing import Protocol, Sequence

from stamp_indexer.models.events import BurnEvent, MintEvent, TransferEvent
from stamp_indexer.models.records import StatsSnapshot


class EventLedger(Protocol):
    """Single source of truth for recorded events and running stats.

    Appends update the stats as one inseparable step. Read accessors return
    the backing sequences; callers copy before sorting.
    """

    def append_mint(self, event: MintEvent) -> None:
        ...

    def append_transfer(self, event: TransferEvent) -> None:
        ...

    def append_burn(self, event: BurnEvent) -> None:
        ...

    @property
    def mints(self) -> Sequence[MintEvent]:
        ...

    @property
    def transfers(self) -> Sequence[TransferEvent]:
        ...

    @property
    def burns(self) -> Sequence[BurnEvent]:
        ...

    def stats_snapshot(self) -> StatsSnapshot:
        ...
