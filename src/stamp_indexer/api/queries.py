"""Query service - read-only views over the event ledger."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, TypeVar

from stamp_indexer.interfaces.ledger import EventLedger
from stamp_indexer.models.records import StatsSnapshot
from stamp_indexer.models.snapshots import ActivityEntry, Page, UserActivity

log = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 50
DEFAULT_ACTIVITY_LIMIT = 20


class _Timestamped(Protocol):
    @property
    def timestamp(self) -> int:
        ...


T = TypeVar("T", bound=_Timestamped)


def _newest_first(events: Sequence[T]) -> list[T]:
    # sorted() copies and is stable, so equal timestamps keep insertion order.
    return sorted(events, key=lambda e: e.timestamp, reverse=True)


def _page(events: Sequence[T], limit: int, offset: int) -> Page:
    ordered = _newest_first(events)
    return Page(
        total=len(events),
        limit=limit,
        offset=offset,
        data=ordered[offset:offset + limit],
    )


class QueryService:
    """Builds JSON-serializable views from ledger state.

    Never mutates the ledger; every listing works on a sorted copy.
    """

    def __init__(self, ledger: EventLedger) -> None:
        self._ledger = ledger

    def get_stats(self) -> StatsSnapshot:
        return self._ledger.stats_snapshot()

    def list_mints(self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0) -> Page:
        return _page(self._ledger.mints, limit, offset)

    def list_transfers(self, limit: int = DEFAULT_PAGE_LIMIT, offset: int = 0) -> Page:
        return _page(self._ledger.transfers, limit, offset)

    def recent_activity(self, limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[ActivityEntry]:
        """Mints, transfers and burns merged newest first, truncated to ``limit``."""
        entries = [ActivityEntry("mint", m) for m in self._ledger.mints]
        entries += [ActivityEntry("transfer", t) for t in self._ledger.transfers]
        entries += [ActivityEntry("burn", b) for b in self._ledger.burns]
        return _newest_first(entries)[:limit]

    def user_activity(self, address: str) -> UserActivity:
        """Everything an address minted, sent, received, or burned."""
        return UserActivity(
            address=address,
            mints=[m for m in self._ledger.mints if m.minter == address],
            transfers=[
                t for t in self._ledger.transfers
                if t.sender == address or t.recipient == address
            ],
            burns=[b for b in self._ledger.burns if b.owner == address],
        )
