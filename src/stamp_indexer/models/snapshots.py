"""JSON-serializable read models returned by the query API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from stamp_indexer.models.events import BurnEvent, MintEvent, TransferEvent

E = TypeVar("E", MintEvent, TransferEvent, BurnEvent)


@dataclass
class Page(Generic[E]):
    total: int  # unsliced length
    limit: int
    offset: int
    data: list[E] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
            "data": [e.to_json() for e in self.data],
        }


@dataclass(frozen=True)
class ActivityEntry:
    """A ledger event tagged with its kind for the cross-type feed."""

    type: str  # "mint", "transfer" or "burn"
    event: Union[MintEvent, TransferEvent, BurnEvent]

    @property
    def timestamp(self) -> int:
        return self.event.timestamp

    def to_json(self) -> dict[str, Any]:
        return {**self.event.to_json(), "type": self.type}


@dataclass
class UserActivity:
    address: str
    mints: list[MintEvent] = field(default_factory=list)
    transfers: list[TransferEvent] = field(default_factory=list)
    burns: list[BurnEvent] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "totalMints": len(self.mints),
            "totalTransfers": len(self.transfers),
            "totalBurns": len(self.burns),
            "mints": [m.to_json() for m in self.mints],
            "transfers": [t.to_json() for t in self.transfers],
            "burns": [b.to_json() for b in self.burns],
        }
