"""Internal record types for extraction, statistics, and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ContractCallMatch:
    """One contract call pulled out of a chainhook block.

    Transient: produced per webhook request and consumed by the dispatcher.
    """

    tx_id: str
    block_height: int
    timestamp: int
    sender: str
    method: str
    args: tuple[str, ...]
    result: str
    success: bool


@dataclass
class Stats:
    """Running counters over the ledger. Counters only ever increase."""

    total_mints: int = 0
    paid_mints: int = 0
    free_mints: int = 0
    owner_mints: int = 0
    total_transfers: int = 0
    total_burns: int = 0
    active_users: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of Stats with active users reduced to a count."""

    total_mints: int
    paid_mints: int
    free_mints: int
    owner_mints: int
    total_transfers: int
    total_burns: int
    active_users: int

    def to_json(self) -> dict[str, Any]:
        return {
            "totalMints": self.total_mints,
            "paidMints": self.paid_mints,
            "freeMints": self.free_mints,
            "ownerMints": self.owner_mints,
            "totalTransfers": self.total_transfers,
            "totalBurns": self.total_burns,
            "activeUsers": self.active_users,
        }


@dataclass
class DispatchResult:
    """Outcome of one webhook delivery for a single route."""

    method: str
    extracted: int  # contract calls found for our contract
    processed: int  # calls that matched method + success and were recorded


@dataclass
class FaucetClaimResult:
    """A successful faucet payout."""

    tx_id: str
    amount_stx: str
    cooldown_minutes: int
    next_eligible_at: int  # unix ms

    def to_json(self) -> dict[str, Any]:
        return {
            "txId": self.tx_id,
            "amountStx": self.amount_stx,
            "cooldownMinutes": self.cooldown_minutes,
            "nextEligibleAt": self.next_eligible_at,
        }
