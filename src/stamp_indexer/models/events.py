"""Ledger event models built from chainhook contract-call deliveries."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class MintType(str, Enum):
    """Which contract entry point produced a mint."""

    PAID = "paid"  # mint
    FREE = "free"  # free-mint
    OWNER = "owner"  # owner-mint


@dataclass(frozen=True)
class MintEvent:
    """A successful mint, free-mint, or owner-mint call."""

    token_id: str
    minter: str  # Stacks address
    name: str
    uri: str
    mint_type: MintType
    tx_id: str
    block_height: int
    timestamp: int

    def to_json(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "minter": self.minter,
            "name": self.name,
            "uri": self.uri,
            "mintType": self.mint_type.value,
            "txId": self.tx_id,
            "blockHeight": self.block_height,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TransferEvent:
    """A successful transfer call."""

    token_id: str
    sender: str  # "from" on the wire
    recipient: str  # "to" on the wire
    tx_id: str
    block_height: int
    timestamp: int

    def to_json(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "from": self.sender,
            "to": self.recipient,
            "txId": self.tx_id,
            "blockHeight": self.block_height,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class BurnEvent:
    """A successful burn call. The owner is the transaction sender."""

    token_id: str
    owner: str
    tx_id: str
    block_height: int
    timestamp: int

    def to_json(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "owner": self.owner,
            "txId": self.tx_id,
            "blockHeight": self.block_height,
            "timestamp": self.timestamp,
        }
