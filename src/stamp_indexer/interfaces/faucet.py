"""Faucet protocols - transaction signing and broadcast collaborators."""

from __future__ import annotations

from typing import Protocol


class TransferSigner(Protocol):
    """Builds and signs an STX token transfer from the faucet wallet."""

    async def sign_transfer(self, recipient: str, amount_microstx: int, memo: str) -> bytes:
        """Return the serialized, signed transaction ready for broadcast."""
        ...


class TransactionBroadcaster(Protocol):
    """Submits a serialized transaction to a Stacks node."""

    async def broadcast_transaction(self, raw_tx: bytes) -> str:
        """Return the txid. Raises BroadcastError if the node rejects it."""
        ...
