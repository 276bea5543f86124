"""STX faucet."""

from stamp_indexer.faucet.service import FaucetService

__all__ = ["FaucetService"]
