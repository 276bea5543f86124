"""Protocol interfaces for stamp_indexer components."""

from stamp_indexer.interfaces.ledger import EventLedger
from stamp_indexer.interfaces.faucet import TransactionBroadcaster, TransferSigner

__all__ = ["EventLedger", "TransactionBroadcaster", "TransferSigner"]
