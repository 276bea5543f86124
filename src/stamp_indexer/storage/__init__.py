"""Event ledger storage."""

from stamp_indexer.storage.memory import InMemoryEventLedger

__all__ = ["InMemoryEventLedger"]
