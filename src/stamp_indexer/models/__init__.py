"""Data models for the stamp_indexer service."""

from stamp_indexer.models.events import BurnEvent, MintEvent, MintType, TransferEvent
from stamp_indexer.models.records import (
    ContractCallMatch,
    DispatchResult,
    FaucetClaimResult,
    Stats,
    StatsSnapshot,
)
from stamp_indexer.models.config import (
    ChainhookProvider,
    FaucetConfig,
    IndexerConfig,
    StacksNetwork,
)

__all__ = [
    "BurnEvent", "MintEvent", "MintType", "TransferEvent",
    "ContractCallMatch", "DispatchResult", "FaucetClaimResult", "Stats", "StatsSnapshot",
    "ChainhookProvider", "FaucetConfig", "IndexerConfig", "StacksNetwork",
]
