"""stamp_indexer - Chainhook webhook indexer for a Stacks NFT contract."""

__version__ = "0.1.0"
