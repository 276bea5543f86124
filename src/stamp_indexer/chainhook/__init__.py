"""Chainhook payload handling - classification and contract-call extraction."""

from stamp_indexer.chainhook.payload import ClassifiedPayload, PayloadForm, classify_payload
from stamp_indexer.chainhook.extractor import ContractCallExtractor

__all__ = ["ClassifiedPayload", "PayloadForm", "classify_payload", "ContractCallExtractor"]
