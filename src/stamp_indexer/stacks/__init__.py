"""Stacks chain helpers."""

from stamp_indexer.stacks.client import StacksApiClient

__all__ = ["StacksApiClient"]
