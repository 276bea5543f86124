"""API components - query service and HTTP application."""

from stamp_indexer.api.queries import QueryService
from stamp_indexer.api.server import IndexerHttpApi, create_app

__all__ = ["QueryService", "IndexerHttpApi", "create_app"]
