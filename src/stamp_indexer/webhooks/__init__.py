"""Webhook dispatch - per-route filtering and event mapping."""

from stamp_indexer.webhooks.dispatcher import ROUTES, WebhookDispatcher, WebhookRoute

__all__ = ["ROUTES", "WebhookDispatcher", "WebhookRoute"]
