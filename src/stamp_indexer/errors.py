"""Exception hierarchy for the stamp_indexer service."""

from __future__ import annotations

from typing import Any


class StampIndexerError(Exception):
    """Base class for all service errors."""


class ConfigError(StampIndexerError):
    """Invalid or contradictory configuration."""


class MalformedPayloadError(StampIndexerError):
    """Webhook body is neither an enveloped nor a bare chainhook payload."""

    def __init__(self, message: str = "Invalid payload") -> None:
        super().__init__(message)


class UnauthorizedError(StampIndexerError):
    """Missing or mismatched chainhook credential."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class HookRegistrationError(StampIndexerError):
    """Predicate registration against the chainhook provider failed."""


class BroadcastError(StampIndexerError):
    """The Stacks node rejected a transaction broadcast."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details


class FaucetError(StampIndexerError):
    """A faucet claim was refused. Carries the HTTP status and extra JSON fields."""

    def __init__(self, status: int, error: str, **extra: Any) -> None:
        super().__init__(error)
        self.status = status
        self.message = error
        self.extra = extra

    def to_json(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}
