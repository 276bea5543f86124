"""Webhook dispatcher - turns chainhook deliveries into ledger records.

Each webhook route expects exactly one contract method. Extracted calls for
any other method, and calls that did not succeed, are dropped without error.
Surviving calls are mapped from positional arguments into events and
appended to the ledger one at a time; there is no rollback if a later call
in the same delivery fails.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Union

from stamp_indexer.chainhook.extractor import ContractCallExtractor, as_string
from stamp_indexer.chainhook.payload import classify_payload
from stamp_indexer.interfaces.ledger import EventLedger
from stamp_indexer.models.events import BurnEvent, MintEvent, MintType, TransferEvent
from stamp_indexer.models.records import ContractCallMatch, DispatchResult

log = logging.getLogger(__name__)

LedgerEvent = Union[MintEvent, TransferEvent, BurnEvent]

UNKNOWN_TOKEN_ID = "unknown"


def _arg(call: ContractCallMatch, index: int) -> str:
    return as_string(call.args[index]) if index < len(call.args) else ""


def _minted_token_id(call: ContractCallMatch) -> str:
    if call.result:
        return call.result
    # A synthesized id never matches the on-chain token id.
    token_id = str(uuid.uuid4())
    log.warning(
        "Mint tx %s returned no result; using synthesized token id %s",
        call.tx_id, token_id,
    )
    return token_id


def _referenced_token_id(call: ContractCallMatch) -> str:
    return _arg(call, 0) or call.result or UNKNOWN_TOKEN_ID


def _mint(call: ContractCallMatch, mint_type: MintType) -> MintEvent:
    return MintEvent(
        token_id=_minted_token_id(call),
        minter=call.sender,
        name=_arg(call, 0),
        uri=_arg(call, 1),
        mint_type=mint_type,
        tx_id=call.tx_id,
        block_height=call.block_height,
        timestamp=call.timestamp,
    )


def map_paid_mint(call: ContractCallMatch) -> MintEvent:
    return _mint(call, MintType.PAID)


def map_free_mint(call: ContractCallMatch) -> MintEvent:
    return _mint(call, MintType.FREE)


def map_owner_mint(call: ContractCallMatch) -> MintEvent:
    """owner-mint(recipient, name, uri); a blank recipient falls back to the sender."""
    return MintEvent(
        token_id=_minted_token_id(call),
        minter=_arg(call, 0) or call.sender,
        name=_arg(call, 1),
        uri=_arg(call, 2),
        mint_type=MintType.OWNER,
        tx_id=call.tx_id,
        block_height=call.block_height,
        timestamp=call.timestamp,
    )


def map_transfer(call: ContractCallMatch) -> TransferEvent:
    """transfer(token-id, sender, recipient)."""
    return TransferEvent(
        token_id=_referenced_token_id(call),
        sender=_arg(call, 1),
        recipient=_arg(call, 2),
        tx_id=call.tx_id,
        block_height=call.block_height,
        timestamp=call.timestamp,
    )


def map_burn(call: ContractCallMatch) -> BurnEvent:
    """burn(token-id); the owner is whoever sent the transaction."""
    return BurnEvent(
        token_id=_referenced_token_id(call),
        owner=call.sender,
        tx_id=call.tx_id,
        block_height=call.block_height,
        timestamp=call.timestamp,
    )


@dataclass(frozen=True)
class WebhookRoute:
    """One webhook endpoint bound to one contract method."""

    path: str  # segment under /webhooks
    method: str  # contract function name
    arity: int  # positional args the mapper reads
    mapper: Callable[[ContractCallMatch], LedgerEvent]
    register: bool = True  # False for legacy aliases that get no hook of their own


ROUTES: dict[str, WebhookRoute] = {
    r.path: r
    for r in (
        WebhookRoute("paid-mint", "mint", 2, map_paid_mint),
        WebhookRoute("free-mint", "free-mint", 2, map_free_mint),
        WebhookRoute("owner-mint", "owner-mint", 3, map_owner_mint),
        WebhookRoute("transfer", "transfer", 3, map_transfer),
        # Older predicates post to /webhooks/transfers.
        WebhookRoute("transfers", "transfer", 3, map_transfer, register=False),
        WebhookRoute("burn", "burn", 1, map_burn),
    )
}


class WebhookDispatcher:
    """Classifies, extracts, filters, maps, and commits webhook deliveries."""

    def __init__(self, ledger: EventLedger, extractor: ContractCallExtractor) -> None:
        self._ledger = ledger
        self._extractor = extractor

    def dispatch(self, route: WebhookRoute, body: object) -> DispatchResult:
        """Process one delivery for ``route``.

        Raises:
            MalformedPayloadError: body is not a chainhook payload.
            Exception: anything raised while mapping; earlier records stay committed.
        """
        payload = classify_payload(body)
        calls = self._extractor.extract(payload)
        selected = [c for c in calls if c.method == route.method and c.success]

        for call in selected:
            if len(call.args) < route.arity:
                log.warning(
                    "%s tx %s has %d args, expected %d; missing fields left blank",
                    route.method, call.tx_id, len(call.args), route.arity,
                )
            self._commit(route.mapper(call))

        log.info(
            "Webhook %s (%s payload): %d calls extracted, %d processed",
            route.path, payload.form.value, len(calls), len(selected),
        )
        return DispatchResult(method=route.method, extracted=len(calls), processed=len(selected))

    def _commit(self, event: LedgerEvent) -> None:
        if isinstance(event, MintEvent):
            self._ledger.append_mint(event)
        elif isinstance(event, TransferEvent):
            self._ledger.append_transfer(event)
        elif isinstance(event, BurnEvent):
            self._ledger.append_burn(event)
        else:
            raise TypeError(f"Unsupported ledger event: {type(event).__name__}")
