"""Webhook dispatch: method filtering, success filtering, and event mapping."""

from __future__ import annotations

import logging
import uuid

import pytest

from stamp_indexer.errors import MalformedPayloadError
from stamp_indexer.models.events import MintType
from stamp_indexer.webhooks.dispatcher import ROUTES, WebhookRoute

from tests.factories import (
    ALICE,
    BOB,
    make_bare_payload,
    make_block,
    make_enveloped_payload,
    make_inline_tx,
    make_operations_tx,
)


# ── Filtering ────────────────────────────────────────────────────


async def test_only_route_method_is_recorded(dispatcher, ledger):
    body = make_bare_payload(make_block(
        make_inline_tx(tx_id="0x1", method="mint", result="1"),
        make_inline_tx(tx_id="0x2", method="burn", args=["1"]),
        make_inline_tx(tx_id="0x3", method="free-mint", result="2"),
    ))

    result = dispatcher.dispatch(ROUTES["free-mint"], body)

    assert result.extracted == 3
    assert result.processed == 1
    assert [m.tx_id for m in ledger.mints] == ["0x3"]
    assert ledger.burns == []


async def test_failed_calls_are_dropped(dispatcher, ledger):
    body = make_bare_payload(make_block(
        make_inline_tx(tx_id="0x1", method="mint", success=False),
        make_inline_tx(tx_id="0x2", method="mint", success=True, result="9"),
    ))

    result = dispatcher.dispatch(ROUTES["paid-mint"], body)

    assert result.processed == 1
    assert [m.token_id for m in ledger.mints] == ["9"]


async def test_wrong_route_records_nothing(dispatcher, ledger):
    body = make_bare_payload(make_block(make_inline_tx(method="mint")))
    result = dispatcher.dispatch(ROUTES["burn"], body)

    assert result.processed == 0
    assert ledger.stats_snapshot().total_mints == 0
    assert ledger.stats_snapshot().total_burns == 0


async def test_malformed_body_raises_and_records_nothing(dispatcher, ledger):
    with pytest.raises(MalformedPayloadError):
        dispatcher.dispatch(ROUTES["paid-mint"], {"nope": []})
    assert ledger.mints == []


async def test_redelivered_payload_is_recorded_again(dispatcher, ledger):
    body = make_bare_payload(make_block(make_inline_tx(method="mint", result="1")))
    dispatcher.dispatch(ROUTES["paid-mint"], body)
    dispatcher.dispatch(ROUTES["paid-mint"], body)
    assert len(ledger.mints) == 2


# ── Mint mapping ─────────────────────────────────────────────────


@pytest.mark.parametrize("route, method, mint_type", [
    ("paid-mint", "mint", MintType.PAID),
    ("free-mint", "free-mint", MintType.FREE),
])
async def test_mint_mapping(dispatcher, ledger, route, method, mint_type):
    tx = make_inline_tx(
        tx_id="0xm", method=method, args=["My Stamp", "ipfs://cid"], sender=ALICE, result="42",
    )
    dispatcher.dispatch(ROUTES[route], make_bare_payload(make_block(tx, index=77, timestamp=999)))

    [mint] = ledger.mints
    assert mint.token_id == "42"
    assert mint.minter == ALICE
    assert mint.name == "My Stamp"
    assert mint.uri == "ipfs://cid"
    assert mint.mint_type is mint_type
    assert mint.tx_id == "0xm"
    assert mint.block_height == 77
    assert mint.timestamp == 999


async def test_owner_mint_records_recipient_as_minter(dispatcher, ledger):
    tx = make_inline_tx(method="owner-mint", args=[BOB, "Gift", "ipfs://g"], sender=ALICE)
    dispatcher.dispatch(ROUTES["owner-mint"], make_bare_payload(make_block(tx)))

    [mint] = ledger.mints
    assert mint.minter == BOB
    assert mint.name == "Gift"
    assert mint.uri == "ipfs://g"
    assert mint.mint_type is MintType.OWNER
    assert ledger.stats_snapshot().owner_mints == 1


async def test_owner_mint_blank_recipient_falls_back_to_sender(dispatcher, ledger):
    tx = make_inline_tx(method="owner-mint", args=["", "Gift", "ipfs://g"], sender=ALICE)
    dispatcher.dispatch(ROUTES["owner-mint"], make_bare_payload(make_block(tx)))
    assert ledger.mints[0].minter == ALICE


async def test_mint_without_result_synthesizes_token_id(dispatcher, ledger, caplog):
    tx = make_inline_tx(method="mint", result="")
    with caplog.at_level(logging.WARNING, logger="stamp_indexer.webhooks.dispatcher"):
        dispatcher.dispatch(ROUTES["paid-mint"], make_bare_payload(make_block(tx)))

    token_id = ledger.mints[0].token_id
    assert str(uuid.UUID(token_id)) == token_id
    assert "synthesized token id" in caplog.text


async def test_short_args_leave_fields_blank_and_warn(dispatcher, ledger, caplog):
    tx = make_inline_tx(method="mint", args=["OnlyName"], result="3")
    with caplog.at_level(logging.WARNING, logger="stamp_indexer.webhooks.dispatcher"):
        dispatcher.dispatch(ROUTES["paid-mint"], make_bare_payload(make_block(tx)))

    assert ledger.mints[0].name == "OnlyName"
    assert ledger.mints[0].uri == ""
    assert "expected 2" in caplog.text


# ── Transfer mapping ─────────────────────────────────────────────


async def test_transfer_mapping_from_operations_payload(dispatcher, ledger):
    tx = make_operations_tx(
        tx_id="0xt",
        function_name="transfer",
        args=[{"repr": "u5"}, {"repr": ALICE}, {"repr": BOB}],
        result={"repr": "(ok true)"},
    )
    result = dispatcher.dispatch(
        ROUTES["transfer"], make_enveloped_payload(make_block(tx, timestamp=50)),
    )

    assert result.processed == 1
    [t] = ledger.transfers
    assert (t.token_id, t.sender, t.recipient) == ("u5", ALICE, BOB)
    assert t.to_json()["from"] == ALICE
    assert t.to_json()["to"] == BOB
    assert ledger.stats_snapshot().active_users == 2


async def test_transfers_alias_routes_to_transfer(dispatcher, ledger):
    tx = make_inline_tx(method="transfer", args=["1", ALICE, BOB])
    dispatcher.dispatch(ROUTES["transfers"], make_bare_payload(make_block(tx)))
    assert len(ledger.transfers) == 1


async def test_transfer_token_id_falls_back_to_result_then_unknown(dispatcher, ledger):
    from_result = make_inline_tx(tx_id="0x1", method="transfer", args=[], result="u8")
    unknown = make_inline_tx(tx_id="0x2", method="transfer", args=[], result="")
    dispatcher.dispatch(ROUTES["transfer"], make_bare_payload(make_block(from_result, unknown)))

    assert [t.token_id for t in ledger.transfers] == ["u8", "unknown"]
    assert ledger.transfers[1].sender == ""


# ── Burn mapping ─────────────────────────────────────────────────


async def test_burn_owner_is_sender(dispatcher, ledger):
    tx = make_inline_tx(method="burn", args=["u4"], sender=BOB)
    dispatcher.dispatch(ROUTES["burn"], make_bare_payload(make_block(tx)))

    [b] = ledger.burns
    assert b.token_id == "u4"
    assert b.owner == BOB
    assert ledger.stats_snapshot().total_burns == 1


async def test_burn_without_args_uses_result(dispatcher, ledger):
    tx = make_inline_tx(method="burn", args=[], result="u6")
    dispatcher.dispatch(ROUTES["burn"], make_bare_payload(make_block(tx)))
    assert ledger.burns[0].token_id == "u6"


# ── Route table ──────────────────────────────────────────────────


def test_route_table():
    assert {p: r.method for p, r in ROUTES.items()} == {
        "paid-mint": "mint",
        "free-mint": "free-mint",
        "owner-mint": "owner-mint",
        "transfer": "transfer",
        "transfers": "transfer",
        "burn": "burn",
    }
    assert not ROUTES["transfers"].register


async def test_failure_mid_batch_keeps_earlier_records(dispatcher, ledger):
    calls = []

    def flaky_mapper(call):
        calls.append(call.tx_id)
        if len(calls) == 2:
            raise ValueError("bad args")
        return ROUTES["burn"].mapper(call)

    route = WebhookRoute("burn", "burn", 1, flaky_mapper)
    body = make_bare_payload(make_block(
        make_inline_tx(tx_id="0x1", method="burn", args=["1"]),
        make_inline_tx(tx_id="0x2", method="burn", args=["2"]),
        make_inline_tx(tx_id="0x3", method="burn", args=["3"]),
    ))

    with pytest.raises(ValueError):
        dispatcher.dispatch(route, body)

    assert [b.tx_id for b in ledger.burns] == ["0x1"]
