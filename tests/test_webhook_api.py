"""HTTP surface: webhook authentication, ingestion, and query endpoints."""

from __future__ import annotations

import asyncio

import pytest
from aiohttp import test_utils

from stamp_indexer.api.server import IndexerHttpApi, check_auth, create_app
from stamp_indexer.errors import UnauthorizedError
from stamp_indexer.models.events import MintType
from stamp_indexer.webhooks.dispatcher import ROUTES, WebhookRoute, map_burn

from tests.conftest import AUTH_TOKEN
from tests.factories import (
    ALICE,
    BOB,
    make_bare_payload,
    make_block,
    make_enveloped_payload,
    make_inline_tx,
    make_mint_event,
    make_operations_tx,
    make_transfer_event,
)


def _free_mint_body():
    return make_bare_payload(make_block(
        make_inline_tx(tx_id="0xfree", method="free-mint", result="1"),
    ))


# ── Authentication ───────────────────────────────────────────────


async def test_webhook_without_credentials_is_401(client, ledger):
    resp = await client.post("/webhooks/free-mint", json=_free_mint_body())

    assert resp.status == 401
    assert await resp.json() == {"error": "Unauthorized"}
    assert ledger.stats_snapshot().total_mints == 0


async def test_webhook_wrong_bearer_is_401(client, ledger):
    resp = await client.post(
        "/webhooks/free-mint", json=_free_mint_body(),
        headers={"Authorization": "Bearer wrong"},
    )
    assert resp.status == 401
    assert ledger.mints == []


async def test_webhook_bearer_header_accepted(client, ledger, auth_headers):
    resp = await client.post("/webhooks/free-mint", json=_free_mint_body(), headers=auth_headers)

    assert resp.status == 200
    assert await resp.json() == {"success": True, "processed": 1}
    assert ledger.stats_snapshot().free_mints == 1


async def test_webhook_query_token_accepted(client, ledger):
    resp = await client.post(
        "/webhooks/free-mint", json=_free_mint_body(), params={"token": AUTH_TOKEN},
    )
    assert resp.status == 200
    assert len(ledger.mints) == 1


async def test_webhook_wrong_query_token_is_401(client):
    resp = await client.post(
        "/webhooks/free-mint", json=_free_mint_body(), params={"token": "nope"},
    )
    assert resp.status == 401


async def test_unset_auth_token_rejects_everything(dispatcher, queries, faucet, mock_stacks):
    api = IndexerHttpApi("", dispatcher, queries, faucet, mock_stacks)
    async with test_utils.TestClient(test_utils.TestServer(create_app(api))) as c:
        resp = await c.post(
            "/webhooks/free-mint", json=_free_mint_body(),
            headers={"Authorization": "Bearer "}, params={"token": ""},
        )
    assert resp.status == 401


# ── Ingestion ────────────────────────────────────────────────────


async def test_invalid_json_is_400(client, auth_headers, ledger):
    resp = await client.post(
        "/webhooks/paid-mint", data="{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert resp.status == 400
    assert await resp.json() == {"error": "Invalid payload"}
    assert ledger.mints == []


async def test_unrecognized_shape_is_400(client, auth_headers):
    resp = await client.post("/webhooks/paid-mint", json={"foo": 1}, headers=auth_headers)
    assert resp.status == 400
    assert await resp.json() == {"error": "Invalid payload"}


async def test_enveloped_operations_payload_processed(client, auth_headers, ledger):
    body = make_enveloped_payload(make_block(make_operations_tx(
        function_name="transfer",
        args=[{"repr": "u1"}, {"repr": ALICE}, {"repr": BOB}],
    )))
    resp = await client.post("/webhooks/transfer", json=body, headers=auth_headers)

    assert resp.status == 200
    assert (await resp.json())["processed"] == 1
    assert ledger.transfers[0].recipient == BOB


async def test_transfers_alias_route(client, auth_headers, ledger):
    body = make_bare_payload(make_block(make_inline_tx(method="transfer", args=["1", ALICE, BOB])))
    resp = await client.post("/webhooks/transfers", json=body, headers=auth_headers)
    assert resp.status == 200
    assert len(ledger.transfers) == 1


async def test_other_method_on_route_processes_zero(client, auth_headers, ledger):
    body = make_bare_payload(make_block(make_inline_tx(method="burn", args=["1"])))
    resp = await client.post("/webhooks/paid-mint", json=body, headers=auth_headers)

    assert resp.status == 200
    assert await resp.json() == {"success": True, "processed": 0}
    assert ledger.burns == []


async def test_free_mint_scenario(client, auth_headers):
    tx = make_inline_tx(
        tx_id="0xscenario", method="free-mint", args=["Stamp#1", "ipfs://a"],
        sender="SP1", success=True, result="1",
    )
    body = make_bare_payload(make_block(tx, index=100, timestamp=1000))

    resp = await client.post("/webhooks/free-mint", json=body, headers=auth_headers)
    assert await resp.json() == {"success": True, "processed": 1}

    mints = await (await client.get("/api/mints")).json()
    assert mints["data"] == [{
        "tokenId": "1",
        "minter": "SP1",
        "name": "Stamp#1",
        "uri": "ipfs://a",
        "mintType": "free",
        "txId": "0xscenario",
        "blockHeight": 100,
        "timestamp": 1000,
    }]

    again = await client.post("/webhooks/burn", json=body, headers=auth_headers)
    assert await again.json() == {"success": True, "processed": 0}
    stats = await (await client.get("/api/stats")).json()
    assert stats["totalMints"] == 1
    assert stats["totalBurns"] == 0


async def test_rejected_webhook_leaves_stats_unchanged(client):
    before = await (await client.get("/api/stats")).json()
    await client.post("/webhooks/free-mint", json=_free_mint_body(),
                      headers={"Authorization": "Bearer nope"})
    after = await (await client.get("/api/stats")).json()
    assert before == after


async def test_ingest_then_stats_roundtrip(client, auth_headers):
    await client.post("/webhooks/free-mint", json=_free_mint_body(), headers=auth_headers)
    body = make_bare_payload(make_block(make_inline_tx(method="burn", args=["1"], sender=BOB)))
    await client.post("/webhooks/burn", json=body, headers=auth_headers)

    stats = await (await client.get("/api/stats")).json()
    assert stats["freeMints"] == 1
    assert stats["totalMints"] == 1
    assert stats["totalBurns"] == 1
    assert stats["activeUsers"] == 2


# ── Queries ──────────────────────────────────────────────────────


async def test_health(client):
    for path in ("/health", "/api/health"):
        resp = await client.get(path)
        body = await resp.json()
        assert resp.status == 200
        assert body["status"] == "ok"
        assert isinstance(body["timestamp"], int)


async def test_mints_pagination(client, ledger):
    for i in range(75):
        ledger.append_mint(make_mint_event(str(i), timestamp=1000 + i, mint_type=MintType.PAID))

    body = await (await client.get("/api/mints", params={"limit": "10", "offset": "70"})).json()

    assert body["total"] == 75
    assert body["limit"] == 10
    assert body["offset"] == 70
    assert [m["tokenId"] for m in body["data"]] == ["4", "3", "2", "1", "0"]
    assert body["data"][0]["mintType"] == "paid"


async def test_bad_pagination_degrades_to_defaults(client, ledger):
    ledger.append_mint(make_mint_event("1"))
    body = await (await client.get("/api/mints", params={"limit": "abc", "offset": "-3"})).json()
    assert body["limit"] == 50
    assert body["offset"] == 0
    assert body["total"] == 1


async def test_transfers_endpoint(client, ledger):
    ledger.append_transfer(make_transfer_event("9", sender=ALICE, recipient=BOB))
    body = await (await client.get("/api/transfers")).json()
    assert body["data"] == [{
        "tokenId": "9",
        "from": ALICE,
        "to": BOB,
        "txId": "0xtransfer9-2000",
        "blockHeight": 101,
        "timestamp": 2000,
    }]


async def test_recent_activity_endpoint(client, ledger):
    ledger.append_mint(make_mint_event("1", timestamp=10))
    ledger.append_transfer(make_transfer_event("1", timestamp=20))

    body = await (await client.get("/api/activity/recent", params={"limit": "1"})).json()
    assert len(body) == 1
    assert body[0]["type"] == "transfer"


async def test_user_endpoint(client, ledger):
    ledger.append_mint(make_mint_event("1", minter=ALICE))
    body = await (await client.get(f"/api/user/{ALICE}")).json()
    assert body["address"] == ALICE
    assert body["totalMints"] == 1
    assert body["mints"][0]["minter"] == ALICE


async def test_stacks_tx_proxy(client, mock_stacks):
    resp = await client.get("/api/stacks/tx/0xabc")
    assert resp.status == 200
    assert await resp.json() == {"tx_status": "success"}
    assert mock_stacks.lookups == ["0xabc"]


async def test_stacks_tx_proxy_passes_upstream_errors(client, mock_stacks):
    mock_stacks.tx_status = 404
    mock_stacks.tx_body = "not found"
    resp = await client.get("/api/stacks/tx/0xmissing")
    assert resp.status == 404
    assert await resp.text() == "not found"


# ── CORS ─────────────────────────────────────────────────────────


async def test_cors_preflight(client):
    resp = await client.options("/webhooks/free-mint")
    assert resp.status == 204
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


async def test_cors_headers_on_responses(client):
    ok = await client.get("/api/stats")
    denied = await client.post("/webhooks/burn", json={})
    assert ok.headers["Access-Control-Allow-Origin"] == "*"
    assert denied.headers["Access-Control-Allow-Origin"] == "*"


# ── Failures ─────────────────────────────────────────────────────


async def test_processing_failure_is_500(client, auth_headers, dispatcher, monkeypatch):
    def boom(route, body):
        raise RuntimeError("mapper exploded")

    monkeypatch.setattr(dispatcher, "dispatch", boom)
    resp = await client.post("/webhooks/free-mint", json=_free_mint_body(), headers=auth_headers)

    assert resp.status == 500
    assert await resp.json() == {"error": "mapper exploded"}


async def test_mapper_failure_is_500_and_keeps_earlier_records(
    dispatcher, queries, faucet, mock_stacks, ledger, auth_headers, monkeypatch,
):
    seen = []

    def flaky_burn(call):
        seen.append(call.tx_id)
        if len(seen) == 2:
            raise RuntimeError("bad burn args")
        return map_burn(call)

    monkeypatch.setitem(ROUTES, "burn", WebhookRoute("burn", "burn", 1, flaky_burn))
    api = IndexerHttpApi(AUTH_TOKEN, dispatcher, queries, faucet, mock_stacks)
    body = make_bare_payload(make_block(
        make_inline_tx(tx_id="0x1", method="burn", args=["1"]),
        make_inline_tx(tx_id="0x2", method="burn", args=["2"]),
        make_inline_tx(tx_id="0x3", method="burn", args=["3"]),
    ))

    async with test_utils.TestClient(test_utils.TestServer(create_app(api))) as c:
        resp = await c.post("/webhooks/burn", json=body, headers=auth_headers)
        assert resp.status == 500
        assert await resp.json() == {"error": "bad burn args"}

        stats = await (await c.get("/api/stats")).json()

    assert [b.tx_id for b in ledger.burns] == ["0x1"]
    assert stats["totalBurns"] == 1


# ── Credential encoding ──────────────────────────────────────────


def test_undecodable_authorization_header_is_unauthorized():
    request = test_utils.make_mocked_request(
        "POST", "/webhooks/burn", headers={"Authorization": "Bearer \udcff\udcfe"},
    )
    with pytest.raises(UnauthorizedError):
        check_auth(request, AUTH_TOKEN)


def test_undecodable_query_token_is_unauthorized():
    request = test_utils.make_mocked_request("POST", "/webhooks/burn?token=%FF%FE")
    with pytest.raises(UnauthorizedError):
        check_auth(request, AUTH_TOKEN)


async def test_raw_non_utf8_authorization_header_is_401(client, ledger):
    reader, writer = await asyncio.open_connection(client.server.host, client.server.port)
    writer.write(
        b"POST /webhooks/burn HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Authorization: Bearer \xff\xfe\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: 2\r\n"
        b"Connection: close\r\n"
        b"\r\n"
        b"{}"
    )
    await writer.drain()
    raw = await reader.read()
    writer.close()
    await writer.wait_closed()

    status_line, _, rest = raw.partition(b"\r\n")
    assert status_line.split()[1] == b"401"
    assert b'"Unauthorized"' in rest
    assert ledger.burns == []
