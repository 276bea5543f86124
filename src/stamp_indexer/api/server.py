"""aiohttp application - webhook ingress and read-only query API."""

from __future__ import annotations

import hmac
import logging
import time
from typing import Awaitable, Callable

import httpx
from aiohttp import web

from stamp_indexer.api.queries import DEFAULT_ACTIVITY_LIMIT, DEFAULT_PAGE_LIMIT, QueryService
from stamp_indexer.chainhook.extractor import as_string
from stamp_indexer.config import parse_int_or_default
from stamp_indexer.errors import (
    FaucetError,
    MalformedPayloadError,
    UnauthorizedError,
)
from stamp_indexer.faucet.service import FaucetService
from stamp_indexer.stacks.client import StacksApiClient
from stamp_indexer.webhooks.dispatcher import ROUTES, WebhookDispatcher, WebhookRoute

log = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Access-Control-Allow-Headers": "Authorization,Content-Type",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=_CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(_CORS_HEADERS)
        raise
    response.headers.update(_CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Translate service errors into JSON bodies with the right status."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except UnauthorizedError as exc:
        return web.json_response({"error": str(exc)}, status=401)
    except MalformedPayloadError as exc:
        return web.json_response({"error": str(exc)}, status=400)
    except FaucetError as exc:
        return web.json_response(exc.to_json(), status=exc.status)
    except Exception as exc:
        log.error("Unhandled error on %s %s: %s", request.method, request.path, exc, exc_info=True)
        return web.json_response({"error": str(exc) or "Internal server error"}, status=500)


def _same_secret(given: str, expected: str) -> bool:
    # Undecodable header bytes arrive as lone surrogates.
    return hmac.compare_digest(
        given.encode("utf-8", "surrogatepass"),
        expected.encode("utf-8", "surrogatepass"),
    )


def check_auth(request: web.Request, auth_token: str) -> None:
    """Accept ``Authorization: Bearer <token>`` or ``?token=<token>``.

    Raises:
        UnauthorizedError: no token configured, or none of the credentials match.
    """
    if not auth_token:
        raise UnauthorizedError()

    header = request.headers.get("Authorization", "")
    if _same_secret(header, f"Bearer {auth_token}"):
        return

    tokens = request.query.getall("token", [])
    if tokens and _same_secret(tokens[0], auth_token):
        return

    raise UnauthorizedError()


def client_ip(request: web.Request) -> str:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.remote or ""


def query_int(request: web.Request, name: str, default: int) -> int:
    """Non-negative integer query parameter; anything else degrades to ``default``."""
    value = parse_int_or_default(request.query.get(name), default)
    return value if value >= 0 else default


class IndexerHttpApi:
    """Route handlers bound to the service components."""

    def __init__(
        self,
        auth_token: str,
        dispatcher: WebhookDispatcher,
        queries: QueryService,
        faucet: FaucetService,
        stacks: StacksApiClient,
    ) -> None:
        self._auth_token = auth_token
        self._dispatcher = dispatcher
        self._queries = queries
        self._faucet = faucet
        self._stacks = stacks

    # ── Webhooks ───────────────────────────────────────────

    def webhook_handler(self, route: WebhookRoute) -> Handler:
        async def handle(request: web.Request) -> web.Response:
            check_auth(request, self._auth_token)
            try:
                body = await request.json()
            except ValueError:  # bad JSON or bad encoding
                raise MalformedPayloadError() from None
            result = self._dispatcher.dispatch(route, body)
            return web.json_response({"success": True, "processed": result.processed})

        return handle

    # ── Queries ────────────────────────────────────────────

    async def health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", "timestamp": _now_ms()})

    async def stats(self, request: web.Request) -> web.Response:
        return web.json_response(self._queries.get_stats().to_json())

    async def mints(self, request: web.Request) -> web.Response:
        page = self._queries.list_mints(
            limit=query_int(request, "limit", DEFAULT_PAGE_LIMIT),
            offset=query_int(request, "offset", 0),
        )
        return web.json_response(page.to_json())

    async def transfers(self, request: web.Request) -> web.Response:
        page = self._queries.list_transfers(
            limit=query_int(request, "limit", DEFAULT_PAGE_LIMIT),
            offset=query_int(request, "offset", 0),
        )
        return web.json_response(page.to_json())

    async def recent_activity(self, request: web.Request) -> web.Response:
        entries = self._queries.recent_activity(
            limit=query_int(request, "limit", DEFAULT_ACTIVITY_LIMIT),
        )
        return web.json_response([e.to_json() for e in entries])

    async def user(self, request: web.Request) -> web.Response:
        address = request.match_info["address"]
        return web.json_response(self._queries.user_activity(address).to_json())

    # ── Faucet ─────────────────────────────────────────────

    async def faucet_status(self, request: web.Request) -> web.Response:
        return web.json_response(self._faucet.status())

    async def faucet_claim(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except ValueError:  # bad JSON or bad encoding
            body = {}
        address = as_string(body.get("address")) if isinstance(body, dict) else ""
        result = await self._faucet.claim(address, client_ip(request))
        return web.json_response(result.to_json())

    # ── Chain read proxy ───────────────────────────────────

    async def stacks_tx(self, request: web.Request) -> web.Response:
        txid = request.match_info["txid"]
        try:
            status, text = await self._stacks.get_transaction(txid)
        except httpx.HTTPError as exc:
            return web.json_response(
                {"error": "Failed to fetch tx", "message": str(exc)}, status=500,
            )
        if status >= 400:
            return web.Response(status=status, text=text)
        return web.Response(status=status, text=text, content_type="application/json")


def create_app(
    api: IndexerHttpApi,
    max_body_size: int = 5 * 1024 * 1024,
) -> web.Application:
    """Build the aiohttp application with all routes and middlewares."""
    app = web.Application(
        middlewares=[cors_middleware, error_middleware],
        client_max_size=max_body_size,
    )

    for route in ROUTES.values():
        app.router.add_post(f"/webhooks/{route.path}", api.webhook_handler(route))

    app.router.add_get("/health", api.health)
    app.router.add_get("/api/health", api.health)
    app.router.add_get("/api/stats", api.stats)
    app.router.add_get("/api/mints", api.mints)
    app.router.add_get("/api/transfers", api.transfers)
    app.router.add_get("/api/activity/recent", api.recent_activity)
    app.router.add_get("/api/user/{address}", api.user)
    app.router.add_get("/api/faucet/status", api.faucet_status)
    app.router.add_post("/api/faucet/claim", api.faucet_claim)
    app.router.add_get("/api/stacks/tx/{txid}", api.stacks_tx)
    return app
