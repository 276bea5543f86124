"""Service entry point - wires components together and runs the HTTP server."""

from __future__ import annotations

import asyncio
import logging
import signal

from aiohttp import web

from stamp_indexer.api.queries import QueryService
from stamp_indexer.api.server import IndexerHttpApi, create_app
from stamp_indexer.chainhook.extractor import ContractCallExtractor
from stamp_indexer.chainhook.registration import register_hooks
from stamp_indexer.errors import StampIndexerError
from stamp_indexer.faucet.service import FaucetService
from stamp_indexer.interfaces.faucet import TransferSigner
from stamp_indexer.models.config import IndexerConfig
from stamp_indexer.stacks.client import StacksApiClient
from stamp_indexer.storage.memory import InMemoryEventLedger
from stamp_indexer.webhooks.dispatcher import WebhookDispatcher

log = logging.getLogger(__name__)


class IndexerDaemon:
    """Chainhook webhook indexer.

    Owns the single ledger for the process lifetime and hands it to the
    dispatcher (write side) and query service (read side).
    """

    def __init__(self, cfg: IndexerConfig, signer: TransferSigner | None = None) -> None:
        self._cfg = cfg
        self._stopped = asyncio.Event()
        self._runner: web.AppRunner | None = None

        self.ledger = InMemoryEventLedger()
        self.extractor = ContractCallExtractor(cfg.contract_identifier)
        self.dispatcher = WebhookDispatcher(self.ledger, self.extractor)
        self.queries = QueryService(self.ledger)
        self.stacks = StacksApiClient(cfg.effective_stacks_api_url)
        self.faucet = FaucetService(cfg.faucet, cfg.network, self.stacks, signer=signer)
        self.api = IndexerHttpApi(
            cfg.auth_token, self.dispatcher, self.queries, self.faucet, self.stacks,
        )
        self.app = create_app(self.api, max_body_size=cfg.max_body_size)

    async def start(self) -> None:
        """Start the HTTP server, register hooks, and serve until stopped."""
        log.info("Starting stamp_indexer")
        log.info("  Network:  %s", self._cfg.network.value)
        log.info("  Contract: %s", self._cfg.contract_identifier)
        log.info("  Provider: %s", self._cfg.provider.value)
        log.info("  External: %s", self._cfg.external_url)

        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._cfg.host, self._cfg.port)
        await site.start()
        log.info("API server listening on %s:%d", self._cfg.host, self._cfg.port)

        try:
            if self._cfg.register_on_start:
                await self._register_hooks()
            await self._stopped.wait()
        finally:
            await self._runner.cleanup()
            log.info("Server shut down cleanly")

    async def stop(self) -> None:
        log.info("Stop requested")
        self._stopped.set()

    async def _register_hooks(self) -> None:
        # The server keeps running without hooks; deliveries can be replayed later.
        try:
            await register_hooks(self._cfg)
        except (StampIndexerError, ValueError) as exc:
            log.error("Failed to register chainhooks: %s", exc)


async def run_daemon(cfg: IndexerConfig, signer: TransferSigner | None = None) -> None:
    """Entry point for running the service."""
    daemon = IndexerDaemon(cfg, signer=signer)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
