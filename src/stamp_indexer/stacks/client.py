"""Stacks API client - transaction lookup and raw transaction broadcast."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from stamp_indexer.errors import BroadcastError

log = logging.getLogger(__name__)


class StacksApiClient:
    """Thin async wrapper over the Hiro Stacks API.

    Uses a fresh httpx.AsyncClient per call unless one is injected
    (tests pass a client built on httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def get_transaction(self, txid: str) -> tuple[int, str]:
        """Fetch ``/extended/v1/tx/{txid}``. Returns (status_code, body_text) unmodified."""
        resp = await self._request(
            "GET",
            self._url(f"/extended/v1/tx/{quote(txid, safe='')}"),
            headers={"accept": "application/json"},
        )
        return resp.status_code, resp.text

    async def broadcast_transaction(self, raw_tx: bytes) -> str:
        """POST a serialized transaction to ``/v2/transactions`` and return its txid.

        Raises:
            BroadcastError: the node rejected the transaction.
        """
        resp = await self._request(
            "POST",
            self._url("/v2/transactions"),
            content=raw_tx,
            headers={"content-type": "application/octet-stream"},
        )
        if resp.status_code >= 400:
            try:
                details = resp.json()
            except ValueError:
                details = {"error": resp.text}
            log.warning("Broadcast rejected (%d): %s", resp.status_code, details)
            raise BroadcastError("Failed to broadcast transaction", details)

        # The node answers with the txid as a JSON string.
        try:
            body = resp.json()
        except ValueError:
            body = resp.text.strip().strip('"')
        if isinstance(body, dict):
            if "error" in body:
                raise BroadcastError("Failed to broadcast transaction", body)
            body = body.get("txid", "")
        txid = str(body)
        log.info("Broadcast accepted: %s", txid)
        return txid
