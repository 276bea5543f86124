"""Chainhook registration - makes sure every webhook route has a live predicate.

Two providers are supported:

* ``local``: a self-hosted chainhook node. Predicates are keyed by uuid
  (the hook name); active ones are left alone, disabled ones are deleted
  and re-posted, missing ones are posted.
* ``hiro``: the hosted Chainhooks API. Existing hooks are listed and
  matched by name, then created or updated and re-enabled (upsert by name).
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable
from urllib.parse import quote, urlencode, urlparse

import httpx

from stamp_indexer.errors import ConfigError, HookRegistrationError
from stamp_indexer.models.config import ChainhookProvider, IndexerConfig
from stamp_indexer.webhooks.dispatcher import ROUTES

log = logging.getLogger(__name__)

NODE_WAIT_TIMEOUT = 30.0  # seconds
NODE_WAIT_INTERVAL = 1.0
HIRO_PAGE_SIZE = 60
HIRO_HOOKS_PATH = "/chainhooks/v1/me/"

_HIRO_API_URL_RE = re.compile(r"^https?://api\.(testnet|mainnet)\.hiro\.so/?$", re.IGNORECASE)


class PredicateStatus(str, Enum):
    ACTIVE = "active"
    MISSING = "missing"
    DISABLED = "disabled"


@dataclass(frozen=True)
class HookDefinition:
    name: str
    method: str
    webhook_path: str  # e.g. /webhooks/paid-mint


def hook_definitions(cfg: IndexerConfig) -> list[HookDefinition]:
    """One hook per registrable webhook route, named after the contract."""
    return [
        HookDefinition(
            name=f"{cfg.contract_name}-{route.path}",
            method=route.method,
            webhook_path=f"/webhooks/{route.path}",
        )
        for route in ROUTES.values()
        if route.register
    ]


def build_webhook_url(external_url: str, webhook_path: str, auth_token: str) -> str:
    url = f"{external_url.rstrip('/')}{webhook_path}"
    if auth_token:
        url = f"{url}?{urlencode({'token': auth_token})}"
    return url


def build_predicate(defn: HookDefinition, cfg: IndexerConfig) -> dict[str, Any]:
    """Predicate body for a self-hosted chainhook node."""
    network_config = {
        "if_this": {
            "scope": "contract_call",
            "contract_identifier": cfg.contract_identifier,
            "method": defn.method,
        },
        "then_that": {
            "http_post": {
                "url": f"{cfg.external_url.rstrip('/')}{defn.webhook_path}",
                "authorization_header": f"Bearer {cfg.auth_token}",
            },
        },
        "decode_clarity_values": True,
        "include_contract_abi": False,
    }
    return {
        "uuid": defn.name,
        "name": defn.name,
        "version": 1,
        "chain": "stacks",
        "networks": {cfg.network.value: network_config},
    }


def build_chainhook_definition(defn: HookDefinition, cfg: IndexerConfig) -> dict[str, Any]:
    """Hook definition for the hosted Chainhooks API. Auth rides in the query string."""
    return {
        "version": "1",
        "name": defn.name,
        "chain": "stacks",
        "network": cfg.network.value,
        "filters": {
            "events": [
                {
                    "type": "contract_call",
                    "contract_identifier": cfg.contract_identifier,
                    "function_name": defn.method,
                },
            ],
        },
        "action": {
            "type": "http_post",
            "url": build_webhook_url(cfg.external_url, defn.webhook_path, cfg.auth_token),
        },
        "options": {
            "decode_clarity_values": True,
            "enable_on_registration": True,
        },
    }


class _HttpBase:
    def __init__(self, base_url: str, timeout: float, client: httpx.AsyncClient | None) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, self._url(path), **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, self._url(path), **kwargs)

    async def _checked(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise HookRegistrationError(
                f"{method} {path} failed: HTTP {exc.response.status_code} {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise HookRegistrationError(f"{method} {path} failed: {exc}") from exc
        return resp


def _json_body(resp: httpx.Response, path: str) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise HookRegistrationError(f"{path} returned invalid JSON: {resp.text[:200]}") from exc


class LocalPredicateRegistrar(_HttpBase):
    """Registers predicates against a self-hosted chainhook node."""

    def __init__(
        self,
        node_url: str,
        timeout: float = 10,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        wait_timeout: float = NODE_WAIT_TIMEOUT,
    ) -> None:
        super().__init__(node_url, timeout, client)
        self._sleep = sleep
        self._wait_timeout = wait_timeout

    async def wait_for_node(self) -> None:
        """Poll ``/ping`` until the node answers.

        Raises:
            HookRegistrationError: the node did not come up in time.
        """
        deadline = time.monotonic() + self._wait_timeout
        while True:
            try:
                resp = await self._request("GET", "/ping")
                if resp.is_success:
                    return
            except httpx.HTTPError as exc:
                log.debug("Chainhook node not reachable yet: %s", exc)
            if time.monotonic() >= deadline:
                break
            await self._sleep(NODE_WAIT_INTERVAL)
        raise HookRegistrationError(
            f"Timed out waiting for chainhook node at {self._base_url} "
            "(check chainhook.node_url and that the service is running)"
        )

    async def get_status(self, uuid: str) -> PredicateStatus:
        try:
            resp = await self._request(
                "GET", f"/v1/chainhooks/{quote(uuid, safe='')}",
                headers={"accept": "application/json"},
            )
        except httpx.HTTPError:
            return PredicateStatus.DISABLED

        if resp.status_code == 404:
            return PredicateStatus.MISSING
        if not resp.is_success:
            return PredicateStatus.DISABLED
        try:
            body = resp.json()
        except ValueError:
            return PredicateStatus.DISABLED
        result = body.get("result") if isinstance(body, dict) else None
        if isinstance(result, dict) and result.get("enabled") is True:
            return PredicateStatus.ACTIVE
        return PredicateStatus.DISABLED

    async def delete(self, chain: str, uuid: str) -> None:
        path = f"/v1/chainhooks/{chain}/{quote(uuid, safe='')}"
        try:
            await self._request("DELETE", path, headers={"content-type": "application/json"})
        except httpx.HTTPError as exc:
            raise HookRegistrationError(f"DELETE {path} failed: {exc}") from exc

    async def register_all(self, predicates: list[dict[str, Any]]) -> list[str]:
        """Ensure each predicate is active. Returns the uuids that were (re)posted."""
        await self.wait_for_node()
        posted = []
        for predicate in predicates:
            uuid = predicate["uuid"]
            status = await self.get_status(uuid)
            if status is PredicateStatus.ACTIVE:
                log.debug("Predicate %s already active", uuid)
                continue
            if status is PredicateStatus.DISABLED:
                log.info("Predicate %s disabled, replacing", uuid)
                await self.delete(predicate["chain"], uuid)
            await self._checked("POST", "/v1/chainhooks", json=predicate)
            log.info("Registered predicate %s", uuid)
            posted.append(uuid)
        return posted


class HiroChainhookRegistrar(_HttpBase):
    """Upserts hook definitions on the hosted Chainhooks API, keyed by name."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, timeout, client)
        self._headers = {"x-api-key": api_key, "accept": "application/json"}

    async def list_all(self) -> dict[str, dict[str, Any]]:
        """Every registered hook, indexed by definition name."""
        by_name: dict[str, dict[str, Any]] = {}
        offset = 0
        while True:
            resp = await self._checked(
                "GET", HIRO_HOOKS_PATH,
                params={"limit": HIRO_PAGE_SIZE, "offset": offset},
                headers=self._headers,
            )
            page = _json_body(resp, HIRO_HOOKS_PATH)
            results = (page.get("results") or []) if isinstance(page, dict) else None
            if not isinstance(results, list):
                raise HookRegistrationError(
                    f"GET {HIRO_HOOKS_PATH} returned an unexpected listing: {resp.text[:200]}"
                )
            for hook in results:
                if not isinstance(hook, dict):
                    raise HookRegistrationError(f"GET {HIRO_HOOKS_PATH} returned a non-object hook")
                definition = hook.get("definition")
                name = definition.get("name") if isinstance(definition, dict) else None
                if name:
                    by_name[name] = hook
            offset += len(results)
            try:
                total = int(page.get("total", 0))
            except (TypeError, ValueError):
                total = 0
            if not results or offset >= total:
                break
        return by_name

    async def upsert_all(self, definitions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        existing = await self.list_all()
        results = []
        for definition in definitions:
            current = existing.get(definition["name"])
            if current is None:
                resp = await self._checked(
                    "POST", HIRO_HOOKS_PATH, json=definition, headers=self._headers,
                )
                log.info("Created chainhook %s", definition["name"])
            else:
                if not current.get("uuid"):
                    raise HookRegistrationError(
                        f"Chainhook {definition['name']} is listed without a uuid"
                    )
                uuid = quote(str(current["uuid"]), safe="")
                resp = await self._checked(
                    "PATCH", f"{HIRO_HOOKS_PATH}{uuid}", json=definition, headers=self._headers,
                )
                await self._checked(
                    "PATCH", f"{HIRO_HOOKS_PATH}{uuid}/enabled",
                    json={"enabled": True}, headers=self._headers,
                )
                log.info("Updated chainhook %s (%s)", definition["name"], current["uuid"])
            results.append(_json_body(resp, HIRO_HOOKS_PATH) if resp.content else {})
        return results


def check_registration_config(cfg: IndexerConfig) -> None:
    """Log misconfigurations; raise for ones that make registration pointless."""
    if not cfg.auth_token:
        log.warning("Chainhook auth token is not set; webhook endpoints will reject requests")

    if cfg.provider is ChainhookProvider.HIRO:
        if not cfg.hiro_api_key:
            log.warning("Provider is 'hiro' but no API key is set; registration will fail")
        host = urlparse(cfg.external_url).hostname
        if host in ("localhost", "127.0.0.1"):
            log.warning(
                "External URL %s is not publicly reachable; hosted chainhooks cannot deliver to it",
                cfg.external_url,
            )
    elif _HIRO_API_URL_RE.match(cfg.chainhook_node_url):
        raise ConfigError(
            f"Provider is 'local' but the node URL is a Hiro API URL ({cfg.chainhook_node_url}). "
            "Use provider 'hiro' with an API key, or point node_url at a chainhook node "
            "such as http://localhost:20456."
        )


async def register_hooks(cfg: IndexerConfig, client: httpx.AsyncClient | None = None) -> list[str]:
    """Register every hook with the configured provider. Returns the hook names handled."""
    check_registration_config(cfg)
    definitions = hook_definitions(cfg)

    if cfg.provider is ChainhookProvider.HIRO:
        log.info(
            "Registering chainhooks via hosted API (%s) at %s",
            cfg.network.value, cfg.effective_chainhooks_url,
        )
        registrar = HiroChainhookRegistrar(
            cfg.effective_chainhooks_url, cfg.hiro_api_key, client=client,
        )
        await registrar.upsert_all([build_chainhook_definition(d, cfg) for d in definitions])
    else:
        log.info(
            "Registering predicates against chainhook node %s (%s)",
            cfg.chainhook_node_url, cfg.network.value,
        )
        registrar_local = LocalPredicateRegistrar(cfg.chainhook_node_url, client=client)
        await registrar_local.register_all([build_predicate(d, cfg) for d in definitions])

    names = [d.name for d in definitions]
    log.info("Chainhooks ready: %s", ", ".join(names))
    return names


async def predicate_statuses(
    cfg: IndexerConfig, client: httpx.AsyncClient | None = None,
) -> dict[str, PredicateStatus]:
    """Status of each hook on a self-hosted node."""
    registrar = LocalPredicateRegistrar(cfg.chainhook_node_url, client=client)
    return {d.name: await registrar.get_status(d.name) for d in hook_definitions(cfg)}
