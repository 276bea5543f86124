"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import logging
import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from stamp_indexer.errors import ConfigError
from stamp_indexer.models.config import (
    ChainhookProvider,
    FaucetConfig,
    IndexerConfig,
    StacksNetwork,
)


def parse_int_or_default(value: object, fallback: int) -> int:
    """Parse a base-10 integer, returning ``fallback`` for blank or bad input."""
    if value is None or value == "":
        return fallback
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 10)
    except ValueError:
        return fallback


def parse_bool(value: object, fallback: bool) -> bool:
    if value is None or value == "":
        return fallback
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _network(value: str) -> StacksNetwork:
    try:
        return StacksNetwork(value)
    except ValueError:
        raise ConfigError(f"Unknown Stacks network: {value!r}") from None


def _provider(value: str) -> ChainhookProvider:
    try:
        return ChainhookProvider(value)
    except ValueError:
        raise ConfigError(f"Unknown chainhook provider: {value!r}") from None


def _log_level(value: str) -> str:
    if not isinstance(logging.getLevelName(value.strip().upper()), int):
        raise ConfigError(f"Unknown log level: {value!r}")
    return value.strip().lower()


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "STAMP_INDEXER_",
    environ: dict[str, str] | None = None,
) -> IndexerConfig:
    """Load service configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (STAMP_INDEXER_CHAINHOOK_AUTH_TOKEN, etc.)
        2. TOML config file
        3. Defaults from IndexerConfig
    """
    env = os.environ if environ is None else environ
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = IndexerConfig()

    # ── Server section ─────────────────────────────────────
    server = raw.get("server", {})
    if v := server.get("host"):
        cfg.host = str(v)
    cfg.port = parse_int_or_default(server.get("port"), cfg.port)
    if v := server.get("external_url"):
        cfg.external_url = str(v)
    if v := server.get("log_level"):
        cfg.log_level = _log_level(str(v))
    cfg.max_body_size = parse_int_or_default(server.get("max_body_size"), cfg.max_body_size)

    # ── Contract section ───────────────────────────────────
    contract = raw.get("contract", {})
    if v := contract.get("address"):
        cfg.contract_address = str(v)
    if v := contract.get("name"):
        cfg.contract_name = str(v)

    # ── Stacks section ─────────────────────────────────────
    stacks = raw.get("stacks", {})
    if v := stacks.get("network"):
        cfg.network = _network(str(v))
    if v := stacks.get("api_base_url"):
        cfg.stacks_api_base_url = str(v)

    # ── Chainhook section ──────────────────────────────────
    chainhook = raw.get("chainhook", {})
    if v := chainhook.get("auth_token"):
        cfg.auth_token = str(v)
    if v := chainhook.get("provider"):
        cfg.provider = _provider(str(v))
    if v := chainhook.get("node_url"):
        cfg.chainhook_node_url = str(v)
    if v := chainhook.get("api_key"):
        cfg.hiro_api_key = str(v)
    if v := chainhook.get("base_url"):
        cfg.chainhooks_base_url = str(v)
    cfg.register_on_start = parse_bool(
        chainhook.get("register_on_start"), cfg.register_on_start,
    )

    # ── Faucet section ─────────────────────────────────────
    faucet_raw = raw.get("faucet", {})
    faucet = FaucetConfig()
    faucet.enabled = parse_bool(faucet_raw.get("enabled"), faucet.enabled)
    faucet.allow_mainnet = parse_bool(faucet_raw.get("allow_mainnet"), faucet.allow_mainnet)
    if v := faucet_raw.get("address"):
        faucet.address = str(v)
    if v := faucet_raw.get("amount_stx"):
        faucet.amount_stx = str(v)
    faucet.cooldown_minutes = parse_int_or_default(
        faucet_raw.get("cooldown_minutes"), faucet.cooldown_minutes,
    )
    if "ip_cooldown_minutes" in faucet_raw:
        faucet.ip_cooldown_minutes = parse_int_or_default(
            faucet_raw["ip_cooldown_minutes"], faucet.cooldown_minutes,
        )
    cfg.faucet = faucet

    # ── Environment variable overrides (highest priority) ──
    def _env(name: str) -> str | None:
        return env.get(f"{env_prefix}{name}")

    if v := _env("HOST"):
        cfg.host = v
    cfg.port = parse_int_or_default(_env("PORT"), cfg.port)
    if v := _env("EXTERNAL_URL"):
        cfg.external_url = v
    if v := _env("LOG_LEVEL"):
        cfg.log_level = _log_level(v)
    if v := _env("CONTRACT_ADDRESS"):
        cfg.contract_address = v
    if v := _env("CONTRACT_NAME"):
        cfg.contract_name = v
    if v := _env("STACKS_NETWORK"):
        cfg.network = _network(v)
    if v := _env("STACKS_API_BASE_URL"):
        cfg.stacks_api_base_url = v
    if token := _env("CHAINHOOK_AUTH_TOKEN"):
        cfg.auth_token = token
    if v := _env("CHAINHOOK_PROVIDER"):
        cfg.provider = _provider(v)
    if v := _env("CHAINHOOK_NODE_URL"):
        cfg.chainhook_node_url = v
    if key := _env("HIRO_API_KEY"):
        cfg.hiro_api_key = key
    if v := _env("CHAINHOOKS_BASE_URL"):
        cfg.chainhooks_base_url = v

    faucet.enabled = parse_bool(_env("FAUCET_ENABLED"), faucet.enabled)
    faucet.allow_mainnet = parse_bool(_env("FAUCET_ALLOW_MAINNET"), faucet.allow_mainnet)
    if v := _env("FAUCET_ADDRESS"):
        faucet.address = v
    if v := _env("FAUCET_AMOUNT_STX"):
        faucet.amount_stx = v
    faucet.cooldown_minutes = parse_int_or_default(
        _env("FAUCET_COOLDOWN_MINUTES"), faucet.cooldown_minutes,
    )
    if (v := _env("FAUCET_IP_COOLDOWN_MINUTES")) is not None:
        faucet.ip_cooldown_minutes = parse_int_or_default(
            v, faucet.effective_ip_cooldown_minutes,
        )

    return cfg
