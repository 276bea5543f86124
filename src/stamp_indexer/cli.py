"""CLI entry point for the stamp_indexer service."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from stamp_indexer.chainhook.registration import (
    check_registration_config,
    hook_definitions,
    predicate_statuses,
    register_hooks,
)
from stamp_indexer.config import load_config
from stamp_indexer.daemon import run_daemon
from stamp_indexer.errors import StampIndexerError
from stamp_indexer.models.config import ChainhookProvider, IndexerConfig


def _masked(secret: str) -> str:
    return "***configured***" if secret else "(not set)"


def _load(ctx: click.Context) -> IndexerConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except StampIndexerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """stamp-indexer - Chainhook webhook indexer for the bitcoin-stamp contract."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Service ────────────────────────────────────────────


@cli.command()
@click.option("--no-register", is_flag=True, help="Skip chainhook registration on startup")
@click.pass_context
def run(ctx: click.Context, no_register: bool) -> None:
    """Start the webhook and query API server."""
    cfg = _load(ctx)
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())
    if no_register:
        cfg.register_on_start = False

    click.echo(f"Starting stamp-indexer on {cfg.host}:{cfg.port} ({cfg.network.value})")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the effective configuration."""
    cfg = _load(ctx)
    click.echo(f"Listen:       {cfg.host}:{cfg.port}")
    click.echo(f"External URL: {cfg.external_url}")
    click.echo(f"Network:      {cfg.network.value}")
    click.echo(f"Contract:     {cfg.contract_identifier}")
    click.echo(f"Stacks API:   {cfg.effective_stacks_api_url}")
    click.echo(f"Provider:     {cfg.provider.value}")
    if cfg.provider is ChainhookProvider.LOCAL:
        click.echo(f"Node URL:     {cfg.chainhook_node_url}")
    else:
        click.echo(f"Hooks API:    {cfg.effective_chainhooks_url}")
        click.echo(f"API key:      {_masked(cfg.hiro_api_key)}")
    click.echo(f"Auth token:   {_masked(cfg.auth_token)}")
    click.echo(f"Faucet:       {'enabled' if cfg.faucet.enabled else 'disabled'}"
               f" ({cfg.faucet.amount_stx} STX, {cfg.faucet.cooldown_minutes} min cooldown)")


# ── Chainhooks ─────────────────────────────────────────


@cli.command("register-hooks")
@click.pass_context
def register_hooks_cmd(ctx: click.Context) -> None:
    """Register or refresh all chainhook predicates, then exit."""
    cfg = _load(ctx)

    try:
        names = asyncio.run(register_hooks(cfg))
    except StampIndexerError as exc:
        click.echo(f"Registration failed: {exc}", err=True)
        sys.exit(1)

    for name in names:
        click.echo(f"  {name}")
    click.echo(f"{len(names)} chainhooks ready")


@cli.command()
@click.pass_context
def hooks(ctx: click.Context) -> None:
    """Show predicate status on a self-hosted chainhook node."""
    cfg = _load(ctx)
    if cfg.provider is not ChainhookProvider.LOCAL:
        click.echo("Predicate status is only available for the 'local' provider.", err=True)
        for d in hook_definitions(cfg):
            click.echo(f"  {d.name:<32} {d.method:<12} {d.webhook_path}")
        sys.exit(1)

    try:
        check_registration_config(cfg)
    except StampIndexerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    statuses = asyncio.run(predicate_statuses(cfg))
    for name, state in statuses.items():
        click.echo(f"  {name:<32} {state.value}")
