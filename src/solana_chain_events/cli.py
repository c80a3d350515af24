"""CLI entry point for the solana_chain_events daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from solana_chain_events.config import load_config
from solana_chain_events.daemon import build_decoder, build_store, run_daemon
from solana_chain_events.models.config import DaemonConfig, StorageBackend
from solana_chain_events.models.events import ProgramEvent
from solana_chain_events.solana.rpc import SolanaRpcClient
from solana_chain_events.solana.search import ProgramEventSearch


def _require_idl(cfg: DaemonConfig) -> None:
    """Exit with error if no IDL is configured."""
    if not cfg.idl_path:
        click.echo("Error: No program IDL configured.", err=True)
        click.echo("Set SOLANA_CHAIN_EVENTS_IDL_PATH or idl_path in config.", err=True)
        sys.exit(1)


def _program_id(cfg: DaemonConfig) -> str:
    _require_idl(cfg)
    try:
        return build_decoder(cfg).program_id
    except (OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _format_value(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """solana_chain_events - Swap program event ingestion for Solana."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the event daemon (live subscription + polling)."""
    cfg = load_config(ctx.obj["config_path"])
    program_id = _program_id(cfg)

    click.echo(f"Starting solana_chain_events for {program_id}")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show daemon configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"RPC URL:     {cfg.rpc_url}")
    click.echo(f"WS URL:      {cfg.websocket_url()}")
    click.echo(f"Commitment:  {cfg.commitment}")
    click.echo(f"Program:     {cfg.program_id or '(from IDL)'}")
    click.echo(f"IDL:         {cfg.idl_path or '(not set)'}")
    click.echo(f"Events:      {', '.join(cfg.event_kinds)}")
    click.echo(f"Polling:     {f'every {cfg.poll_interval:g}s' if cfg.polling_enabled else 'disabled'}")
    click.echo(f"Storage:     {cfg.backend.value}")
    click.echo(f"Directory:   {cfg.directory}")
    if cfg.backend == StorageBackend.SQLITE:
        click.echo(f"DB path:     {cfg.db_path}")
    click.echo(
        f"Retries:     {cfg.retry.max_retries} x {cfg.retry.delay:g}s"
        f" ({'exponential' if cfg.retry.exponential else 'fixed'})"
    )


@cli.command()
@click.option("--limit", default=20, show_default=True, help="Stop after this many events")
@click.option("--start-slot", type=int, default=None, help="Do not look at slots older than this")
@click.pass_context
def scan(ctx: click.Context, limit: int, start_slot: int | None) -> None:
    """Search the program's history backward and print decoded events."""
    cfg = load_config(ctx.obj["config_path"])
    _require_idl(cfg)

    async def _scan() -> int:
        decoder = build_decoder(cfg)
        rpc = SolanaRpcClient(cfg.rpc_url, cfg.commitment, cfg.request_timeout, cfg.retry)
        search = ProgramEventSearch(rpc, decoder)
        found = 0

        async def _print(event: ProgramEvent, tx: dict) -> bool | None:
            nonlocal found
            found += 1
            signature = tx["transaction"]["signatures"][0]
            click.echo(f"{event.name}  slot={tx.get('slot')}  tx={signature}")
            for key, value in event.data.items():
                click.echo(f"    {key}: {_format_value(value)}")
            return True if found >= limit else None

        try:
            await search.find_in_events(
                decoder.program_id, _print, batch_size=cfg.log_fetch_limit, start_slot=start_slot,
            )
        finally:
            await rpc.close()
        return found

    found = asyncio.run(_scan())
    click.echo(f"{found} event(s)")


# ── Cursor ─────────────────────────────────────────────


@cli.group()
def cursor() -> None:
    """Inspect or reset the polling cursor."""


@cursor.command("show")
@click.pass_context
def cursor_show(ctx: click.Context) -> None:
    """Print the persisted cursor."""
    cfg = load_config(ctx.obj["config_path"])
    program_id = _program_id(cfg)

    async def _show():
        store = build_store(cfg, program_id)
        await store.initialize()
        try:
            return await store.load()
        finally:
            await store.close()

    current = asyncio.run(_show())
    if current is None:
        click.echo("No cursor (polling starts from the latest signature)")
        return
    click.echo(f"Signature:  {current.signature}")
    click.echo(f"Slot:       {current.slot}")


@cursor.command("reset")
@click.confirmation_option(prompt="Forget the polling cursor?")
@click.pass_context
def cursor_reset(ctx: click.Context) -> None:
    """Delete the persisted cursor."""
    cfg = load_config(ctx.obj["config_path"])
    program_id = _program_id(cfg)

    async def _reset():
        store = build_store(cfg, program_id)
        await store.initialize()
        try:
            await store.clear()
        finally:
            await store.close()

    asyncio.run(_reset())
    click.echo("Cursor cleared")


if __name__ == "__main__":
    cli()
