"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from solana_chain_events.models.config import DaemonConfig, RetryPolicy, StorageBackend

_FALSE_VALUES = {"0", "false", "no", "off"}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "SOLANA_CHAIN_EVENTS_",
) -> DaemonConfig:
    """Load daemon configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (SOLANA_CHAIN_EVENTS_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from DaemonConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = DaemonConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("poll_interval"):
        cfg.poll_interval = float(v)
    if (v := daemon.get("polling_enabled")) is not None:
        cfg.polling_enabled = bool(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Solana section ─────────────────────────────────────
    solana = raw.get("solana", {})
    if v := solana.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := solana.get("ws_url"):
        cfg.ws_url = str(v)
    if v := solana.get("commitment"):
        cfg.commitment = str(v)
    if v := solana.get("request_timeout"):
        cfg.request_timeout = float(v)
    if v := solana.get("log_fetch_limit"):
        cfg.log_fetch_limit = int(v)

    # ── Program section ────────────────────────────────────
    program = raw.get("program", {})
    if v := program.get("program_id"):
        cfg.program_id = str(v)
    if v := program.get("idl_path"):
        cfg.idl_path = str(v)
    if v := program.get("event_kinds"):
        cfg.event_kinds = tuple(str(kind) for kind in v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("backend"):
        cfg.backend = StorageBackend(v)
    if v := storage.get("directory"):
        cfg.directory = str(v)
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Retry section ──────────────────────────────────────
    retry = raw.get("retry", {})
    if retry:
        cfg.retry = RetryPolicy(
            max_retries=int(retry.get("max_retries", cfg.retry.max_retries)),
            delay=float(retry.get("delay", cfg.retry.delay)),
            exponential=bool(retry.get("exponential", cfg.retry.exponential)),
        )

    # ── Environment variable overrides (highest priority) ──
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if ws := os.environ.get(f"{env_prefix}WS_URL"):
        cfg.ws_url = ws
    if pid := os.environ.get(f"{env_prefix}PROGRAM_ID"):
        cfg.program_id = pid
    if idl := os.environ.get(f"{env_prefix}IDL_PATH"):
        cfg.idl_path = idl
    if directory := os.environ.get(f"{env_prefix}STORAGE_DIR"):
        cfg.directory = directory
    if polling := os.environ.get(f"{env_prefix}POLLING"):
        cfg.polling_enabled = polling.strip().lower() not in _FALSE_VALUES

    # Expand ~ in paths
    cfg.directory = str(Path(cfg.directory).expanduser())
    cfg.db_path = str(Path(cfg.db_path).expanduser())
    if cfg.idl_path:
        cfg.idl_path = str(Path(cfg.idl_path).expanduser())

    return cfg
