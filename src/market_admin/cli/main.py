"""
Market admin CLI: `market-admin` command.

Commands:
  market-admin auth login           Email + password sign-in
  market-admin gate check <route>   Access decision for a route
  market-admin chat <peer-id>       Live chat with a seller
"""

import asyncio
import json
import logging
import os
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install market-admin-core[cli]")

from market_admin.client import AsyncMarketAdmin
from market_admin.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".market-admin" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _base_url(cfg: dict) -> str:
    return cfg.get("base_url") or os.environ.get("MARKET_ADMIN_BASE_URL", DEFAULT_BASE_URL)


def _api_key(cfg: dict) -> str:
    return cfg.get("api_key") or os.environ.get("MARKET_ADMIN_API_KEY", "")


def _get_client() -> AsyncMarketAdmin:
    cfg = _load_config()
    if not cfg.get("access_token"):
        console.print("[red]Not logged in. Run `market-admin auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncMarketAdmin(
        access_token=cfg["access_token"],
        api_key=_api_key(cfg) or None,
        base_url=_base_url(cfg),
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", count=True, help="Log to stderr (-vv for debug).")
def main(verbose: int):
    """Marketplace admin console: access gate and seller chat."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# Register subcommands from separate modules
from market_admin.cli.auth import auth
from market_admin.cli.chat import chat_cmd
from market_admin.cli.gate import gate

main.add_command(auth)
main.add_command(chat_cmd)
main.add_command(gate)


if __name__ == "__main__":
    main()
