"""CLI: market-admin auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from market_admin.client import AsyncMarketAdmin

console = Console()


def _load_config() -> dict:
    from market_admin.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from market_admin.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from market_admin.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="Backend base URL")
@click.option("--api-key", default=None, help="Backend anon API key")
def auth_login(base_url: Optional[str], api_key: Optional[str]):
    """Sign in with email and password. Only admin accounts are kept signed in."""
    from market_admin.cli.main import _api_key, _base_url

    async def _login():
        cfg = _load_config()
        url = base_url or _base_url(cfg)
        key = api_key or _api_key(cfg) or None
        client = AsyncMarketAdmin(base_url=url, api_key=key)
        try:
            email = click.prompt("Email")
            password = click.prompt("Password", hide_input=True)
            with console.status("Signing in..."):
                result = await client.sign_in(email, password)
                session = await client.resolver.resolve()
            if session is None:
                console.print("[red]This account cannot access the admin console.[/red]")
                _save_config({k: v for k, v in cfg.items() if k not in ("access_token", "refresh_token", "user_id", "email")})
                raise SystemExit(1)
            console.print(f"[green]Logged in as {session.identity.email or email} ({session.role.value})[/green]")
            _save_config({**cfg, "access_token": result["access_token"],
                          "refresh_token": result.get("refresh_token"),
                          "user_id": session.identity.id, "email": session.identity.email or email,
                          "base_url": url, "api_key": key})
            console.print("[dim]Token saved to ~/.market-admin/config.json[/dim]")
        finally:
            await client.close()

    _run(_login())


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("access_token"):
        console.print(f"[green]Logged in[/green] as {cfg.get('email', 'unknown')} (ID: {cfg.get('user_id')})")
    else:
        console.print("[yellow]Not logged in. Run `market-admin auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Sign out and clear saved credentials."""
    cfg = _load_config()
    if cfg.get("access_token"):
        from market_admin.cli.main import _get_client

        async def _logout():
            client = _get_client()
            try:
                await client.sign_out()
            finally:
                await client.close()

        _run(_logout())
    _save_config({k: v for k, v in cfg.items() if k in ("base_url", "api_key")})
    console.print("[green]Logged out.[/green]")
