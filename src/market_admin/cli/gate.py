"""CLI: market-admin gate check <route>"""

import json

import click
from rich.console import Console

from market_admin.models.routes import AccessDecision

console = Console()


def _get_client():
    from market_admin.cli.main import _get_client
    return _get_client()


def _run(coro):
    from market_admin.cli.main import _run
    return _run(coro)


@click.group()
def gate():
    """Route access checks."""


@gate.command("check")
@click.argument("route")
@click.option("--json-output", "--json", is_flag=True)
def gate_check(route: str, json_output: bool):
    """Resolve the saved session and decide whether ROUTE may render."""

    async def _check():
        client = _get_client()
        try:
            result = await client.navigate(route)
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps(result.model_dump(mode="json")))
            return
        if result.decision == AccessDecision.ALLOW:
            role = client.session.role.value if client.session else "anonymous"
            console.print(f"[green]ALLOW[/green] {route} [dim]({role})[/dim]")
        else:
            console.print(f"[yellow]{result.decision.value}[/yellow] {route} -> {result.redirect_target}")

    _run(_check())
