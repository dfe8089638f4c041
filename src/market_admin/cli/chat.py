"""CLI: market-admin chat <peer-id>"""

import asyncio

import click
from rich.console import Console

from market_admin.errors import BackendError, SendError
from market_admin.models.message import Message
from market_admin.models.routes import AccessDecision

console = Console()


def _get_client():
    from market_admin.cli.main import _get_client
    return _get_client()


def _run(coro):
    from market_admin.cli.main import _run
    return _run(coro)


def _render(message: Message, mine: bool, peer_name: str) -> str:
    stamp = message.created_at.strftime("%H:%M")
    if mine:
        return f"[green]me[/green] [dim]{stamp}[/dim] {message.body}"
    return f"[cyan]{peer_name}[/cyan] [dim]{stamp}[/dim] {message.body}"


@click.command("chat")
@click.argument("peer_id")
def chat_cmd(peer_id: str):
    """Interactive chat with a seller."""

    async def _chat():
        client = _get_client()
        try:
            result = await client.navigate(f"/chat/{peer_id}")
            if result.decision != AccessDecision.ALLOW:
                console.print("[red]Session is not authorized. Run `market-admin auth login`.[/red]")
                raise SystemExit(1)
            try:
                peer_name = (await client.get_profile(peer_id)).display_name
            except BackendError:
                console.print("[yellow]Seller not found[/yellow]")
                peer_name = peer_id
            await client.connect()
            channel = await client.open_conversation(peer_id)
            shown: set[str] = set()

            def print_new(transcript: tuple[Message, ...]) -> None:
                for message in transcript:
                    if message.id not in shown:
                        shown.add(message.id)
                        console.print(_render(message, channel.is_mine(message), peer_name))

            channel.on_transcript_changed(print_new)
            channel.on_error(lambda e: console.print(f"[red]{e}[/red]"))
            if channel.backfill_error:
                console.print(f"[red]{channel.backfill_error}[/red]")
            elif not channel.transcript:
                console.print("[dim]No previous messages. Start a conversation![/dim]")
            print_new(channel.transcript)
            console.print("[cyan]Type your message (/quit to exit)[/cyan]\n")
            try:
                while True:
                    line = await asyncio.to_thread(click.prompt, "You", default=channel.draft or "",
                                                   show_default=False, prompt_suffix=": ")
                    if line.lower() in ("/quit", "/exit"):
                        break
                    try:
                        await channel.send(line)
                    except SendError as e:
                        if e.code != "empty_message":
                            console.print(f"[red]{e}[/red] [dim](draft kept)[/dim]")
            except (KeyboardInterrupt, EOFError, click.Abort):
                pass
            finally:
                channel.close()
        finally:
            await client.close()

    _run(_chat())
