"""fleetwatch command line"""

import asyncio
import json
from datetime import timedelta
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .activity.client import RateGateClient
from .activity.types import ActivityKind
from .bootstrap import FleetComponents, build_components
from .config.loader import load_settings
from .config.settings import FleetSettings
from .errors import FleetError
from .logging_setup import setup_logging

console = Console()
app = typer.Typer(help="Fleet presence tracking and agent rate checks")


def _settings(ctx: typer.Context) -> FleetSettings:
    return ctx.obj["settings"]


def _run(ctx: typer.Context, operation):
    """Build components, run ``operation(components)`` and close stores."""
    components = build_components(_settings(ctx))
    try:
        return asyncio.run(operation(components))
    except FleetError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        components.close()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(None, "--config", "-c", help="Path to fleetwatch.json"),
    env_file: Path = typer.Option(None, "--env-file", help="Load environment from this .env file"),
    log_level: str = typer.Option(None, "--log-level", help="Override log level"),
):
    """Load .env and settings once for every command"""
    setup_logging(log_level or "INFO")
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    try:
        settings = load_settings(config)
    except Exception as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(2)
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level.upper()})
    else:
        setup_logging(settings.log_level)
    ctx.obj = {"settings": settings}


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: str = typer.Option(None, "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", help="Bind port"),
):
    """Run the HTTP API"""
    from .api.server import run_api_server

    settings = _settings(ctx)
    updates = {k: v for k, v in {"host": host, "port": port}.items() if v is not None}
    settings = settings.model_copy(update=updates)
    console.print(f"[cyan]Serving fleetwatch on {settings.host}:{settings.port}[/cyan]")
    try:
        asyncio.run(run_api_server(settings))
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")


@app.command("sweep")
def sweep(
    ctx: typer.Context,
    minutes: float = typer.Option(None, "--minutes", "-m", help="Staleness threshold in minutes"),
):
    """Mark instances with stale heartbeats offline"""
    async def op(components: FleetComponents) -> int:
        threshold = timedelta(minutes=minutes) if minutes is not None else components.settings.staleness_threshold
        return await components.service.sweeper.sweep(threshold, timeout=components.service.timeout)

    marked = _run(ctx, op)
    console.print(f"[green]✓[/green] Marked {marked} instance(s) offline")


@app.command("register")
def register(
    ctx: typer.Context,
    instance_id: str = typer.Argument(..., help="Instance ID"),
    nickname: str = typer.Option("", "--nickname", "-n", help="Display name"),
    category: str = typer.Option(None, "--category", help="Instance category"),
):
    """Create or refresh an instance record as online"""

    async def op(components: FleetComponents):
        return await components.service.register(instance_id, nickname=nickname, category=category)

    instance = _run(ctx, op)
    console.print(f"[green]✓[/green] Registered {instance.id} ({instance.category})")


@app.command("stats")
def stats(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
    no_sweep: bool = typer.Option(False, "--no-sweep", help="Skip the staleness sweep"),
):
    """Show instance counts by status and category"""

    async def op(components: FleetComponents):
        if not no_sweep:
            await components.service.sweep()
        return await components.service.aggregate()

    snapshot = _run(ctx, op)

    if json_output:
        typer.echo(json.dumps(snapshot.to_dict(), indent=2))
        return

    table = Table(title="Fleet Stats")
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Total", justify="right")
    table.add_column("Online", style="green", justify="right")
    table.add_column("Offline", style="red", justify="right")
    for category, counts in sorted(snapshot.by_category.items()):
        table.add_row(category, str(counts.total), str(counts.online), str(counts.offline))
    table.add_row("[bold]all[/bold]", str(snapshot.total), str(snapshot.online), str(snapshot.offline))
    console.print(table)


@app.command("rate-check")
def rate_check(
    ctx: typer.Context,
    instance_id: str = typer.Argument(..., help="Instance ID"),
    url: str = typer.Option(None, "--url", help="Query a running server instead of the local store"),
    kind: ActivityKind = typer.Option(None, "--kind", help="Exit non-zero when one more action of this kind is over the limit"),
):
    """Show posts and votes in the rolling window"""
    settings = _settings(ctx)
    policy = settings.rate_limit_policy()

    if url:
        async def remote():
            async with RateGateClient(url) as client:
                return await client.fetch(instance_id)

        try:
            activity = asyncio.run(remote())
        except FleetError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        posts, votes = activity.posts_today, activity.votes_today
    else:
        async def op(components: FleetComponents):
            return await components.service.rate_check(instance_id)

        result = _run(ctx, op)
        posts, votes = result.posts_in_window, result.votes_in_window

    console.print(f"Posts: {posts}/{policy.post_limit_per_day}  Votes: {votes}/{policy.vote_limit_per_day}")

    if kind is not None:
        count = posts if kind is ActivityKind.POST else votes
        if count >= policy.limit_for(kind):
            console.print(f"[yellow]Limit reached for {kind.value}[/yellow]")
            raise typer.Exit(3)


if __name__ == "__main__":
    app()
