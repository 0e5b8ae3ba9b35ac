"""Typer CLI for ReplyGate."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="replygate", help="ReplyGate: plan-metered AI reply generation")
console = Console()


def _fmt_limit(value) -> str:
    return "unlimited" if value is None else str(value)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the ReplyGate API server."""
    import uvicorn
    from replygate.app import create_app

    console.print(f"[bold green]Starting ReplyGate on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def plans():
    """Show the effective plan limits (built-in plus REPLYGATE_PLAN_LIMITS)."""
    from replygate.common.config import get_settings

    table = Table(title="Plan limits")
    table.add_column("Plan", style="bold")
    table.add_column("Daily", justify="right")
    table.add_column("Weekly", justify="right")
    table.add_column("Monthly", justify="right")

    for plan_id, limits in get_settings().plan_limit_table.items():
        windows = limits.to_dict()
        table.add_row(
            plan_id,
            _fmt_limit(windows["daily"]),
            _fmt_limit(windows["weekly"]),
            _fmt_limit(windows["monthly"]),
        )
    console.print(table)


@app.command()
def usage(
    user_id: str = typer.Argument(..., help="User id to report on"),
):
    """Print a user's usage analytics from the configured database."""
    from sqlalchemy.exc import SQLAlchemyError

    from replygate.common.exceptions import ReplyGateError
    from replygate.deps import get_db, get_usage_service

    async def _load():
        db = get_db()
        await db.init()
        try:
            await db.create_all()
            async with db.get_session() as session:
                return await get_usage_service().get_analytics(session, user_id)
        finally:
            await db.close()

    try:
        data = asyncio.run(_load())
    except ReplyGateError as e:
        console.print(f"[bold red]{e.code}[/bold red] {e.message}")
        raise typer.Exit(1)
    except SQLAlchemyError as e:
        console.print(f"[bold red]Database error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Usage for {user_id}")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for key, value in data.items():
        if key.endswith("limit"):
            value = _fmt_limit(value)
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check ReplyGate server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
