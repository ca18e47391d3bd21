# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Command Line Interface

Usage:
    toolrelay serve              # Start API server
    toolrelay tools              # List tools from the tool provider
    toolrelay config             # Show effective configuration
    toolrelay db init            # Create audit tables
"""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="toolrelay", help="Toolrelay - OpenAI-Compatible Tool-Calling Gateway")
console = Console()


# ============================================================
# SERVER COMMANDS
# ============================================================


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: HOST or 0.0.0.0)"),
    port: int = typer.Option(None, help="Port to bind to (default: PORT or 3000)"),
    reload: bool = typer.Option(False, help="Enable auto-reload (development)"),
):
    """Start the API server."""
    import uvicorn

    from .core.settings import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting Toolrelay on {host}:{port}[/] ({settings.environment})")

    uvicorn.run(
        "toolrelay.gateway.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )


# ============================================================
# TOOL COMMANDS
# ============================================================


@app.command()
def tools(
    static_toolkits: str = typer.Option(None, "--toolkits", help="Comma-separated toolkit ids"),
    static_actions: str = typer.Option(None, "--actions", help="Comma-separated action ids"),
):
    """List tools available from the tool provider."""
    from toolrelay_core import RelayError

    from .core.settings import get_settings
    from .core.tools import ToolSelection, create_tool_provider

    async def _list():
        provider = create_tool_provider(get_settings().tools)
        try:
            return await provider.list_tools(
                ToolSelection.from_csv(static_toolkits, static_actions)
            )
        finally:
            await provider.close()

    try:
        found = asyncio.run(_list())
    except RelayError as e:
        console.print(f"[red]Failed to list tools:[/] {e.message}")
        raise typer.Exit(1) from e

    if not found:
        console.print("[yellow]No tools found.[/]")
        return

    table = Table(title=f"Tools ({len(found)})")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Description", style="white")

    for tool in found:
        table.add_row(tool.name, tool.type or "function", (tool.description or "")[:100])

    console.print(table)


# ============================================================
# CONFIGURATION COMMANDS
# ============================================================


@app.command()
def config():
    """Show effective configuration with credentials masked."""
    from .core.settings import get_settings
    from .observability.logging import mask_secret, mask_url

    settings = get_settings()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    rows = [
        ("Environment", settings.environment),
        ("Listen", f"{settings.host}:{settings.port}"),
        ("CORS origin", settings.cors_origin),
        ("Model credential", mask_secret(settings.llm.api_key)),
        ("Proxy", mask_url(settings.llm.proxy_url) if settings.llm.proxy_url else "(none)"),
        ("Request timeout", f"{settings.llm.request_timeout}s"),
        ("Tool credential", mask_secret(settings.tools.api_key)),
        ("Tool invoke timeout", f"{settings.tools.invoke_timeout}s"),
        ("Max iterations", str(settings.loop.max_iterations or "unlimited")),
        ("Database", mask_url(settings.database.url)),
        ("Public dir", settings.analysis.public_dir),
        ("Analysis model", settings.analysis.model),
        ("Log level", settings.log_level),
        ("Log format", settings.log_format),
    ]
    for name, value in rows:
        table.add_row(name, value)

    console.print(table)


# ============================================================
# DATABASE COMMANDS
# ============================================================

db_app = typer.Typer(help="Audit database commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create the audit tables."""
    from .core.settings import get_settings
    from .data.store import create_audit_store

    settings = get_settings()
    if settings.database.is_memory:
        console.print("[yellow]In-memory audit store configured; nothing to create.[/]")
        return

    async def _init():
        store = create_audit_store(settings.database.url, echo=settings.database.echo)
        await store.initialize()
        await store.close()

    asyncio.run(_init())
    console.print("[green]Audit tables ready.[/]")


# ============================================================
# MAIN
# ============================================================


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
