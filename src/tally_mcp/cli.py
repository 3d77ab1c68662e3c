"""Typer CLI for tally-mcp."""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from tally_mcp.config import Settings
from tally_mcp.errors import AuthenticationError, TallyError
from tally_mcp.graphql_client import TallyGraphQLClient
from tally_mcp.log import configure_logging
from tally_mcp.models import ResourceDocument
from tally_mcp.prompts import PROMPTS, render_prompt
from tally_mcp.resources import (
    get_organization_overview,
    get_proposal_overview,
    get_trending_proposals_overview,
    get_user_overview,
)

app = typer.Typer(
    name="tally-mcp",
    help="MCP server and command-line viewer for Tally DAO governance data.",
    no_args_is_help=True,
)
console = Console()


def _load_settings(**overrides) -> Settings:
    try:
        settings = Settings.from_env()
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(settings, **changes) if changes else settings
    except TallyError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)


def _show_document(
    render: Callable[[TallyGraphQLClient], Awaitable[ResourceDocument]],
    raw: bool,
) -> None:
    settings = _load_settings()
    configure_logging(settings.log_level)

    async def _run() -> ResourceDocument:
        async with TallyGraphQLClient(settings) as client:
            return await render(client)

    try:
        doc = asyncio.run(_run())
    except AuthenticationError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    if raw:
        console.print(doc.text, markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(Markdown(doc.text))
    if doc.is_error:
        raise typer.Exit(1)


RawOption = Annotated[bool, typer.Option("--raw", help="Print the markdown source instead of rendering it")]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def serve(
    transport: Annotated[Optional[str], typer.Option("--transport", "-t", help="stdio, sse or streamable-http")] = None,
    port: Annotated[Optional[int], typer.Option(help="Port for the HTTP transports")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="debug, info, warning or error")] = None,
) -> None:
    """Run the MCP server."""
    settings = _load_settings(
        transport_mode=transport,
        port=port,
        log_level=log_level.lower() if log_level else None,
    )
    configure_logging(settings.log_level)

    from tally_mcp.mcp_server import run

    try:
        run(settings)
    except AuthenticationError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)


@app.command()
def org(
    organization_id: Annotated[str, typer.Argument(help="Numeric organization ID")],
    raw: RawOption = False,
) -> None:
    """Show the markdown overview of a DAO."""
    _show_document(lambda client: get_organization_overview(client, organization_id), raw)


@app.command()
def proposal(
    organization_id: Annotated[str, typer.Argument(help="Numeric organization ID")],
    proposal_id: Annotated[str, typer.Argument(help="Numeric proposal ID")],
    raw: RawOption = False,
) -> None:
    """Show the markdown overview of a proposal."""
    _show_document(
        lambda client: get_proposal_overview(client, organization_id, proposal_id), raw
    )


@app.command()
def trending(raw: RawOption = False) -> None:
    """Show active proposals across all DAOs."""
    _show_document(get_trending_proposals_overview, raw)


@app.command()
def user(
    address: Annotated[str, typer.Argument(help="Ethereum address")],
    raw: RawOption = False,
) -> None:
    """Show the governance profile of an address."""
    _show_document(lambda client: get_user_overview(client, address), raw)


@app.command("prompts")
def list_prompts() -> None:
    """List the available governance prompts and their arguments."""
    table = Table(title="Governance Prompts")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Arguments")
    for spec in PROMPTS.values():
        args = ", ".join(
            arg.name if arg.required else f"{arg.name} (optional)" for arg in spec.arguments
        )
        table.add_row(spec.name, spec.description, args)
    console.print(table)


@app.command()
def prompt(
    name: Annotated[str, typer.Argument(help="Prompt name (see 'tally-mcp prompts')")],
    args: Annotated[Optional[list[str]], typer.Option("--arg", "-a", help="Prompt argument as key=value")] = None,
) -> None:
    """Print the message a prompt generates."""
    params: dict[str, str] = {}
    for item in args or []:
        key, sep, value = item.partition("=")
        if not sep:
            console.print(f"[red]Invalid argument '{item}'. Use key=value.[/red]")
            raise typer.Exit(1)
        params[key.strip()] = value.strip()

    try:
        message = render_prompt(name, params)
    except TallyError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    console.print(message["content"]["text"], markup=False, highlight=False, soft_wrap=True)


if __name__ == "__main__":
    app()
