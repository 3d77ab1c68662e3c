"""MCP server for Tally: exposes DAO governance data to AI assistants."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from mcp.server.fastmcp import FastMCP

from tally_mcp import __version__, tools, user_tools
from tally_mcp.config import Settings
from tally_mcp.errors import TallyError, format_error
from tally_mcp.graphql_client import TallyGraphQLClient
from tally_mcp.log import configure_logging
from tally_mcp.prompts import PROMPTS
from tally_mcp.resources import (
    get_organization_overview,
    get_proposal_overview,
    get_trending_proposals_overview,
    get_user_overview,
)

logger = logging.getLogger(__name__)

_client: TallyGraphQLClient | None = None


@asynccontextmanager
async def _lifespan(server: FastMCP):
    global _client
    try:
        yield {}
    finally:
        if _client is not None:
            await _client.aclose()
            _client = None


mcp = FastMCP(
    "tally",
    instructions="""\
Tally MCP exposes on-chain DAO governance data from the Tally API: organizations \
(DAOs), their proposals, delegates and live votes.

Key concepts:
- **Organization**: a DAO. Identified by a numeric ID or a slug (e.g. "uniswap").
- **Proposal**: a governance vote item with a status (active, succeeded, defeated, \
executed, queued, pending, canceled...).
- **Vote counts** are raw token amounts in the token's smallest unit. Divide by \
10^decimals of the governance token before reporting them as token amounts.

Typical workflow:
1. Use list_organizations or get_organization to find a DAO
2. Use list_proposals to see its recent proposals
3. Use get_proposal for the details of one proposal
4. Use get_active_proposals to see what is being voted on right now
5. Use get_delegates, get_delegate_statement and get_user_profile to research delegates

Resources give readable markdown summaries: tally://org/{organization_id}, \
tally://org/{organization_id}/proposal/{proposal_id}, tally://trending/proposals, \
tally://user/{address}. tally://popular-daos maps \
popular DAO names and slugs to IDs.\
""",
    lifespan=_lifespan,
)


def _get_client() -> TallyGraphQLClient:
    global _client
    if _client is None:
        _client = TallyGraphQLClient(Settings.from_env())
    return _client


def _dump(data) -> str:
    return json.dumps(data, indent=2)


def _tool_error(e: TallyError) -> str:
    logger.warning("Tool call failed: %s", format_error(e))
    return f"Error: {e.message}"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def list_organizations(
    page: int = 1,
    page_size: int = 20,
    chain_id: str | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> str:
    """List DAOs on Tally.

    Args:
        page: Page number (1-based)
        page_size: Results per page (1-100)
        chain_id: Only DAOs on this chain (e.g. "eip155:1")
        sort_by: One of "id", "name", "explore", "popular"
        sort_order: "asc" or "desc"
    """
    try:
        result = await tools.list_organizations(
            _get_client(),
            page=page,
            page_size=page_size,
            chain_id=chain_id,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except TallyError as e:
        return _tool_error(e)
    return _dump(result)


@mcp.tool()
async def get_organization(
    organization_id: str | None = None,
    organization_slug: str | None = None,
) -> str:
    """Get one DAO by ID or slug (provide exactly one).

    Args:
        organization_id: Numeric organization ID
        organization_slug: Organization slug (e.g. "uniswap")
    """
    try:
        org = await tools.get_organization(
            _get_client(),
            organization_id=organization_id,
            organization_slug=organization_slug,
        )
    except TallyError as e:
        return _tool_error(e)
    if org is None:
        return f"Error: organization {organization_id or organization_slug} not found."
    return _dump(org)


@mcp.tool()
async def get_organizations_with_active_proposals(
    page_size: int = 20,
    chain_id: str | None = None,
) -> str:
    """Find DAOs that currently have proposals open for voting.

    Args:
        page_size: Number of most-active organizations to scan (1-100)
        chain_id: Only DAOs on this chain
    """
    try:
        result = await tools.get_organizations_with_active_proposals(
            _get_client(), page_size=page_size, chain_id=chain_id
        )
    except TallyError as e:
        return _tool_error(e)
    return _dump(result)


@mcp.tool()
async def list_proposals(
    organization_id: str,
    page_size: int = 20,
    sort_order: str = "desc",
) -> str:
    """List recent proposals of a DAO.

    Args:
        organization_id: Numeric organization ID
        page_size: Results per page (1-100)
        sort_order: "desc" for newest first, "asc" for oldest first
    """
    try:
        result = await tools.list_proposals(
            _get_client(),
            organization_id=organization_id,
            page_size=page_size,
            sort_order=sort_order,
        )
    except TallyError as e:
        return _tool_error(e)
    return _dump(result)


@mcp.tool()
async def get_proposal(proposal_id: str, organization_id: str | None = None) -> str:
    """Get full details of a proposal: description, vote totals, executable calls.

    Args:
        proposal_id: Numeric proposal ID
        organization_id: Organization the proposal belongs to (optional context)
    """
    try:
        proposal = await tools.get_proposal(
            _get_client(), proposal_id=proposal_id, organization_id=organization_id
        )
    except TallyError as e:
        return _tool_error(e)
    if proposal is None:
        return f"Error: proposal {proposal_id} not found."
    return _dump(proposal)


@mcp.tool()
async def get_active_proposals(
    page: int = 1,
    page_size: int = 20,
    organization_id: str | None = None,
) -> str:
    """Proposals currently open for voting, soonest-ending first.

    Args:
        page: Page number (1-based)
        page_size: Results per page (1-100)
        organization_id: Restrict to one DAO; omit to scan all active DAOs
    """
    try:
        result = await tools.get_active_proposals(
            _get_client(), page=page, page_size=page_size, organization_id=organization_id
        )
    except TallyError as e:
        return _tool_error(e)
    return _dump(result)


@mcp.tool()
async def get_delegates(
    organization_id: str,
    page_size: int = 20,
    sort_by: str = "votes",
    sort_order: str = "desc",
) -> str:
    """Delegates of a DAO with voting power, account details, statements and token info.

    Args:
        organization_id: Numeric organization ID
        page_size: Results per page (1-100)
        sort_by: One of "id", "votes", "delegators", "isPrioritized"
        sort_order: "asc" or "desc"
    """
    try:
        result = await user_tools.get_delegates(
            _get_client(),
            organization_id=organization_id,
            page_size=page_size,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except TallyError as e:
        return _tool_error(e)
    return _dump(result)


@mcp.tool()
async def get_dao_participants(organization_id: str, page_size: int = 20) -> str:
    """Voting participants of a DAO.

    Args:
        organization_id: Numeric organization ID
        page_size: Results per page (1-100)
    """
    try:
        result = await user_tools.get_dao_participants(
            _get_client(), organization_id=organization_id, page_size=page_size
        )
    except TallyError as e:
        return _tool_error(e)
    return _dump(result)


@mcp.tool()
async def get_user_profile(address: str, page_size: int = 20) -> str:
    """Account details plus the DAOs an address delegates in or is a delegate of.

    Args:
        address: Ethereum address (0x followed by 40 hex characters)
        page_size: Maximum number of delegations to return (1-100)
    """
    try:
        profile = await user_tools.get_user_profile(
            _get_client(), address=address, page_size=page_size
        )
    except TallyError as e:
        return _tool_error(e)
    if profile is None:
        return f"Error: no Tally account found for {address}."
    return _dump(profile)


@mcp.tool()
async def get_delegate_statement(address: str, organization_id: str) -> str:
    """A delegate's statement in one DAO.

    Args:
        address: Ethereum address of the delegate
        organization_id: Numeric organization ID
    """
    try:
        statement = await user_tools.get_delegate_statement(
            _get_client(), address=address, organization_id=organization_id
        )
    except TallyError as e:
        return _tool_error(e)
    if statement is None:
        return f"Error: {address} is not a delegate in organization {organization_id}."
    return _dump(statement)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@mcp.resource("tally://server/info", mime_type="application/json")
def server_info() -> str:
    """Server name, version and status."""
    return _dump(
        {
            "name": "tally-mcp",
            "version": __version__,
            "description": "MCP server for Tally blockchain governance API",
            "status": "operational",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@mcp.resource("tally://org/{organization_id}", mime_type="text/markdown")
async def organization_overview(organization_id: str) -> str:
    """Markdown overview of a DAO."""
    doc = await get_organization_overview(_get_client, organization_id)
    return doc.text


@mcp.resource(
    "tally://org/{organization_id}/proposal/{proposal_id}", mime_type="text/markdown"
)
async def proposal_overview(organization_id: str, proposal_id: str) -> str:
    """Markdown overview of a proposal with vote totals and execution status."""
    doc = await get_proposal_overview(_get_client, organization_id, proposal_id)
    return doc.text


@mcp.resource("tally://trending/proposals", mime_type="text/markdown")
async def trending_proposals() -> str:
    """Active proposals across all DAOs, grouped by organization."""
    doc = await get_trending_proposals_overview(_get_client)
    return doc.text


@mcp.resource("tally://user/{address}", mime_type="text/markdown")
async def user_overview(address: str) -> str:
    """Markdown governance profile of an address."""
    doc = await get_user_overview(_get_client, address)
    return doc.text


@mcp.resource("tally://popular-daos", mime_type="application/json")
async def popular_daos() -> str:
    """Top DAOs by delegate count with name, slug and ID lookups."""
    try:
        client = _get_client()
    except TallyError as e:
        return _dump(tools.popular_daos_error(e.message))
    return _dump(await tools.get_popular_daos(client))


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

for _spec in PROMPTS.values():
    mcp.prompt(name=_spec.name, description=_spec.description)(_spec.generate)


def run(settings: Settings) -> None:
    """Start the server with the given settings."""
    global _client
    _client = TallyGraphQLClient(settings)
    mcp.settings.port = settings.port
    logger.info("Starting tally-mcp (%s transport)", settings.transport_mode)
    mcp.run(transport=settings.transport_mode)


def main():
    """Entry point for the MCP server."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    run(settings)


if __name__ == "__main__":
    main()
