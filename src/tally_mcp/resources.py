"""Markdown resources: organization overview, proposal overview, trending proposals.

Every renderer returns a ``ResourceDocument``. Lookup failures become an
error document under the same URI instead of an exception.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from tally_mcp import tools, user_tools
from tally_mcp.errors import NotFoundError, TallyError
from tally_mcp.formatting import (
    format_date,
    format_number,
    format_relative_date,
    format_status,
    format_timestamp,
    format_votes,
    format_voting_power,
    status_glyph,
    to_number,
    truncate,
    utcnow,
)
from tally_mcp.graphql_client import TallyGraphQLClient
from tally_mcp.models import Organization, Proposal, ResourceDocument, UserProfile

logger = logging.getLogger(__name__)

URI_SCHEME = "tally://"
TRENDING_URI = f"{URI_SCHEME}trending/proposals"
TRENDING_PAGE_SIZE = 20
DESCRIPTION_LIMIT = 500
TRENDING_TITLE_LIMIT = 80
PROPOSER_PREFIX_LEN = 10
UNKNOWN_DAO = "Unknown DAO"
UNTITLED = "Untitled Proposal"
USER_PAGE_SIZE = 10

# a client, or a factory that builds one; factories run inside the error boundary
ClientSource = TallyGraphQLClient | Callable[[], TallyGraphQLClient]


def organization_uri(organization_id: str) -> str:
    return f"{URI_SCHEME}org/{organization_id}"


def proposal_uri(organization_id: str, proposal_id: str) -> str:
    return f"{URI_SCHEME}org/{organization_id}/proposal/{proposal_id}"


def user_uri(address: str) -> str:
    return f"{URI_SCHEME}user/{address}"


def _resolve(client: ClientSource) -> TallyGraphQLClient:
    return client() if callable(client) else client


async def _render_boundary(
    uri: str,
    error_title: str,
    error_context: str,
    render: Callable[[], Awaitable[str]],
) -> ResourceDocument:
    """Run ``render`` and turn any failure into an error document for ``uri``."""
    try:
        text = await render()
    except TallyError as e:
        logger.warning("%s: %s", error_title, e.message)
        return ResourceDocument(uri, _error_markdown(error_title, e.message, error_context), True)
    except Exception as e:
        logger.exception("%s (%s)", error_title, uri)
        return ResourceDocument(uri, _error_markdown(error_title, str(e) or "Unknown error", error_context), True)
    return ResourceDocument(uri, text)


def _error_markdown(title: str, message: str, context: str) -> str:
    return f"# {title}\n\n**Error:** {message}\n\n*{context}*"


# ---------------------------------------------------------------------------
# Organization overview
# ---------------------------------------------------------------------------


async def get_organization_overview(
    client: ClientSource, organization_id: str
) -> ResourceDocument:
    async def render() -> str:
        raw = await tools.get_organization(_resolve(client), organization_id=organization_id)
        if not raw:
            raise NotFoundError(f"Organization with ID {organization_id} not found")
        return render_organization(Organization.from_dict(raw))

    return await _render_boundary(
        organization_uri(organization_id),
        "Error Loading Organization",
        f"Organization ID: {organization_id}",
        render,
    )


def _number_or_na(value) -> str:
    return "N/A" if value is None else format_number(value)


def render_organization(org: Organization) -> str:
    lines = [f"# {org.name}", ""]

    if org.description:
        lines += [f"**Description:** {org.description}", ""]

    lines += [
        "## 📊 Key Metrics",
        "",
        f"- **Members:** {_number_or_na(org.member_count)}",
        f"- **Total Proposals:** {_number_or_na(org.total_proposals)}",
        f"- **Active Proposals:** {_number_or_na(org.active_proposals)}",
        f"- **Chain:** {org.chain_id or 'N/A'}",
        "",
    ]

    activity = "🟢 Active proposals ongoing" if org.has_active_proposals else "🔵 No active proposals"
    lines += ["## 🏛️ Governance Status", "", f"**Current Activity:** {activity}", ""]

    links = []
    if org.website:
        links.append(f"[Website]({org.website})")
    if org.twitter:
        links.append(f"[Twitter]({org.twitter})")
    if org.github:
        links.append(f"[GitHub]({org.github})")
    if links:
        lines += ["## 🔗 Links", "", " • ".join(links), ""]

    lines += [
        "---",
        f"*Data from Tally API • Organization ID: {org.id} • Slug: {org.slug}*",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Proposal overview
# ---------------------------------------------------------------------------


async def get_proposal_overview(
    client: ClientSource, organization_id: str, proposal_id: str
) -> ResourceDocument:
    async def render() -> str:
        raw = await tools.get_proposal(
            _resolve(client), proposal_id=proposal_id, organization_id=organization_id
        )
        if not raw:
            raise NotFoundError(
                f"Proposal with ID {proposal_id} not found in organization {organization_id}"
            )
        return render_proposal(Proposal.from_dict(raw), organization_id, proposal_id)

    return await _render_boundary(
        proposal_uri(organization_id, proposal_id),
        "Error Loading Proposal",
        f"Organization ID: {organization_id} • Proposal ID: {proposal_id}",
        render,
    )


def render_proposal(proposal: Proposal, organization_id: str, proposal_id: str) -> str:
    lines = [f"# {status_glyph(proposal.status)} {proposal.title or UNTITLED}", ""]

    if proposal.organization_name:
        lines += [f"**Organization:** {proposal.organization_name}", ""]

    lines += [
        "## 📋 Proposal Details",
        "",
        f"- **Status:** {format_status(proposal.status)}",
        f"- **Proposal ID:** {proposal_id}",
    ]
    if proposal.proposer_address:
        lines.append(f"- **Proposer:** `{proposal.proposer_address}`")
    if proposal.start_time:
        lines.append(f"- **Start Time:** {format_date(proposal.start_time)}")
    if proposal.end_time:
        lines.append(f"- **End Time:** {format_date(proposal.end_time)}")
    lines.append("")

    if proposal.description:
        lines += ["## 📄 Description", "", truncate(proposal.description, DESCRIPTION_LIMIT), ""]

    stats = proposal.voting_stats
    if stats is not None:
        lines += ["## 🗳️ Voting Results", ""]
        if stats.for_votes is not None:
            lines.append(f"- **For:** {format_votes(stats.for_votes)}")
        if stats.against is not None:
            lines.append(f"- **Against:** {format_votes(stats.against)}")
        if stats.abstain is not None:
            lines.append(f"- **Abstain:** {format_votes(stats.abstain)}")
        if stats.total is not None:
            lines.append(f"- **Total Votes:** {format_votes(stats.total)}")
        lines.append("")

    execution = proposal.execution
    if execution is not None:
        lines += ["## ⚙️ Execution", ""]
        if execution.executed:
            lines.append("✅ **Status:** Executed")
            if execution.executed_at:
                lines.append(f"- **Executed At:** {format_date(execution.executed_at)}")
        else:
            lines.append("⏳ **Status:** Not executed")
        lines.append("")

    if proposal.action_count > 0:
        lines += [
            "## 🎯 Actions",
            "",
            f"This proposal contains **{proposal.action_count}** action(s) to be executed.",
            "",
        ]

    lines += [
        "---",
        f"*Data from Tally API • Organization ID: {organization_id} • Proposal ID: {proposal_id}*",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Trending proposals
# ---------------------------------------------------------------------------


async def get_trending_proposals_overview(
    client: ClientSource, now: datetime | None = None
) -> ResourceDocument:
    async def render() -> str:
        data = await tools.get_active_proposals(_resolve(client), page_size=TRENDING_PAGE_SIZE)
        if not data or data.get("proposals") is None:
            raise NotFoundError("No active proposals data available")
        proposals = [Proposal.from_dict(p) for p in data["proposals"]]
        return render_trending(proposals, now or utcnow())

    return await _render_boundary(
        TRENDING_URI,
        "Error Loading Trending Proposals",
        "Unable to fetch active governance activity",
        render,
    )


def group_by_organization(proposals: list[Proposal]) -> list[tuple[str, list[Proposal]]]:
    """Group by organization name, largest group first (ties keep first-seen order)."""
    groups: dict[str, list[Proposal]] = {}
    for p in proposals:
        groups.setdefault(p.organization_name or UNKNOWN_DAO, []).append(p)
    return sorted(groups.items(), key=lambda item: len(item[1]), reverse=True)


def _render_trending_item(p: Proposal, now: datetime) -> list[str]:
    title = truncate(p.title or UNTITLED, TRENDING_TITLE_LIMIT)
    lines = [f"#### {status_glyph(p.status)} {title}", ""]
    if p.end_time:
        lines.append(f"- **Voting Ends:** {format_relative_date(p.end_time, now)}")
    if p.voting_stats is not None and p.voting_stats.total is not None:
        total = to_number(p.voting_stats.total)
        if total is not None and total > 0:
            lines.append(f"- **Total Votes:** {format_votes(p.voting_stats.total)}")
    if p.proposer_address:
        lines.append(f"- **Proposer:** `{p.proposer_address[:PROPOSER_PREFIX_LEN]}...`")
    lines.append("")
    return lines


def render_trending(proposals: list[Proposal], now: datetime) -> str:
    lines = [
        "# 🔥 Trending Governance Activity",
        "",
        f"**{len(proposals)} Active Proposal(s) Across All DAOs**",
        "",
    ]

    if not proposals:
        lines += [
            "*No active proposals found at this time.*",
            "",
            "Check back later for ongoing governance activity!",
            "",
        ]
    else:
        groups = group_by_organization(proposals)
        lines += [
            "## 📊 Activity Summary",
            "",
            f"- **Active DAOs:** {len(groups)}",
            f"- **Total Active Proposals:** {len(proposals)}",
            "",
            "## 🏛️ Active Proposals by DAO",
            "",
        ]
        for org_name, org_proposals in groups:
            count = len(org_proposals)
            noun = "proposal" if count == 1 else "proposals"
            lines += [f"### {org_name} ({count} {noun})", ""]
            for p in org_proposals:
                lines += _render_trending_item(p, now)

        lines += [
            "## 🗳️ Get Involved",
            "",
            "These proposals are currently accepting votes! Visit the respective DAO "
            "platforms to participate in governance.",
            "",
        ]

    lines += ["---", f"*Data from Tally API • Updated: {format_timestamp(now)}*"]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# User overview
# ---------------------------------------------------------------------------


async def get_user_overview(client: ClientSource, address: str) -> ResourceDocument:
    async def render() -> str:
        raw = await user_tools.get_user_profile(
            _resolve(client), address=address, page_size=USER_PAGE_SIZE
        )
        if not raw:
            raise NotFoundError(f"User profile not found for address {address}")
        return render_user(UserProfile.from_dict(raw), address)

    return await _render_boundary(
        user_uri(address), "Error Loading User Profile", f"Address: {address}", render
    )


def render_user(profile: UserProfile, address: str) -> str:
    lines = [f"# 👤 {profile.display_name}", "", "## 📋 Profile Details", ""]
    lines.append(f"- **Address:** `{address}`")
    if profile.ens:
        lines.append(f"- **ENS:** {profile.ens}")
    if profile.twitter:
        handle = profile.twitter.lstrip("@")
        lines.append(f"- **Twitter:** [@{handle}](https://twitter.com/{handle})")
    lines.append("")

    lines += ["## 🏛️ DAO Participation", ""]
    participations = profile.participations
    if not participations:
        lines += ["*No DAO participation found for this address.*", ""]
    else:
        lines += [f"**Active in {len(participations)} DAO(s):**", ""]
        for p in participations:
            role = " (Delegate)" if p.is_delegate else ""
            power = "N/A" if p.voting_power is None else format_voting_power(p.voting_power)
            if p.token_symbol and p.voting_power is not None:
                power = f"{power} {p.token_symbol}"
            lines += [f"### {p.organization_name or UNKNOWN_DAO}{role}", ""]
            lines.append(f"- **Voting Power:** {power}")
            if p.delegators_count is not None:
                lines.append(f"- **Delegators:** {format_number(p.delegators_count)}")
            if p.has_statement:
                lines.append("- **Delegate Statement:** Available")
            lines.append("")

        delegate_roles = sum(1 for p in participations if p.is_delegate)
        delegators = sum(p.delegators_count or 0 for p in participations)
        lines += [
            "## 📊 Activity Summary",
            "",
            f"- **Delegate Roles:** {delegate_roles}",
            f"- **Total Delegators:** {format_number(delegators)}",
            f"- **DAOs Participated:** {len(participations)}",
            "",
        ]

    if profile.bio:
        lines += ["## 📝 Bio", "", profile.bio, ""]

    lines += ["---", f"*Data from Tally API • Address: {address}*"]
    return "\n".join(lines)
