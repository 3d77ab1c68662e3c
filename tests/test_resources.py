from datetime import datetime, timedelta, timezone

import pytest

from tally_mcp import tools, user_tools
from tally_mcp.errors import AuthenticationError, GraphQLNetworkError
from tally_mcp.models import Organization, Participation, Proposal, UserProfile
from tally_mcp.resources import (
    TRENDING_URI,
    get_organization_overview,
    get_proposal_overview,
    get_trending_proposals_overview,
    get_user_overview,
    group_by_organization,
    render_organization,
    render_proposal,
    render_user,
)

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _returning(value):
    async def fake(client, **kwargs):
        return value

    return fake


def _raising(exc):
    async def fake(client, **kwargs):
        raise exc

    return fake


# ---------------------------------------------------------------------------
# Organization overview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_organization_overview(monkeypatch, org_dict):
    monkeypatch.setattr(tools, "get_organization", _returning(org_dict))
    doc = await get_organization_overview(None, "2206072050458560434")

    assert doc.uri == "tally://org/2206072050458560434"
    assert doc.mime_type == "text/markdown"
    assert doc.is_error is False
    assert doc.text.startswith("# Uniswap\n")
    assert "**Description:** Uniswap governance" in doc.text
    assert "- **Members:** 45,678" in doc.text
    assert "- **Total Proposals:** 1,234" in doc.text
    assert "- **Chain:** eip155:1" in doc.text
    assert "🟢 Active proposals ongoing" in doc.text
    assert "[Website](https://uniswap.org) • [GitHub](https://github.com/Uniswap)" in doc.text
    assert "Twitter" not in doc.text
    assert doc.text.endswith("*Data from Tally API • Organization ID: 2206072050458560434 • Slug: uniswap*")


def test_organization_missing_fields_render_na():
    text = render_organization(Organization(id="1", slug="x", name="X"))
    assert "- **Members:** N/A" in text
    assert "- **Total Proposals:** N/A" in text
    assert "- **Active Proposals:** N/A" in text
    assert "- **Chain:** N/A" in text
    assert "🔵 No active proposals" in text
    assert "## 🔗 Links" not in text
    assert "**Description:**" not in text


def test_organization_zero_active_proposals():
    text = render_organization(Organization(id="1", slug="x", name="X", active_proposals=0))
    assert "- **Active Proposals:** 0" in text
    assert "🔵 No active proposals" in text


@pytest.mark.asyncio
async def test_organization_not_found(monkeypatch):
    monkeypatch.setattr(tools, "get_organization", _returning(None))
    doc = await get_organization_overview(None, "999")
    assert doc.uri == "tally://org/999"
    assert doc.is_error is True
    assert doc.text.startswith("# Error Loading Organization")
    assert "Organization with ID 999 not found" in doc.text
    assert "*Organization ID: 999*" in doc.text


@pytest.mark.asyncio
async def test_organization_fetch_failure(monkeypatch):
    monkeypatch.setattr(tools, "get_organization", _raising(GraphQLNetworkError("HTTP 502: Bad Gateway", 502)))
    doc = await get_organization_overview(None, "5")
    assert doc.uri == "tally://org/5"
    assert doc.text.startswith("# Error Loading Organization")
    assert "**Error:** HTTP 502: Bad Gateway" in doc.text


# ---------------------------------------------------------------------------
# Proposal overview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_proposal_overview(monkeypatch, proposal_dict):
    monkeypatch.setattr(tools, "get_proposal", _returning(proposal_dict))
    doc = await get_proposal_overview(None, "2206072050458560434", "42")

    assert doc.uri == "tally://org/2206072050458560434/proposal/42"
    assert doc.text.startswith("# 🗳️ Deploy Uniswap v4\n")
    assert "**Organization:** Uniswap" in doc.text
    assert "- **Status:** Active" in doc.text
    assert "- **Proposal ID:** 42" in doc.text
    assert "- **Proposer:** `0x1234567890abcdef1234567890abcdef12345678`" in doc.text
    assert "- **End Time:** January 15, 2024, 02:30 PM" in doc.text
    assert "- **For:** 2.5M" in doc.text
    assert "- **Against:** 1.5K" in doc.text
    assert "- **Abstain:** 0" in doc.text
    assert "- **Total Votes:** 2.5M" in doc.text
    assert "⏳ **Status:** Not executed" in doc.text
    assert "This proposal contains **2** action(s) to be executed." in doc.text


def test_proposal_title_fallbacks():
    assert render_proposal(Proposal(id="1", title="B"), "o", "1").startswith("# 📋 B")
    assert render_proposal(Proposal(id="1"), "o", "1").startswith("# 📋 Untitled Proposal")
    assert "- **Status:** Unknown" in render_proposal(Proposal(id="1"), "o", "1")


def test_proposal_description_cap():
    text = render_proposal(Proposal(id="1", description="x" * 501), "o", "1")
    assert "x" * 500 + "...\n" in text
    assert "x" * 501 not in text

    text = render_proposal(Proposal(id="1", description="y" * 500), "o", "1")
    assert "y" * 500 + "\n" in text
    assert "y" * 500 + "..." not in text


def test_proposal_optional_sections_omitted():
    text = render_proposal(Proposal(id="1"), "o", "1")
    assert "Voting Results" not in text
    assert "Execution" not in text
    assert "Actions" not in text
    assert "Description" not in text


def test_proposal_executed():
    p = Proposal.from_dict(
        {"status": "executed", "executionDetails": {"executed": True, "executedAt": "2024-02-01T10:00:00"}}
    )
    text = render_proposal(p, "o", "1")
    assert text.startswith("# ⚡ ")
    assert "✅ **Status:** Executed" in text
    assert "- **Executed At:** February 1, 2024, 10:00 AM" in text


@pytest.mark.asyncio
async def test_proposal_not_found(monkeypatch):
    monkeypatch.setattr(tools, "get_proposal", _returning(None))
    doc = await get_proposal_overview(None, "7", "99")
    assert doc.uri == "tally://org/7/proposal/99"
    assert doc.text.startswith("# Error Loading Proposal")
    assert "Proposal with ID 99 not found in organization 7" in doc.text
    assert "*Organization ID: 7 • Proposal ID: 99*" in doc.text


@pytest.mark.asyncio
async def test_proposal_unexpected_error_still_renders(monkeypatch):
    monkeypatch.setattr(tools, "get_proposal", _raising(KeyError("metadata")))
    doc = await get_proposal_overview(None, "7", "99")
    assert doc.uri == "tally://org/7/proposal/99"
    assert doc.is_error is True
    assert doc.text.startswith("# Error Loading Proposal")


# ---------------------------------------------------------------------------
# Trending proposals
# ---------------------------------------------------------------------------


def _active(org_name, title, hours_left=30, total="0", proposer="0xabcdef0123456789"):
    return {
        "id": title,
        "title": title,
        "status": "active",
        "endTime": (NOW + timedelta(hours=hours_left)).isoformat(),
        "proposer": {"address": proposer},
        "organization": {"name": org_name} if org_name else {},
        "votingStats": {"for": "0", "against": "0", "abstain": "0", "total": total},
    }


def test_grouping_orders_by_size_stably():
    raw = [
        _active("A", "a1"),
        _active("B", "b1"),
        _active("C", "c1"),
        _active("B", "b2"),
        _active("A", "a2"),
        _active("B", "b3"),
    ]
    groups = group_by_organization([Proposal.from_dict(p) for p in raw])
    assert [name for name, _ in groups] == ["B", "A", "C"]
    assert [p.title for p in groups[0][1]] == ["b1", "b2", "b3"]


def test_grouping_ties_keep_first_seen_order():
    raw = [_active("X", "x1"), _active("Y", "y1"), _active(None, "u1")]
    groups = group_by_organization([Proposal.from_dict(p) for p in raw])
    assert [name for name, _ in groups] == ["X", "Y", "Unknown DAO"]


@pytest.mark.asyncio
async def test_trending_overview(monkeypatch):
    data = {
        "proposals": [
            _active("Arbitrum", "Short title", hours_left=30, total="1500"),
            _active("Uniswap", "T" * 90, hours_left=-2),
            _active("Arbitrum", "Second", hours_left=100),
        ]
    }
    seen = {}

    async def fake(client, **kwargs):
        seen.update(kwargs)
        return data

    monkeypatch.setattr(tools, "get_active_proposals", fake)
    doc = await get_trending_proposals_overview(None, now=NOW)

    assert seen["page_size"] == 20
    assert doc.uri == TRENDING_URI == "tally://trending/proposals"
    text = doc.text
    assert "**3 Active Proposal(s) Across All DAOs**" in text
    assert "- **Active DAOs:** 2" in text
    assert "### Arbitrum (2 proposals)" in text
    assert "### Uniswap (1 proposal)" in text
    assert text.index("### Arbitrum") < text.index("### Uniswap")
    assert "#### 🗳️ " + "T" * 80 + "...\n" in text
    assert "- **Voting Ends:** Tomorrow" in text
    assert "- **Voting Ends:** Ended" in text
    assert "- **Voting Ends:** In 4 days" in text
    assert text.count("- **Total Votes:**") == 1
    assert "- **Total Votes:** 1.5K" in text
    assert "- **Proposer:** `0xabcdef01...`" in text
    assert "## 🗳️ Get Involved" in text
    assert "*Data from Tally API • Updated: " in text


@pytest.mark.asyncio
async def test_trending_empty_list_is_success(monkeypatch):
    monkeypatch.setattr(tools, "get_active_proposals", _returning({"proposals": []}))
    doc = await get_trending_proposals_overview(None, now=NOW)
    assert doc.is_error is False
    assert "**0 Active Proposal(s) Across All DAOs**" in doc.text
    assert "*No active proposals found at this time.*" in doc.text
    assert "Get Involved" not in doc.text


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [None, {}, {"proposals": None}])
async def test_trending_missing_data_is_error(monkeypatch, data):
    monkeypatch.setattr(tools, "get_active_proposals", _returning(data))
    doc = await get_trending_proposals_overview(None, now=NOW)
    assert doc.uri == TRENDING_URI
    assert doc.is_error is True
    assert doc.text.startswith("# Error Loading Trending Proposals")
    assert "No active proposals data available" in doc.text
    assert "*Unable to fetch active governance activity*" in doc.text


@pytest.mark.asyncio
async def test_trending_fetch_failure(monkeypatch):
    monkeypatch.setattr(
        tools, "get_active_proposals", _raising(GraphQLNetworkError("HTTP 503: Service Unavailable", 503))
    )
    doc = await get_trending_proposals_overview(None, now=NOW)
    assert doc.uri == TRENDING_URI
    assert doc.is_error is True
    assert doc.text.startswith("# Error Loading Trending Proposals")
    assert "**Error:** HTTP 503: Service Unavailable" in doc.text


@pytest.mark.asyncio
async def test_client_factory_failure_renders_error_document():
    def no_client():
        raise AuthenticationError("Invalid API key")

    doc = await get_organization_overview(no_client, "7")
    assert doc.uri == "tally://org/7"
    assert doc.is_error is True
    assert "**Error:** Invalid API key" in doc.text


# ---------------------------------------------------------------------------
# User overview
# ---------------------------------------------------------------------------

ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"


def _profile_dict():
    return {
        "address": ADDRESS,
        "name": "alice",
        "ens": "alice.eth",
        "twitter": "@alice",
        "bio": "Governance nerd",
        "daoParticipations": [
            {"organization": {"id": "2", "name": "Aave"}, "token": {"symbol": "AAVE"}, "votes": "1500"},
        ],
        "delegateParticipations": [
            {
                "organization": {"id": "1", "name": "Uniswap"},
                "votesCount": "2500000",
                "delegatorsCount": 1200,
                "tokenInfo": {"symbol": "UNI"},
                "statement": {"statement": "hello"},
            },
        ],
    }


@pytest.mark.asyncio
async def test_user_overview(monkeypatch):
    monkeypatch.setattr(user_tools, "get_user_profile", _returning(_profile_dict()))
    doc = await get_user_overview(None, ADDRESS)
    assert doc.uri == f"tally://user/{ADDRESS}"
    assert doc.is_error is False

    text = doc.text
    assert text.startswith("# 👤 alice")
    assert f"- **Address:** `{ADDRESS}`" in text
    assert "- **ENS:** alice.eth" in text
    assert "- **Twitter:** [@alice](https://twitter.com/alice)" in text
    assert "**Active in 2 DAO(s):**" in text
    assert "### Uniswap (Delegate)" in text
    assert "- **Voting Power:** 2.50M UNI" in text
    assert "- **Delegators:** 1,200" in text
    assert "- **Delegate Statement:** Available" in text
    assert "### Aave\n" in text
    assert "- **Voting Power:** 1.50K AAVE" in text
    assert "- **Delegate Roles:** 1" in text
    assert "- **Total Delegators:** 1,200" in text
    assert "## 📝 Bio\n\nGovernance nerd" in text
    assert text.endswith(f"*Data from Tally API • Address: {ADDRESS}*")


def test_user_without_participation():
    text = render_user(UserProfile(address=ADDRESS), ADDRESS)
    assert text.startswith("# 👤 Anonymous User")
    assert "*No DAO participation found for this address.*" in text
    assert "Activity Summary" not in text
    assert "Bio" not in text


def test_user_participation_without_power():
    profile = UserProfile(address=ADDRESS, participations=[Participation("9", "", token_symbol="X")])
    text = render_user(profile, ADDRESS)
    assert "### Unknown DAO" in text
    assert "- **Voting Power:** N/A\n" in text


@pytest.mark.asyncio
async def test_user_not_found(monkeypatch):
    monkeypatch.setattr(user_tools, "get_user_profile", _returning(None))
    doc = await get_user_overview(None, ADDRESS)
    assert doc.uri == f"tally://user/{ADDRESS}"
    assert doc.is_error is True
    assert doc.text.startswith("# Error Loading User Profile")
    assert f"User profile not found for address {ADDRESS}" in doc.text
    assert f"*Address: {ADDRESS}*" in doc.text
