import pytest

from tally_mcp.errors import PromptNotFoundError, ValidationError
from tally_mcp.prompts import PROMPTS, render_prompt


def _text(name, **params):
    message = render_prompt(name, params)
    assert message["role"] == "user"
    assert message["content"]["type"] == "text"
    return message["content"]["text"]


def test_catalog_names():
    assert set(PROMPTS) == {
        "analyze-dao-governance",
        "compare-dao-governance",
        "analyze-delegate-profile",
        "discover-governance-trends",
        "find-dao-to-join",
        "analyze-proposal",
    }


def test_analyze_dao_governance_comparison_toggle():
    without = _text("analyze-dao-governance", organization_id="123")
    assert "Analyze the governance health of organization 123." in without
    assert "Compare with Peers" not in without

    with_cmp = _text("analyze-dao-governance", organization_id="123", include_comparison="true")
    assert "5. **Compare with Peers**: Use list_organizations" in with_cmp


def test_compare_dao_governance_aspect_fallback():
    text = _text("compare-dao-governance", dao1="uniswap", dao2="aave", aspect="delegates")
    assert "Compare the governance of uniswap and aave, focusing on delegates." in text
    assert "Focus on delegate ecosystems" in text

    text = _text("compare-dao-governance", dao1="uniswap", dao2="aave", aspect="vibes")
    assert "Compare all governance aspects" in text


def test_analyze_delegate_profile_scope():
    text = _text("analyze-delegate-profile", address="0xabc")
    assert "delegate 0xabc across all DAOs." in text
    assert "Cross-DAO Analysis" in text

    text = _text("analyze-delegate-profile", address="0xabc", organization_id="9")
    assert "delegate 0xabc in organization 9." in text
    assert "positions in 9" in text


def test_discover_governance_trends_category():
    text = _text("discover-governance-trends", timeframe="recent", category="defi")
    assert "recent governance trends across the DAO ecosystem in the defi category." in text
    assert "- **Defi Specific**: Trends unique to defi DAOs" in text
    assert "completed proposals from the past few weeks" in text

    text = _text("discover-governance-trends", timeframe="current", category="all")
    assert "in the all category" not in text
    assert "- **All Specific**" in text

    text = _text("discover-governance-trends", timeframe="current")
    assert "Specific**" not in text


def test_find_dao_to_join():
    text = _text(
        "find-dao-to-join",
        interests="DeFi, gaming ,social impact",
        participation_level="voter",
        experience="beginner",
    )
    assert "interested in: DeFi, gaming, social impact, wanting to participate as a voter" in text
    assert "**For voters specifically:**" in text
    assert "regular proposals and clear voting processes" in text
    assert "working groups" not in text


def test_analyze_proposal():
    text = _text("analyze-proposal", organization_id="1", proposal_id="2")
    assert text.startswith("Provide a comprehensive analysis of proposal 2 in organization 1.")
    assert "Use get_proposal" in text


def test_unknown_prompt():
    with pytest.raises(PromptNotFoundError):
        render_prompt("write-a-poem", {})


def test_missing_required_argument():
    with pytest.raises(ValidationError, match="proposal_id"):
        render_prompt("analyze-proposal", {"organization_id": "1"})


def test_unknown_argument():
    with pytest.raises(ValidationError, match="colour"):
        render_prompt("analyze-proposal", {"organization_id": "1", "proposal_id": "2", "colour": "red"})
