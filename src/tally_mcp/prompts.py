"""Governance analysis prompt templates.

Each prompt is a pure function of its string arguments that returns the text
of a single user message telling the model which server tools to call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from tally_mcp.errors import PromptNotFoundError, ValidationError


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str
    required: bool = True


@dataclass(frozen=True)
class PromptSpec:
    name: str
    description: str
    arguments: tuple[PromptArgument, ...]
    generate: Callable[..., str]


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def analyze_dao_governance(organization_id: str, include_comparison: str | None = None) -> str:
    compare_step = (
        "\n5. **Compare with Peers**: Use list_organizations to find similar DAOs for comparison"
        if include_comparison == "true"
        else ""
    )
    return f"""Analyze the governance health of organization {organization_id}. Please:

1. **Get Organization Overview**: Use get_organization to understand the DAO's basic info
2. **Check Active Governance**: Use get_active_proposals with organization_id to see current voting activity
3. **Analyze Delegate Distribution**: Use get_delegates to examine voting power distribution
4. **Review Recent Proposals**: Use list_proposals to understand proposal patterns and success rates

Focus on:
- Governance participation rates and trends
- Voting power concentration vs. decentralization
- Proposal quality and community engagement
- Delegate activity and representation
{compare_step}

Provide actionable insights about the DAO's governance strengths and areas for improvement."""


ASPECT_INSTRUCTIONS = {
    "overall": "Compare all governance aspects including participation, delegate distribution, proposal activity, and community engagement",
    "delegates": "Focus on delegate ecosystems: voting power distribution, delegate activity, and representation quality",
    "proposals": "Compare proposal patterns: success rates, types, community engagement, and voting participation",
    "activity": "Focus on governance activity levels: proposal frequency, voting participation, and community engagement trends",
}


def compare_dao_governance(dao1: str, dao2: str, aspect: str) -> str:
    instruction = ASPECT_INSTRUCTIONS.get(aspect, ASPECT_INSTRUCTIONS["overall"])
    return f"""Compare the governance of {dao1} and {dao2}, focusing on {aspect}.

**Step-by-step analysis:**

1. **Gather Data for Both DAOs**:
   - Use get_organization for each DAO to get basic metrics
   - Use get_delegates to analyze voting power distribution
   - Use list_proposals to review recent governance activity
   - Use get_active_proposals with organization_id to check current activity levels

2. **Analysis Focus**: {instruction}

3. **Comparison Framework**:
   - Quantitative metrics (member counts, proposal counts, voting participation)
   - Qualitative assessment (governance quality, community health)
   - Structural differences (governance models, voting mechanisms)

4. **Insights & Recommendations**:
   - Which DAO has stronger governance practices and why
   - What each DAO could learn from the other
   - Specific actionable recommendations for improvement

Present your findings in a clear, structured format with supporting data."""


def analyze_delegate_profile(address: str, organization_id: str | None = None) -> str:
    scope = f" in organization {organization_id}" if organization_id else " across all DAOs"
    if organization_id:
        step_two = (
            "2. **Specific DAO Analysis**: Use get_delegate_statement to get their "
            f"statement and positions in {organization_id}"
        )
    else:
        step_two = "2. **Cross-DAO Analysis**: Review their participation across multiple DAOs"
    return f"""Analyze the governance profile and activity of delegate {address}{scope}.

**Research Steps:**

1. **Get Delegate Overview**: Use get_user_profile to understand their overall DAO participation
{step_two}
3. **Voting Power Analysis**: Check their current voting power and delegation status
4. **Activity Assessment**: Evaluate their governance participation and engagement

**Analysis Framework:**
- **Governance Experience**: How long have they been active? Which DAOs?
- **Voting Power**: Current delegation and influence level
- **Participation Quality**: Voting consistency, proposal engagement
- **Community Standing**: Delegate statements, community recognition
- **Specialization**: Any particular focus areas or expertise

**Output**: Provide a comprehensive delegate profile that would help token holders make informed delegation decisions."""


TIMEFRAME_INSTRUCTIONS = {
    "current": "Focus on active proposals and immediate governance activity happening right now",
    "recent": "Analyze recent governance patterns and completed proposals from the past few weeks",
    "emerging": "Identify new DAOs, emerging governance patterns, and innovative approaches",
}


def discover_governance_trends(timeframe: str, category: str | None = None) -> str:
    instruction = TIMEFRAME_INSTRUCTIONS.get(timeframe, TIMEFRAME_INSTRUCTIONS["current"])
    scope = f" in the {category} category" if category and category != "all" else ""
    category_line = (
        f"- **{category[0].upper() + category[1:]} Specific**: Trends unique to {category} DAOs"
        if category
        else ""
    )
    return f"""Discover and analyze {timeframe} governance trends across the DAO ecosystem{scope}.

**Discovery Process:**

1. **Active Governance Scan**: Use get_organizations_with_active_proposals to find DAOs with active governance, then use get_active_proposals with specific organization_id to see current activity
2. **Organization Landscape**: Use list_organizations with explore sorting to find most active DAOs
3. **Delegate Ecosystem**: Use get_delegates across top DAOs to understand leadership trends
4. **Proposal Patterns**: Use list_proposals to analyze recent governance themes

**Analysis Focus**: {instruction}

**Trend Categories to Explore:**
- **Governance Innovation**: New voting mechanisms, delegation models, or participation incentives
- **Hot Topics**: Common themes across multiple DAO proposals
- **Participation Patterns**: Changes in voter engagement and delegate activity
- **Cross-DAO Movements**: Shared initiatives or coordinated governance actions
{category_line}

**Deliverable**: A trend report highlighting the most significant governance developments, with specific examples and data to support your findings."""


PARTICIPATION_GUIDANCE = {
    "observer": "- Focus on DAOs with transparent governance and educational resources",
    "voter": "- Look for DAOs with regular proposals and clear voting processes",
    "delegate": "- Identify DAOs needing quality delegates with growth opportunities",
    "contributor": "- Find DAOs with active working groups and contribution opportunities",
}


def find_dao_to_join(interests: str, participation_level: str, experience: str) -> str:
    interest_list = ", ".join(i.strip() for i in interests.split(","))
    guidance = "\n".join(
        text if level == participation_level else ""
        for level, text in PARTICIPATION_GUIDANCE.items()
    )
    return f"""Help find the best DAO(s) for someone interested in: {interest_list}, wanting to participate as a {participation_level}, with {experience} governance experience.

**Discovery Process:**

1. **DAO Landscape Survey**: Use list_organizations to explore available DAOs
2. **Activity Assessment**: Use get_organizations_with_active_proposals to find DAOs with healthy governance activity
3. **Community Analysis**: Use get_delegates to understand the delegate ecosystem and entry barriers
4. **Governance Culture**: Use list_proposals to assess proposal quality and community engagement

**Matching Criteria:**
- **Interest Alignment**: DAOs working in relevant areas ({interest_list})
- **Participation Opportunities**: Suitable for {participation_level} level engagement
- **Experience Fit**: Appropriate complexity for {experience} governance participants
- **Community Health**: Active, welcoming, and well-functioning governance

**For {participation_level}s specifically:**
{guidance}

**Recommendations**: Provide 3-5 specific DAO recommendations with rationale for each, including how to get started and what to expect."""


def analyze_proposal(organization_id: str, proposal_id: str) -> str:
    return f"""Provide a comprehensive analysis of proposal {proposal_id} in organization {organization_id}.

**Analysis Steps:**

1. **Proposal Details**: Use get_proposal to get full proposal information
2. **Organization Context**: Use get_organization to understand the DAO's background
3. **Voting Analysis**: Examine current voting patterns and participation
4. **Delegate Positions**: Use get_delegates to see how key delegates might vote
5. **Historical Context**: Use list_proposals to compare with similar past proposals

**Analysis Framework:**

**Proposal Overview:**
- What is being proposed and why?
- What are the potential impacts and implications?
- How does this fit into the DAO's broader strategy?

**Voting Dynamics:**
- Current voting trends and participation levels
- Key delegate positions and influence
- Likelihood of passage based on current data

**Risk Assessment:**
- Potential benefits and drawbacks
- Implementation challenges
- Community sentiment and concerns

**Recommendation:**
- Should token holders support this proposal?
- What questions should voters consider?
- How does this align with the DAO's long-term interests?

Provide a balanced, data-driven analysis that helps inform voting decisions."""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROMPTS: dict[str, PromptSpec] = {
    spec.name: spec
    for spec in (
        PromptSpec(
            "analyze-dao-governance",
            "Analyze the overall governance health of a DAO",
            (
                PromptArgument("organization_id", "The organization ID to analyze"),
                PromptArgument(
                    "include_comparison",
                    "Whether to compare with other similar DAOs (true/false)",
                    required=False,
                ),
            ),
            analyze_dao_governance,
        ),
        PromptSpec(
            "compare-dao-governance",
            "Compare governance metrics between two DAOs",
            (
                PromptArgument("dao1", "First DAO organization ID or slug"),
                PromptArgument("dao2", "Second DAO organization ID or slug"),
                PromptArgument(
                    "aspect",
                    "Specific aspect to focus the comparison on (overall, delegates, proposals, activity)",
                ),
            ),
            compare_dao_governance,
        ),
        PromptSpec(
            "analyze-delegate-profile",
            "Research and profile a specific delegate",
            (
                PromptArgument("address", "Ethereum address of the delegate"),
                PromptArgument(
                    "organization_id",
                    "Specific organization to focus on (optional)",
                    required=False,
                ),
            ),
            analyze_delegate_profile,
        ),
        PromptSpec(
            "discover-governance-trends",
            "Discover trending governance activity across the ecosystem",
            (
                PromptArgument(
                    "timeframe", "Time focus for trend analysis (current, recent, emerging)"
                ),
                PromptArgument(
                    "category",
                    "Category of DAOs to focus on (all, defi, infrastructure, social)",
                    required=False,
                ),
            ),
            discover_governance_trends,
        ),
        PromptSpec(
            "find-dao-to-join",
            "Help a user find the right DAO to participate in",
            (
                PromptArgument(
                    "interests",
                    'User interests or focus areas (comma-separated, e.g., "DeFi,gaming,social impact")',
                ),
                PromptArgument(
                    "participation_level",
                    "Desired level of participation (observer, voter, delegate, contributor)",
                ),
                PromptArgument(
                    "experience", "Governance experience level (beginner, intermediate, expert)"
                ),
            ),
            find_dao_to_join,
        ),
        PromptSpec(
            "analyze-proposal",
            "Analyze a specific proposal in detail",
            (
                PromptArgument("organization_id", "Organization ID where the proposal exists"),
                PromptArgument("proposal_id", "Specific proposal ID to analyze"),
            ),
            analyze_proposal,
        ),
    )
}


def get_prompt_spec(name: str) -> PromptSpec:
    try:
        return PROMPTS[name]
    except KeyError:
        raise PromptNotFoundError(name) from None


def render_prompt(name: str, params: dict[str, str | None]) -> dict:
    """Validate ``params`` against the named prompt and build its user message."""
    spec = get_prompt_spec(name)
    known = {arg.name for arg in spec.arguments}

    unknown = sorted(set(params) - known)
    if unknown:
        raise ValidationError(
            f"Unknown argument(s) for prompt '{name}': {', '.join(unknown)}",
            {"prompt": name, "unknown": unknown},
        )
    missing = [
        arg.name for arg in spec.arguments if arg.required and not params.get(arg.name)
    ]
    if missing:
        raise ValidationError(
            f"Missing required argument(s) for prompt '{name}': {', '.join(missing)}",
            {"prompt": name, "missing": missing},
        )
    for key, value in params.items():
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Argument '{key}' must be a string", {"prompt": name})

    text = spec.generate(**{k: v for k, v in params.items() if v is not None})
    return {"role": "user", "content": {"type": "text", "text": text}}
