"""Organization and proposal lookups against the Tally GraphQL API.

Each function returns plain JSON-friendly dicts (or None when the entity
does not exist) so the MCP tools can dump them directly and the resource
renderers can build records from them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from tally_mcp.errors import NotFoundError, RateLimitError, TallyError, ValidationError
from tally_mcp.graphql_client import TallyGraphQLClient

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
VOTABLE_STATUSES = ("active", "extended")
SORT_FIELDS = ("id", "name", "explore", "popular")

# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

ORGANIZATION_FIELDS = """
    id
    name
    slug
    chainIds
    governorIds
    proposalsCount
    delegatesCount
    hasActiveProposals
    metadata {
      description
    }
"""

LIST_ORGANIZATIONS_QUERY = f"""
query ListOrganizations($pageSize: Int!, $filters: OrganizationsFiltersInput, $sort: OrganizationsSortInput) {{
  organizations(input: {{ filters: $filters, sort: $sort, page: {{ limit: $pageSize }} }}) {{
    nodes {{
      ... on Organization {{
{ORGANIZATION_FIELDS}
      }}
    }}
    pageInfo {{
      count
    }}
  }}
}}
"""

GET_ORGANIZATION_QUERY = """
query GetOrganization($organizationId: IntID, $organizationSlug: String) {
  organization(input: { id: $organizationId, slug: $organizationSlug }) {
    id
    name
    slug
    chainIds
    governorIds
    proposalsCount
    delegatesCount
    hasActiveProposals
    metadata {
      description
      icon
    }
    creator {
      address
      safes
    }
  }
}
"""

PROPOSAL_FIELDS = """
    id
    onchainId
    status
    metadata {
      title
      description
    }
    organization {
      id
      name
      slug
    }
    proposer {
      address
      name
    }
    voteStats {
      type
      votesCount
      percent
    }
    start {
      ... on Block { timestamp }
      ... on BlocklessTimestamp { timestamp }
    }
    end {
      ... on Block { timestamp }
      ... on BlocklessTimestamp { timestamp }
    }
"""

GET_PROPOSAL_QUERY = f"""
query GetProposal($proposalId: IntID!) {{
  proposal(input: {{ id: $proposalId }}) {{
{PROPOSAL_FIELDS}
    creator {{
      address
      name
    }}
    executableCalls {{
      target
      value
      signature
      calldata
    }}
  }}
}}
"""

ORG_PROPOSALS_QUERY = f"""
query GetProposalsForOrg($organizationId: IntID!, $pageSize: Int!, $sort: ProposalsSortInput) {{
  proposals(input: {{ filters: {{ organizationId: $organizationId }}, sort: $sort, page: {{ limit: $pageSize }} }}) {{
    nodes {{
      ... on Proposal {{
{PROPOSAL_FIELDS}
      }}
    }}
    pageInfo {{
      count
    }}
  }}
}}
"""

# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _check_page_size(page_size: int) -> None:
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}", {"page_size": page_size}
        )


def _require_id(name: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required", {name: value})
    return str(value).strip()


def _organization_to_dict(org: dict) -> dict:
    chain_ids = org.get("chainIds") or []
    return {
        "id": org.get("id"),
        "name": org.get("name"),
        "slug": org.get("slug"),
        "chainId": chain_ids[0] if chain_ids else "",
        "description": (org.get("metadata") or {}).get("description") or "",
        "proposalStats": {
            "total": org.get("proposalsCount"),
            "active": 1 if org.get("hasActiveProposals") else 0,
        },
        "memberCount": org.get("delegatesCount"),
        "governorIds": org.get("governorIds") or [],
    }


def _votes_of(vote_stats: list[dict], vote_type: str) -> str:
    for v in vote_stats:
        if v.get("type") == vote_type:
            return str(v.get("votesCount") or "0")
    return "0"


def _voting_stats(vote_stats: list[dict] | None) -> dict:
    stats = vote_stats or []
    total = 0
    for v in stats:
        try:
            total += int(v.get("votesCount") or 0)
        except (TypeError, ValueError):
            continue
    return {
        "for": _votes_of(stats, "for"),
        "against": _votes_of(stats, "against"),
        "abstain": _votes_of(stats, "abstain"),
        "total": str(total),
    }


def _timestamp(block: dict | None) -> str:
    return (block or {}).get("timestamp") or ""


def _proposal_to_dict(p: dict, fallback_org: dict | None = None) -> dict:
    metadata = p.get("metadata") or {}
    org = p.get("organization") or {}
    fallback_org = fallback_org or {}
    proposer = p.get("proposer") or p.get("creator") or {}
    return {
        "id": p.get("id"),
        "onchainId": p.get("onchainId"),
        "title": metadata.get("title") or "",
        "description": metadata.get("description") or "",
        "status": p.get("status"),
        "startTime": _timestamp(p.get("start")),
        "endTime": _timestamp(p.get("end")),
        "proposer": {
            "address": proposer.get("address") or "",
            "name": proposer.get("name") or "",
        },
        "organization": {
            "id": org.get("id") or fallback_org.get("id") or "",
            "name": org.get("name") or fallback_org.get("name") or "",
            "slug": org.get("slug") or fallback_org.get("slug") or "",
        },
        "votingStats": _voting_stats(p.get("voteStats")),
    }


def _end_time_key(proposal: dict) -> datetime:
    try:
        dt = datetime.fromisoformat(proposal["endTime"])
    except (KeyError, TypeError, ValueError):
        return datetime.max.replace(tzinfo=timezone.utc)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


async def list_organizations(
    client: TallyGraphQLClient,
    page: int = 1,
    page_size: int = 20,
    chain_id: str | None = None,
    sort_by: str = "name",
    sort_order: str = "asc",
) -> dict:
    """List organizations with API-side filtering and sorting."""
    _check_page_size(page_size)
    if page < 1:
        raise ValidationError("page must be >= 1", {"page": page})
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of {', '.join(SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be 'asc' or 'desc'")

    filters = {"chainId": chain_id} if chain_id else None
    data = await client.query(
        LIST_ORGANIZATIONS_QUERY,
        {
            "pageSize": page_size,
            "filters": filters,
            "sort": {"sortBy": sort_by, "isDescending": sort_order == "desc"},
        },
    )
    result = data.get("organizations") or {}
    orgs = [_organization_to_dict(o) for o in result.get("nodes") or []]
    return {
        "organizations": orgs,
        "pagination": {
            "totalCount": (result.get("pageInfo") or {}).get("count") or 0,
            "currentPage": page,
            "pageSize": page_size,
            "hasPreviousPage": page > 1,
        },
    }


async def get_organization(
    client: TallyGraphQLClient,
    organization_id: str | None = None,
    organization_slug: str | None = None,
) -> dict | None:
    """Fetch one organization by id or slug (exactly one). Returns None if unknown."""
    has_id = bool(organization_id and str(organization_id).strip())
    has_slug = bool(organization_slug and organization_slug.strip())
    if has_id == has_slug:
        raise ValidationError(
            "Either organization_id or organization_slug must be provided, but not both"
        )

    data = await client.query(
        GET_ORGANIZATION_QUERY,
        {
            "organizationId": str(organization_id).strip() if has_id else None,
            "organizationSlug": organization_slug.strip() if has_slug else None,
        },
    )
    org = data.get("organization")
    if not org:
        return None

    result = _organization_to_dict(org)
    result["safes"] = (org.get("creator") or {}).get("safes") or []
    # not exposed by the Tally API
    result["website"] = None
    result["twitter"] = None
    result["github"] = None
    return result


async def get_organizations_with_active_proposals(
    client: TallyGraphQLClient,
    page_size: int = 20,
    chain_id: str | None = None,
) -> dict:
    """Organizations with live votes, using the API's ``explore`` ordering."""
    _check_page_size(page_size)
    data = await client.query(
        LIST_ORGANIZATIONS_QUERY,
        {
            "pageSize": page_size,
            "filters": {"chainId": chain_id} if chain_id else None,
            "sort": {"sortBy": "explore", "isDescending": True},
        },
    )
    nodes = (data.get("organizations") or {}).get("nodes") or []
    orgs = [_organization_to_dict(o) for o in nodes if o.get("hasActiveProposals")]
    return {"organizations": orgs, "totalCount": len(orgs)}


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


async def list_proposals(
    client: TallyGraphQLClient,
    organization_id: str,
    page_size: int = 20,
    sort_order: str = "desc",
) -> dict:
    """Most recent proposals for one organization."""
    organization_id = _require_id("organization_id", organization_id)
    _check_page_size(page_size)
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be 'asc' or 'desc'")

    data = await client.query(
        ORG_PROPOSALS_QUERY,
        {
            "organizationId": organization_id,
            "pageSize": page_size,
            "sort": {"sortBy": "id", "isDescending": sort_order == "desc"},
        },
    )
    result = data.get("proposals") or {}
    proposals = [_proposal_to_dict(p) for p in result.get("nodes") or []]
    return {
        "proposals": proposals,
        "totalCount": (result.get("pageInfo") or {}).get("count") or len(proposals),
    }


async def get_proposal(
    client: TallyGraphQLClient,
    proposal_id: str,
    organization_id: str | None = None,
) -> dict | None:
    """Fetch one proposal with vote totals and executable calls. None if unknown."""
    proposal_id = _require_id("proposal_id", proposal_id)
    data = await client.query(GET_PROPOSAL_QUERY, {"proposalId": proposal_id})
    p = data.get("proposal")
    if not p:
        return None

    org = p.get("organization") or {}
    if organization_id and org.get("id") and str(org["id"]) != str(organization_id):
        logger.warning(
            "Proposal %s belongs to organization %s, not %s",
            proposal_id, org["id"], organization_id,
        )

    result = _proposal_to_dict(p)
    calls = p.get("executableCalls") or []
    status = (p.get("status") or "").lower()
    result["executionDetails"] = {
        "status": p.get("status"),
        "executed": status == "executed",
        "executedAt": None,
    }
    result["actions"] = [
        {
            "id": str(i),
            "target": call.get("target"),
            "value": call.get("value"),
            "signature": call.get("signature"),
            "calldata": call.get("calldata"),
        }
        for i, call in enumerate(calls)
    ]
    return result


async def get_active_proposals(
    client: TallyGraphQLClient,
    page: int = 1,
    page_size: int = 20,
    organization_id: str | None = None,
) -> dict:
    """Proposals open for voting, soonest-ending first.

    Without an organization, scans the most active organizations and collects
    their votable proposals. One organization failing does not fail the scan.
    """
    _check_page_size(page_size)
    if page < 1:
        raise ValidationError("page must be >= 1", {"page": page})

    if organization_id:
        data = await client.query(
            ORG_PROPOSALS_QUERY,
            {"organizationId": str(organization_id).strip(), "pageSize": 50},
        )
        nodes = (data.get("proposals") or {}).get("nodes") or []
        votable = [_proposal_to_dict(p) for p in nodes if p.get("status") in VOTABLE_STATUSES]
        votable = votable[:page_size]
        return {
            "proposals": votable,
            "pagination": {
                "totalCount": len(votable),
                "currentPage": page,
                "pageSize": page_size,
                "hasNextPage": False,
            },
        }

    orgs_data = await client.query(
        LIST_ORGANIZATIONS_QUERY,
        {"pageSize": 50, "filters": None, "sort": {"sortBy": "explore", "isDescending": True}},
    )
    nodes = (orgs_data.get("organizations") or {}).get("nodes") or []
    active_orgs = [o for o in nodes if o.get("hasActiveProposals") is True]

    collected: list[dict] = []
    skipped = 0
    for i, org in enumerate(active_orgs):
        try:
            data = await client.query(
                ORG_PROPOSALS_QUERY, {"organizationId": org.get("id"), "pageSize": 5}
            )
        except RateLimitError:
            # every remaining query would hit the same limit
            skipped += len(active_orgs) - i
            break
        except TallyError as e:
            logger.debug("Failed to get proposals for org %s: %s", org.get("id"), e)
            skipped += 1
            continue
        for p in (data.get("proposals") or {}).get("nodes") or []:
            if p.get("status") in VOTABLE_STATUSES:
                collected.append(_proposal_to_dict(p, fallback_org=org))
    if skipped:
        logger.warning(
            "Skipped %d of %d organizations while collecting active proposals",
            skipped, len(active_orgs),
        )

    collected.sort(key=_end_time_key)
    start = (page - 1) * page_size
    end = start + page_size
    return {
        "proposals": collected[start:end],
        "pagination": {
            "totalCount": len(collected),
            "currentPage": page,
            "pageSize": page_size,
            "hasNextPage": end < len(collected),
        },
    }


# ---------------------------------------------------------------------------
# Popular DAOs
# ---------------------------------------------------------------------------

POPULAR_CHAIN_LIMIT = 8
POPULAR_PER_CHAIN = 10
POPULAR_TOTAL = 20

CHAINS_QUERY = """
query GetAllChains {
  chains {
    id
    name
    mediumName
    shortName
    isTestnet
    blockTime
  }
}
"""

CHAIN_ORGANIZATIONS_QUERY = """
query GetDAOsForChain($chainId: ChainID, $pageSize: Int!) {
  organizations(input: {
    filters: { chainId: $chainId },
    sort: { sortBy: popular, isDescending: true },
    page: { limit: $pageSize }
  }) {
    nodes {
      ... on Organization {
        id
        name
        slug
        chainIds
        proposalsCount
        delegatesCount
        hasActiveProposals
      }
    }
  }
}
"""


async def _popular_for_chain(client: TallyGraphQLClient, chain: dict) -> list[dict]:
    try:
        data = await client.query(
            CHAIN_ORGANIZATIONS_QUERY,
            {"chainId": chain["id"], "pageSize": POPULAR_PER_CHAIN},
        )
    except TallyError as e:
        logger.warning("Failed to load DAOs for chain %s: %s", chain["id"], e.message)
        return []
    return [
        {
            "id": org.get("id"),
            "name": org.get("name") or "",
            "slug": org.get("slug") or "",
            "chainId": chain["id"],
            "chainName": chain.get("mediumName"),
            "memberCount": org.get("delegatesCount") or 0,
            "delegateCount": org.get("delegatesCount") or 0,
            "proposalCount": org.get("proposalsCount") or 0,
            "hasActiveProposals": bool(org.get("hasActiveProposals")),
        }
        for org in (data.get("organizations") or {}).get("nodes") or []
    ]


async def get_popular_daos(client: TallyGraphQLClient) -> dict:
    """Top DAOs by delegate count across production chains, with lookup tables.

    Never raises for upstream failures: the result then has ``status: "error"``
    and an ``error_message``.
    """
    started = datetime.now(timezone.utc).isoformat()
    try:
        data = await client.query(CHAINS_QUERY, {})
        chains = data.get("chains")
        if not isinstance(chains, list) or not chains:
            raise NotFoundError("No chains found in API response")
        production = [c for c in chains if not c.get("isTestnet")]
        if not production:
            raise NotFoundError("No production chains found in API response")

        daos: list[dict] = []
        for chain in production[:POPULAR_CHAIN_LIMIT]:
            daos.extend(await _popular_for_chain(client, chain))
        if not daos:
            raise NotFoundError("No DAOs loaded from any production chain")
    except TallyError as e:
        logger.warning("Failed to load popular DAOs: %s", e.message)
        return popular_daos_error(e.message, started)

    daos.sort(key=lambda d: d["delegateCount"], reverse=True)
    daos = daos[:POPULAR_TOTAL]
    testnets = len(chains) - len(production)
    return {
        "status": "success",
        "description": "Top 20 DAOs by delegate count across all production networks, "
        "dynamically loaded from Tally API.",
        "total_count": len(daos),
        "chains_loaded": len({d["chainId"] for d in daos}),
        "total_chains_available": len(chains),
        "production_chains_available": len(production),
        "networks_included": [f"{c['id']} ({c.get('mediumName')})" for c in production],
        "daos": daos,
        "lookup_by_name": {d["name"].lower(): d for d in daos},
        "lookup_by_slug": {d["slug"]: d for d in daos},
        "lookup_by_id": {d["id"]: d for d in daos},
        "chains_by_id": {c["id"]: c for c in chains},
        "production_chains_by_id": {c["id"]: c for c in production},
        "last_updated": started,
        "note": f"Loaded live from Tally API. The top {POPULAR_TOTAL} DAOs by delegate count "
        f"come from {len(production)} production networks ({testnets} testnets excluded).",
    }


def popular_daos_error(message: str, started: str | None = None) -> dict:
    return {
        "status": "error",
        "description": "Failed to load popular DAOs from Tally API",
        "total_count": 0,
        "daos": [],
        "lookup_by_name": {},
        "lookup_by_slug": {},
        "lookup_by_id": {},
        "last_updated": started or datetime.now(timezone.utc).isoformat(),
        "error_message": message,
    }
