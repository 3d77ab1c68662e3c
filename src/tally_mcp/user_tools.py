"""Delegate and user lookups against the Tally GraphQL API.

Vote counts stay in raw token units. Every result carries a reminder of how
to scale them with the token's decimals.
"""

from __future__ import annotations

import re

from tally_mcp.errors import ValidationError
from tally_mcp.graphql_client import TallyGraphQLClient
from tally_mcp.tools import _check_page_size, _require_id

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
DEFAULT_DECIMALS = 18
DELEGATE_SORT_FIELDS = ("id", "votes", "delegators", "isPrioritized")

DELEGATE_REMINDER = (
    "⚠️ IMPORTANT: All votesCount values are in raw token units. Use token "
    "decimals to convert: human-readable amount = raw value ÷ 10^decimals."
)
PROFILE_REMINDER = (
    "⚠️ IMPORTANT: All vote counts and delegation amounts are in raw token units. "
    "Use token decimals to convert: human-readable amount = raw value ÷ 10^decimals. "
    "DAO participations show delegated amounts, delegate participations show voting power."
)

# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

TOKEN_FIELDS = """
      token {
        id
        symbol
        name
        decimals
      }
"""

GET_DELEGATES_QUERY = f"""
query GetDelegates($organizationId: IntID!, $pageSize: Int!, $sortBy: DelegatesSortBy!, $isDescending: Boolean!) {{
  delegates(input: {{
    filters: {{ organizationId: $organizationId }},
    page: {{ limit: $pageSize }},
    sort: {{ sortBy: $sortBy, isDescending: $isDescending }}
  }}) {{
    nodes {{
      ... on Delegate {{
        id
        delegatorsCount
        votesCount
        isPrioritized
        chainId
        account {{
          id
          address
          name
          ens
          twitter
          bio
          picture
          type
        }}
        statement {{
          statement
          statementSummary
          isSeekingDelegation
        }}
        organization {{
          id
          name
          slug
        }}
{TOKEN_FIELDS}
      }}
    }}
    pageInfo {{
      firstCursor
      lastCursor
      count
    }}
  }}
}}
"""

GET_DAO_PARTICIPANTS_QUERY = f"""
query GetDAOParticipants($organizationId: IntID!, $pageSize: Int!) {{
  delegates(input: {{ filters: {{ organizationId: $organizationId }}, page: {{ limit: $pageSize }} }}) {{
    nodes {{
      ... on Delegate {{
        id
        delegatorsCount
        votesCount
        account {{
          address
          name
        }}
{TOKEN_FIELDS}
      }}
    }}
    pageInfo {{
      firstCursor
      lastCursor
      count
    }}
  }}
}}
"""

GET_USER_PROFILE_QUERY = f"""
query GetUserProfile($address: Address!, $pageSize: Int!) {{
  accountV2(id: $address) {{
    id
    address
    name
    bio
    twitter
    ens
    picture
  }}
  delegatees(input: {{ filters: {{ address: $address }}, page: {{ limit: $pageSize }} }}) {{
    nodes {{
      ... on Delegation {{
        id
        organization {{
          id
          name
          slug
        }}
        token {{
          symbol
          name
          decimals
        }}
        votes
      }}
    }}
  }}
  delegates(input: {{ filters: {{ address: $address }} }}) {{
    nodes {{
      ... on Delegate {{
        id
        organization {{
          id
          name
          slug
        }}
        statement {{
          statement
          statementSummary
          isSeekingDelegation
        }}
        votesCount
        delegatorsCount
{TOKEN_FIELDS}
      }}
    }}
  }}
}}
"""

GET_DELEGATE_STATEMENT_QUERY = """
query GetDelegateStatement($address: Address!, $organizationId: IntID!) {
  delegate(input: { address: $address, organizationId: $organizationId }) {
    id
    statement {
      statement
      statementSummary
      isSeekingDelegation
    }
    account {
      address
      name
    }
    organization {
      id
      name
      slug
    }
  }
}
"""

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_address(address: str | None) -> str:
    address = (address or "").strip()
    if not ADDRESS_RE.match(address):
        raise ValidationError("Invalid Ethereum address format", {"address": address})
    return address


def conversion_note(amount, decimals: int | None) -> str:
    if decimals:
        return (
            f"To convert to human-readable amount: divide {amount} by 10^{decimals} "
            "(Ethereum-style decimal places)"
        )
    return (
        f"To convert to human-readable amount: divide {amount} by 10^{DEFAULT_DECIMALS} "
        "(default Ethereum token decimals)"
    )


def _token_info(token: dict | None) -> dict | None:
    if not token:
        return None
    return {
        "symbol": token.get("symbol"),
        "name": token.get("name"),
        "decimals": token.get("decimals") or DEFAULT_DECIMALS,
    }


def _statement(statement: dict | None) -> dict | None:
    if not statement:
        return None
    if (
        statement.get("statement")
        or statement.get("statementSummary")
        or statement.get("isSeekingDelegation") is not None
    ):
        return statement
    return None


def _page_info(page_info: dict | None) -> dict:
    page_info = page_info or {}
    return {
        "hasNextPage": False,
        "hasPreviousPage": False,
        "startCursor": page_info.get("firstCursor"),
        "endCursor": page_info.get("lastCursor"),
    }


# ---------------------------------------------------------------------------
# Delegates
# ---------------------------------------------------------------------------


async def get_delegates(
    client: TallyGraphQLClient,
    organization_id: str,
    page_size: int = 20,
    sort_by: str = "votes",
    sort_order: str = "desc",
) -> dict:
    """Delegates of one organization with account, statement and token details."""
    organization_id = _require_id("organization_id", organization_id)
    _check_page_size(page_size)
    if sort_by not in DELEGATE_SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of {', '.join(DELEGATE_SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be 'asc' or 'desc'")

    data = await client.query(
        GET_DELEGATES_QUERY,
        {
            "organizationId": organization_id,
            "pageSize": page_size,
            "sortBy": sort_by,
            "isDescending": sort_order == "desc",
        },
    )
    result = data.get("delegates") or {}
    items = []
    for d in result.get("nodes") or []:
        token = d.get("token") or {}
        items.append(
            {
                **d,
                "token": {**token, "decimals": token.get("decimals") or DEFAULT_DECIMALS},
                "conversionNote": conversion_note(d.get("votesCount"), token.get("decimals")),
            }
        )
    return {
        "items": items,
        "totalCount": (result.get("pageInfo") or {}).get("count") or 0,
        "pageInfo": _page_info(result.get("pageInfo")),
        "conversionReminder": DELEGATE_REMINDER,
    }


async def get_dao_participants(
    client: TallyGraphQLClient,
    organization_id: str,
    page_size: int = 20,
) -> dict:
    """Voting participants of a DAO (its delegates) with their token info."""
    organization_id = _require_id("organization_id", organization_id)
    _check_page_size(page_size)

    data = await client.query(
        GET_DAO_PARTICIPANTS_QUERY,
        {"organizationId": organization_id, "pageSize": page_size},
    )
    result = data.get("delegates") or {}
    items = [
        {
            "id": d.get("id"),
            "delegatorsCount": d.get("delegatorsCount"),
            "votesCount": d.get("votesCount"),
            "account": d.get("account"),
            "tokenInfo": _token_info(d.get("token")),
        }
        for d in result.get("nodes") or []
    ]
    return {
        "items": items,
        "totalCount": (result.get("pageInfo") or {}).get("count") or 0,
        "pageInfo": _page_info(result.get("pageInfo")),
        "conversionReminder": DELEGATE_REMINDER,
    }


async def get_delegate_statement(
    client: TallyGraphQLClient, address: str, organization_id: str
) -> dict | None:
    """A delegate's statement in one organization. None if the address is not a delegate there."""
    address = _require_address(address)
    organization_id = _require_id("organization_id", organization_id)
    data = await client.query(
        GET_DELEGATE_STATEMENT_QUERY,
        {"address": address, "organizationId": organization_id},
    )
    return data.get("delegate") or None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def get_user_profile(
    client: TallyGraphQLClient, address: str, page_size: int = 20
) -> dict | None:
    """Account details plus the DAOs the address delegates in and acts as delegate for.

    Returns None when Tally has no account for the address.
    """
    address = _require_address(address)
    _check_page_size(page_size)

    data = await client.query(
        GET_USER_PROFILE_QUERY, {"address": address, "pageSize": page_size}
    )
    account = data.get("accountV2")
    if not account:
        return None

    dao_participations = []
    for d in (data.get("delegatees") or {}).get("nodes") or []:
        token = d.get("token") or {}
        dao_participations.append(
            {
                "id": d.get("id"),
                "organization": d.get("organization"),
                "token": {
                    "symbol": token.get("symbol"),
                    "name": token.get("name"),
                    "decimals": token.get("decimals"),
                },
                "votes": d.get("votes"),
                "conversionNote": conversion_note(d.get("votes"), token.get("decimals")),
            }
        )

    delegate_participations = []
    for d in (data.get("delegates") or {}).get("nodes") or []:
        token = d.get("token") or {}
        delegate_participations.append(
            {
                "id": d.get("id"),
                "organization": d.get("organization"),
                "statement": _statement(d.get("statement")),
                "votesCount": d.get("votesCount"),
                "delegatorsCount": d.get("delegatorsCount"),
                "tokenInfo": _token_info(d.get("token")),
                "conversionNote": conversion_note(d.get("votesCount"), token.get("decimals")),
            }
        )

    return {
        **account,
        "daoParticipations": dao_participations,
        "delegateParticipations": delegate_participations,
        "conversionReminder": PROFILE_REMINDER,
    }
