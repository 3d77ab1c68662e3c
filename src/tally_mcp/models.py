"""Read-only governance records and the resource document type."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MARKDOWN_MIME_TYPE = "text/markdown"


def _get(d: dict | None, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a key is missing."""
    cur: Any = d
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


@dataclass
class Organization:
    """A DAO as returned by the organization tools."""

    id: str
    slug: str
    name: str
    description: str | None = None
    member_count: int | None = None
    total_proposals: int | None = None
    active_proposals: int | None = None
    chain_id: str | None = None
    website: str | None = None
    twitter: str | None = None
    github: str | None = None

    @property
    def has_active_proposals(self) -> bool:
        return isinstance(self.active_proposals, (int, float)) and self.active_proposals > 0

    @classmethod
    def from_dict(cls, d: dict) -> Organization:
        return cls(
            id=str(d.get("id", "")),
            slug=d.get("slug") or "",
            name=d.get("name") or "",
            description=d.get("description") or None,
            member_count=d.get("memberCount"),
            total_proposals=_get(d, "proposalStats", "total"),
            active_proposals=_get(d, "proposalStats", "active"),
            chain_id=d.get("chainId") or None,
            website=d.get("website") or None,
            twitter=d.get("twitter") or None,
            github=d.get("github") or None,
        )


@dataclass
class VotingStats:
    """Raw-unit vote totals. A field is None only when the key was absent."""

    for_votes: int | float | str | None = None
    against: int | float | str | None = None
    abstain: int | float | str | None = None
    total: int | float | str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> VotingStats:
        return cls(
            for_votes=d.get("for"),
            against=d.get("against"),
            abstain=d.get("abstain"),
            total=d.get("total"),
        )


@dataclass
class ExecutionDetails:
    executed: bool = False
    executed_at: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> ExecutionDetails:
        return cls(executed=bool(d.get("executed")), executed_at=d.get("executedAt") or None)


@dataclass
class Proposal:
    """A governance proposal with display defaults already resolved."""

    id: str
    title: str | None = None
    status: str | None = None
    proposer_address: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    description: str | None = None
    organization_name: str | None = None
    voting_stats: VotingStats | None = None
    execution: ExecutionDetails | None = None
    action_count: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> Proposal:
        stats = d.get("votingStats")
        execution = d.get("executionDetails")
        return cls(
            id=str(d.get("id", "")),
            title=_get(d, "metadata", "title") or d.get("title") or None,
            status=d.get("status") or None,
            proposer_address=_get(d, "proposer", "address") or None,
            start_time=d.get("startTime") or None,
            end_time=d.get("endTime") or None,
            description=_get(d, "metadata", "description") or d.get("description") or None,
            organization_name=_get(d, "organization", "name") or None,
            voting_stats=VotingStats.from_dict(stats) if isinstance(stats, dict) else None,
            execution=ExecutionDetails.from_dict(execution) if isinstance(execution, dict) else None,
            action_count=len(d.get("actions") or []),
        )


@dataclass
class Participation:
    """One DAO an address takes part in, as delegator or as delegate."""

    organization_id: str
    organization_name: str
    voting_power: int | float | str | None = None
    token_symbol: str | None = None
    is_delegate: bool = False
    delegators_count: int | None = None
    has_statement: bool = False


@dataclass
class UserProfile:
    address: str
    name: str | None = None
    ens: str | None = None
    twitter: str | None = None
    bio: str | None = None
    participations: list[Participation] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.ens or "Anonymous User"

    @classmethod
    def from_dict(cls, d: dict) -> UserProfile:
        """Merge delegate roles and delegations into one entry per organization.

        A delegate role wins over a plain delegation in the same organization.
        """
        by_org: dict[str, Participation] = {}
        for p in d.get("delegateParticipations") or []:
            org = p.get("organization") or {}
            org_id = str(org.get("id", ""))
            by_org[org_id] = Participation(
                organization_id=org_id,
                organization_name=org.get("name") or "",
                voting_power=p.get("votesCount"),
                token_symbol=_get(p, "tokenInfo", "symbol"),
                is_delegate=True,
                delegators_count=p.get("delegatorsCount"),
                has_statement=bool(p.get("statement")),
            )
        for p in d.get("daoParticipations") or []:
            org = p.get("organization") or {}
            org_id = str(org.get("id", ""))
            if org_id in by_org:
                continue
            by_org[org_id] = Participation(
                organization_id=org_id,
                organization_name=org.get("name") or "",
                voting_power=p.get("votes"),
                token_symbol=_get(p, "token", "symbol"),
            )
        return cls(
            address=d.get("address") or "",
            name=d.get("name") or None,
            ens=d.get("ens") or None,
            twitter=d.get("twitter") or None,
            bio=d.get("bio") or None,
            participations=list(by_org.values()),
        )


@dataclass(frozen=True)
class ResourceDocument:
    """A rendered markdown resource. Error documents keep the success URI."""

    uri: str
    text: str
    is_error: bool = False
    mime_type: str = field(default=MARKDOWN_MIME_TYPE, init=False)

    def to_dict(self) -> dict:
        return {"uri": self.uri, "mimeType": self.mime_type, "text": self.text}
