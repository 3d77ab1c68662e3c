"""Shared pytest fixtures for tally-mcp tests."""

import pytest

from tally_mcp.config import Settings


class FakeClient:
    """Stands in for TallyGraphQLClient: returns canned responses in order."""

    def __init__(self, *responses):
        self.closed = False
        self.responses = list(responses)
        self.calls = []

    async def query(self, query, variables=None):
        self.calls.append((query, variables))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self):
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key", retry_delay=0.0, max_retries=2)


@pytest.fixture
def org_dict() -> dict:
    """Organization as returned by tools.get_organization."""
    return {
        "id": "2206072050458560434",
        "name": "Uniswap",
        "slug": "uniswap",
        "chainId": "eip155:1",
        "description": "Uniswap governance",
        "proposalStats": {"total": 1234, "active": 2},
        "memberCount": 45678,
        "website": "https://uniswap.org",
        "twitter": None,
        "github": "https://github.com/Uniswap",
    }


@pytest.fixture
def proposal_dict() -> dict:
    """Proposal as returned by tools.get_proposal."""
    return {
        "id": "42",
        "title": "Deploy Uniswap v4",
        "description": "Deploy v4 on mainnet.",
        "status": "ACTIVE",
        "startTime": "2024-01-10T09:00:00",
        "endTime": "2024-01-15T14:30:00",
        "proposer": {"address": "0x1234567890abcdef1234567890abcdef12345678", "name": ""},
        "organization": {"id": "2206072050458560434", "name": "Uniswap", "slug": "uniswap"},
        "votingStats": {"for": "2500000", "against": "1500", "abstain": "0", "total": "2501500"},
        "executionDetails": {"status": "active", "executed": False, "executedAt": None},
        "actions": [{"id": "0"}, {"id": "1"}],
    }
