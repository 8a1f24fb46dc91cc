from __future__ import annotations

from typing import Any, Optional

import httpx

LINEAR_ISSUES_QUERY = """
query TeamIssues($teamId: String!, $first: Int!) {
  team(id: $teamId) {
    issues(first: $first, filter: { state: { type: { nin: ["completed", "canceled"] } } }) {
      nodes {
        id
        identifier
        title
        description
        priority
        labels { nodes { name } }
      }
    }
  }
}
"""


class IssueGateway:
    def fetch_issues(self, source: str, limit: int = 50) -> list[dict[str, Any]]:
        raise NotImplementedError


class GitHubIssueGateway(IssueGateway):
    def __init__(
        self,
        base_url: str = "https://api.github.com",
        token: Optional[str] = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._external_client = client
        self._client = client or httpx.Client(base_url=self.base_url, headers=headers, timeout=10.0)

    @property
    def client(self) -> httpx.Client:
        return self._client

    def fetch_issues(self, source: str, limit: int = 50) -> list[dict[str, Any]]:
        """Open issues of ``owner/repo``; pull requests are returned too and filtered at import."""
        response = self.client.get(
            f"/repos/{source}/issues",
            params={"state": "open", "per_page": max(1, min(limit, 100))},
        )
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        if self._external_client is None:
            self._client.close()


class LinearIssueGateway(IssueGateway):
    def __init__(
        self,
        base_url: str = "https://api.linear.app",
        api_key: Optional[str] = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = api_key
        self._external_client = client
        self._client = client or httpx.Client(base_url=self.base_url, headers=headers, timeout=10.0)

    @property
    def client(self) -> httpx.Client:
        return self._client

    def fetch_issues(self, source: str, limit: int = 50) -> list[dict[str, Any]]:
        """Open issues of the Linear team whose id is ``source``."""
        payload = {"query": LINEAR_ISSUES_QUERY, "variables": {"teamId": source, "first": limit}}
        response = self.client.post("/graphql", json=payload)
        response.raise_for_status()
        body = response.json()
        if body.get("errors"):
            raise RuntimeError(f"Linear query failed: {body['errors'][0].get('message', 'unknown error')}")
        team = (body.get("data") or {}).get("team") or {}
        return list((team.get("issues") or {}).get("nodes") or [])

    def close(self) -> None:
        if self._external_client is None:
            self._client.close()
