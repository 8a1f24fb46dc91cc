import json

import httpx
import pytest

from foundermode.sim_manager.gateways import GitHubIssueGateway, LinearIssueGateway


def test_github_gateway_lists_open_issues():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"number": 1, "title": "Crash"}])

    client = httpx.Client(base_url="https://api.github.test", transport=httpx.MockTransport(handler))
    gateway = GitHubIssueGateway(base_url="https://api.github.test", client=client)

    issues = gateway.fetch_issues("acme/shiplog", limit=500)

    assert issues == [{"number": 1, "title": "Crash"}]
    assert seen["path"] == "/repos/acme/shiplog/issues"
    assert seen["params"] == {"state": "open", "per_page": "100"}
    gateway.close()
    # externally supplied clients are left open
    assert not client.is_closed
    client.close()


def test_github_gateway_raises_on_http_errors():
    client = httpx.Client(
        base_url="https://api.github.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"message": "Not Found"})),
    )
    gateway = GitHubIssueGateway(client=client)
    with pytest.raises(httpx.HTTPStatusError):
        gateway.fetch_issues("acme/missing")


def test_linear_gateway_posts_graphql_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        nodes = [{"id": "a1", "identifier": "ENG-1", "title": "Webhooks", "priority": 2, "labels": {"nodes": []}}]
        return httpx.Response(200, json={"data": {"team": {"issues": {"nodes": nodes}}}})

    client = httpx.Client(base_url="https://api.linear.test", transport=httpx.MockTransport(handler))
    gateway = LinearIssueGateway(client=client)

    issues = gateway.fetch_issues("team-42", limit=10)

    assert [issue["identifier"] for issue in issues] == ["ENG-1"]
    assert seen["path"] == "/graphql"
    assert seen["body"]["variables"] == {"teamId": "team-42", "first": 10}
    assert "issues(first: $first" in seen["body"]["query"]


def test_linear_gateway_surfaces_graphql_errors():
    client = httpx.Client(
        base_url="https://api.linear.test",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"errors": [{"message": "Team not found"}]})
        ),
    )
    with pytest.raises(RuntimeError, match="Team not found"):
        LinearIssueGateway(client=client).fetch_issues("nope")


def test_missing_team_returns_no_issues():
    client = httpx.Client(
        base_url="https://api.linear.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"data": {"team": None}})),
    )
    assert LinearIssueGateway(client=client).fetch_issues("ghost") == []
