"""Tests for GitHubClient: headers, pagination and status-code mapping.

All HTTP goes through httpx.MockTransport; no real GitHub calls are made.
"""

from __future__ import annotations

import httpx
import pytest

from harbinger.auth.credentials import MemoryCredentialStore
from harbinger.exceptions import (
    CredentialMissingError,
    DecodeError,
    ForbiddenError,
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UnauthorizedError,
)
from harbinger.models.repository import Repository

from tests.conftest import TEST_TOKEN, repo_payload, run_payload


def _status(code: int, headers: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(code, json={"message": "nope"}, headers=headers or {})

    return handler


# ---------------------------------------------------------------------------
# Headers / auth
# ---------------------------------------------------------------------------

class TestRequestHeaders:
    @pytest.mark.asyncio
    async def test_bearer_token_sent_when_stored(self, make_client):
        client, transport = make_client(lambda r: httpx.Response(200, json=repo_payload("octo/cat")))
        await client.get_repository("octo", "cat")

        request = transport.requests[0]
        assert request.headers["Authorization"] == f"Bearer {TEST_TOKEN}"
        assert request.headers["Accept"] == "application/vnd.github+json"
        assert request.headers["User-Agent"].startswith("Harbinger/")

    @pytest.mark.asyncio
    async def test_unauthenticated_public_read(self, make_client):
        client, transport = make_client(
            lambda r: httpx.Response(200, json=repo_payload("octo/cat")),
            creds=MemoryCredentialStore(),
        )
        repo = await client.get_repository("octo", "cat")

        assert repo.full_name == "octo/cat"
        assert "Authorization" not in transport.requests[0].headers

    @pytest.mark.asyncio
    async def test_auth_required_without_token_makes_no_request(self, make_client):
        client, transport = make_client(lambda r: httpx.Response(200, json=[]), creds=MemoryCredentialStore())
        with pytest.raises(CredentialMissingError):
            await client.get_paginated("/user/repos", Repository)
        assert transport.requests == []


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

def _paged_handler(page_sizes: list[int]):
    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params["page"])
        size = page_sizes[page - 1] if page <= len(page_sizes) else 0
        start = sum(page_sizes[: page - 1])
        body = [repo_payload(f"owner/repo{start + i}", repo_id=start + i) for i in range(size)]
        return httpx.Response(200, json=body)

    return handler


class TestPagination:
    @pytest.mark.asyncio
    async def test_aggregates_pages_until_short_page(self, make_client):
        client, transport = make_client(_paged_handler([100, 100, 42]))
        repos = await client.get_paginated("/user/repos", Repository, params={"type": "owner"})

        assert len(repos) == 242
        assert len(transport.requests) == 3
        # Request order is preserved
        assert [r.full_name for r in repos[:2]] == ["owner/repo0", "owner/repo1"]
        assert repos[-1].full_name == "owner/repo241"

        params = transport.requests[0].url.params
        assert params["per_page"] == "100"
        assert params["type"] == "owner"
        assert [r.url.params["page"] for r in transport.requests] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_short_first_page_stops_after_one_request(self, make_client):
        client, transport = make_client(_paged_handler([7]))
        repos = await client.get_paginated("/user/repos", Repository)
        assert len(repos) == 7
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_full_last_page_needs_empty_follow_up(self, make_client):
        client, transport = make_client(_paged_handler([100]))
        repos = await client.get_paginated("/user/repos", Repository)
        assert len(repos) == 100
        assert len(transport.requests) == 2


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_401(self, make_client):
        client, _ = make_client(_status(401))
        with pytest.raises(UnauthorizedError):
            await client.get_workflow_runs("o", "r")

    @pytest.mark.asyncio
    async def test_403_with_zero_quota_is_rate_limit(self, make_client):
        client, _ = make_client(
            _status(403, {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1767225600"})
        )
        with pytest.raises(RateLimitError) as exc_info:
            await client.get_workflow_runs("o", "r")
        assert exc_info.value.reset_at == 1767225600

    @pytest.mark.asyncio
    async def test_403_with_quota_left_is_forbidden(self, make_client):
        client, _ = make_client(_status(403, {"X-RateLimit-Remaining": "42"}))
        with pytest.raises(ForbiddenError):
            await client.get_workflow_runs("o", "r")

    @pytest.mark.asyncio
    async def test_403_without_header_is_forbidden(self, make_client):
        client, _ = make_client(_status(403))
        with pytest.raises(ForbiddenError):
            await client.get_workflows("o", "r")

    @pytest.mark.asyncio
    async def test_404(self, make_client):
        client, _ = make_client(_status(404))
        with pytest.raises(NotFoundError):
            await client.get_repository("nonexistent", "invalid-repo-name-12345")

    @pytest.mark.asyncio
    async def test_other_status_is_server_error(self, make_client):
        client, _ = make_client(_status(502))
        with pytest.raises(ServerError) as exc_info:
            await client.get_workflow_runs("o", "r")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_schema_mismatch_is_decode_error(self, make_client):
        client, _ = make_client(lambda r: httpx.Response(200, json={"workflow_runs": [{"name": "CI"}]}))
        with pytest.raises(DecodeError):
            await client.get_workflow_runs("o", "r")

    @pytest.mark.asyncio
    async def test_non_json_body_is_decode_error(self, make_client):
        client, _ = make_client(lambda r: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(DecodeError):
            await client.get_repository("o", "r")

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = make_client(handler)
        with pytest.raises(NetworkError):
            await client.get_workflow_runs("o", "r")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [httpx.DecodingError("broken gzip body"), httpx.TooManyRedirects("redirect loop")],
    )
    async def test_other_request_errors_are_network_errors(self, make_client, error):
        def handler(request):
            raise error

        client, _ = make_client(handler)
        with pytest.raises(NetworkError):
            await client.get_workflow_runs("o", "r")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner,repo", [("", "r"), ("o", ""), ("a/b", "r"), ("o", "has space"), ("..", "r")])
    async def test_malformed_path_segments(self, make_client, owner, repo):
        client, transport = make_client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(InvalidRequestError):
            await client.get_workflow_runs(owner, repo)
        assert transport.requests == []


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestEndpoints:
    @pytest.mark.asyncio
    async def test_workflow_runs(self, make_client):
        body = {"total_count": 2, "workflow_runs": [run_payload("CI"), run_payload("Deploy", "failure")]}
        client, transport = make_client(lambda r: httpx.Response(200, json=body))

        response = await client.get_workflow_runs("octo", "cat")

        assert transport.paths() == ["/repos/octo/cat/actions/runs"]
        assert [run.name for run in response.workflow_runs] == ["CI", "Deploy"]
        assert response.workflow_runs[0].head_commit.message == "Fix build"

    @pytest.mark.asyncio
    async def test_workflows(self, make_client):
        body = {"total_count": 1, "workflows": [{"id": 1, "name": "CI", "path": ".github/workflows/ci.yml", "state": "active"}]}
        client, transport = make_client(lambda r: httpx.Response(200, json=body))

        response = await client.get_workflows("octo", "cat")

        assert transport.paths() == ["/repos/octo/cat/actions/workflows"]
        assert response.workflows[0].is_active

    @pytest.mark.asyncio
    async def test_search_passes_parameters(self, make_client):
        body = {"total_count": 1, "incomplete_results": False, "items": [repo_payload("nodejs/node")]}
        client, transport = make_client(lambda r: httpx.Response(200, json=body))

        result = await client.search_repositories("node", sort="stars", order="desc", page=2, per_page=50)

        params = transport.requests[0].url.params
        assert transport.paths() == ["/search/repositories"]
        assert params["q"] == "node"
        assert params["sort"] == "stars"
        assert params["order"] == "desc"
        assert params["page"] == "2"
        assert params["per_page"] == "50"
        assert result.items[0].full_name == "nodejs/node"

    @pytest.mark.asyncio
    async def test_search_rejects_empty_query(self, make_client):
        client, transport = make_client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(InvalidRequestError):
            await client.search_repositories("   ")
        assert transport.requests == []
