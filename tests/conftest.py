"""Shared test fixtures for Harbinger."""

from __future__ import annotations

import itertools
from typing import Callable

import httpx
import pytest
import pytest_asyncio

from harbinger.auth.credentials import MemoryCredentialStore
from harbinger.models.repository import MonitoredRepository, Repository
from harbinger.services.github_client import GitHubClient

TEST_TOKEN = "gho_testtoken1234567890"

_run_ids = itertools.count(1)


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def repo_payload(full_name: str, repo_id: int = 1, **overrides) -> dict:
    owner, name = full_name.split("/", 1)
    payload = {
        "id": repo_id,
        "name": name,
        "full_name": full_name,
        "owner": {"login": owner, "id": 100},
        "private": False,
        "html_url": f"https://github.com/{full_name}",
        "description": f"{name} repository",
        "archived": False,
        "disabled": False,
        "language": "Python",
        "default_branch": "main",
    }
    payload.update(overrides)
    return payload


def make_repository(full_name: str, repo_id: int = 1, **overrides) -> Repository:
    return Repository.model_validate(repo_payload(full_name, repo_id, **overrides))


def make_monitored(full_name: str, tracked: dict[str, bool] | None = None) -> MonitoredRepository:
    owner, name = full_name.split("/", 1)
    return MonitoredRepository(
        owner=owner,
        name=name,
        full_name=full_name,
        url=f"https://github.com/{full_name}",
        tracked_workflows=tracked or {},
    )


def run_payload(
    name: str,
    conclusion: str | None = "success",
    status: str = "completed",
    sha: str = "abc1234def5678",
    updated_at: str = "2026-01-01T10:00:00Z",
) -> dict:
    return {
        "id": next(_run_ids),
        "name": name,
        "status": status,
        "conclusion": conclusion,
        "html_url": f"https://github.com/o/r/actions/runs/{name}",
        "head_sha": sha,
        "created_at": updated_at,
        "updated_at": updated_at,
        "head_commit": {"id": sha, "message": "Fix build", "author": {"name": "Ada"}},
        "actor": {"login": "ada"},
        "triggering_actor": {"login": "grace"},
    }


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------

class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def credentials() -> MemoryCredentialStore:
    return MemoryCredentialStore(TEST_TOKEN)



@pytest_asyncio.fixture
async def make_client(credentials):
    """Factory building a GitHubClient around a handler; closes clients at teardown."""
    clients: list[GitHubClient] = []

    def factory(handler, creds=None) -> tuple[GitHubClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        client = GitHubClient(
            creds if creds is not None else credentials,
            base_url="https://api.github.test",
            transport=transport,
        )
        clients.append(client)
        return client, transport

    yield factory

    for client in clients:
        await client.close()
