"""Async GitHub REST client with GitHub-specific error mapping and pagination."""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from harbinger import __version__
from harbinger.auth.credentials import CredentialStore
from harbinger.config import settings
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
from harbinger.models.repository import Repository, RepositorySearchResult
from harbinger.models.workflow import WorkflowRunsResponse, WorkflowsResponse

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PAGE_SIZE = 100


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Usage:
        async with GitHubClient(credentials) as gh:
            runs = await gh.get_workflow_runs("octocat", "hello-world")
    """

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credentials = credentials
        self._http = httpx.AsyncClient(
            base_url=(base_url or settings.github_api_url).rstrip("/"),
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": f"Harbinger/{__version__}",
            },
            timeout=timeout if timeout is not None else settings.http_timeout,
            transport=transport,
        )

    # ── Read operations ──

    async def get_paginated(
        self,
        path: str,
        model: type[ModelT],
        params: dict | None = None,
        require_auth: bool = True,
        per_page: int = PAGE_SIZE,
    ) -> list[ModelT]:
        """Fetch every page of a list endpoint, in request order.

        Stops at the first page holding fewer than ``per_page`` items.
        """
        adapter = TypeAdapter(list[model])
        items: list[ModelT] = []
        page = 1
        while True:
            query = {**(params or {}), "per_page": per_page, "page": page}
            resp = await self._get(path, params=query, require_auth=require_auth)
            batch = self._decode(resp, adapter)
            items.extend(batch)
            logger.debug("Fetched page %d of %s (%d items)", page, path, len(batch))
            if len(batch) < per_page:
                break
            page += 1
        return items

    async def get_repository(self, owner: str, repo: str) -> Repository:
        path = f"/repos/{path_segment(owner, 'owner')}/{path_segment(repo, 'repo')}"
        resp = await self._get(path, require_auth=False)
        return self._decode(resp, TypeAdapter(Repository))

    async def get_workflows(self, owner: str, repo: str) -> WorkflowsResponse:
        path = f"/repos/{path_segment(owner, 'owner')}/{path_segment(repo, 'repo')}/actions/workflows"
        resp = await self._get(path, require_auth=False)
        return self._decode(resp, TypeAdapter(WorkflowsResponse))

    async def get_workflow_runs(
        self, owner: str, repo: str, per_page: int = PAGE_SIZE
    ) -> WorkflowRunsResponse:
        """Most recent workflow runs of a repository, newest first."""
        path = f"/repos/{path_segment(owner, 'owner')}/{path_segment(repo, 'repo')}/actions/runs"
        resp = await self._get(path, params={"per_page": per_page}, require_auth=False)
        return self._decode(resp, TypeAdapter(WorkflowRunsResponse))

    async def search_repositories(
        self,
        query: str,
        sort: str | None = None,
        order: str | None = None,
        page: int = 1,
        per_page: int = 30,
    ) -> RepositorySearchResult:
        if not query or not query.strip():
            raise InvalidRequestError("Search query must not be empty")
        if page < 1 or not 1 <= per_page <= PAGE_SIZE:
            raise InvalidRequestError(f"Invalid page={page} per_page={per_page}")

        params: dict[str, Any] = {"q": query.strip(), "page": page, "per_page": per_page}
        if sort:
            params["sort"] = sort
        if order:
            params["order"] = order
        resp = await self._get("/search/repositories", params=params, require_auth=False)
        return self._decode(resp, TypeAdapter(RepositorySearchResult))

    # ── Transport ──

    async def _get(
        self, path: str, params: dict | None = None, require_auth: bool = True
    ) -> httpx.Response:
        headers = {}
        token = await self._credentials.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif require_auth:
            raise CredentialMissingError()

        try:
            resp = await self._http.get(path, params=params, headers=headers)
        except httpx.InvalidURL as e:
            raise InvalidRequestError(str(e)) from e
        except httpx.RequestError as e:
            logger.warning("GET %s failed: %s", path, e)
            raise NetworkError(str(e) or type(e).__name__) from e

        _raise_for_status(resp, path)
        return resp

    @staticmethod
    def _decode(resp: httpx.Response, adapter: TypeAdapter):
        try:
            return adapter.validate_json(resp.content)
        except ValidationError as e:
            logger.warning("Unexpected payload from %s: %s", resp.request.url, e)
            raise DecodeError(str(e)) from e

    async def close(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()


def _raise_for_status(resp: httpx.Response, path: str) -> None:
    status = resp.status_code
    if 200 <= status < 300:
        return
    logger.warning("GET %s returned HTTP %d", path, status)
    if status == 401:
        raise UnauthorizedError()
    if status == 403:
        if resp.headers.get("x-ratelimit-remaining") == "0":
            reset = resp.headers.get("x-ratelimit-reset")
            raise RateLimitError(int(reset) if reset and reset.isdigit() else None)
        raise ForbiddenError()
    if status == 404:
        raise NotFoundError(f"Not found: {path}")
    raise ServerError(status)


def path_segment(value: str, label: str) -> str:
    """Validate one URL path segment (owner, repo or org name)."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(f"{label} must not be empty")
    if "/" in value or value in (".", "..") or any(c.isspace() for c in value):
        raise InvalidRequestError(f"Invalid {label}: {value!r}")
    return quote(value, safe="")
