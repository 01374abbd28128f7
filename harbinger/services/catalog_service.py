"""Repository and organization discovery with TTL caching."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from harbinger.config import settings
from harbinger.exceptions import GitHubError
from harbinger.models.repository import Organization, Repository, RepositorySearchResult
from harbinger.services.cache_service import TTLCache
from harbinger.services.github_client import GitHubClient, path_segment

logger = logging.getLogger(__name__)

PERSONAL_REPOS_KEY = "personal_repos"
ORGANIZATIONS_KEY = "organizations"
ORG_REPOS_PREFIX = "org_repos:"


def deduplicate_and_sort(repositories: Iterable[Repository]) -> list[Repository]:
    """Drop repeated full names (first occurrence wins) and sort by full name."""
    seen: dict[str, Repository] = {}
    for repo in repositories:
        seen.setdefault(repo.full_name, repo)
    return sorted(seen.values(), key=lambda r: r.full_name)


class RepositoryCatalogFetcher:
    """Lists the repositories a user can pick from.

    Personal, organization and per-organization listings are paginated and
    cached for ``catalog_cache_ttl_seconds``; search and single-repository
    lookups always go to the network.
    """

    def __init__(self, client: GitHubClient, cache: TTLCache | None = None):
        self._client = client
        self._cache = cache or TTLCache(default_ttl=settings.catalog_cache_ttl_seconds)

    async def get_personal_repositories(self) -> list[Repository]:
        return await self._cached_list(
            PERSONAL_REPOS_KEY, "/user/repos", Repository, params={"type": "owner"}
        )

    async def get_organizations(self) -> list[Organization]:
        return await self._cached_list(ORGANIZATIONS_KEY, "/user/orgs", Organization)

    async def get_organization_repositories(self, org: str) -> list[Repository]:
        path = f"/orgs/{path_segment(org, 'org')}/repos"
        return await self._cached_list(f"{ORG_REPOS_PREFIX}{org}", path, Repository)

    async def search_public_repositories(
        self,
        query: str,
        sort: str | None = None,
        order: str | None = None,
        page: int = 1,
        per_page: int = 30,
    ) -> RepositorySearchResult:
        return await self._client.search_repositories(
            query, sort=sort, order=order, page=page, per_page=per_page
        )

    async def get_repository(self, owner: str, repo: str) -> Repository:
        return await self._client.get_repository(owner, repo)

    async def fetch_available_repositories(self) -> list[Repository]:
        """Personal plus every organization's repositories, deduplicated and sorted.

        A failing organization is logged and skipped; a failure listing the
        personal repositories or the organizations themselves is raised.
        """
        personal, organizations = await asyncio.gather(
            self.get_personal_repositories(), self.get_organizations()
        )
        logger.info(
            "Found %d personal repositories and %d organizations",
            len(personal), len(organizations),
        )

        org_results = await asyncio.gather(
            *(self._organization_repositories_or_empty(org.login) for org in organizations)
        )
        all_repos = list(personal)
        for repos in org_results:
            all_repos.extend(repos)

        unique = deduplicate_and_sort(all_repos)
        logger.info("%d unique repositories (%d before dedup)", len(unique), len(all_repos))
        return unique

    def clear_cache(self) -> None:
        """Drop every cached listing, organization repositories included."""
        self._cache.clear()
        logger.debug("Cleared catalog caches")

    clear_all_caches = clear_cache

    async def _organization_repositories_or_empty(self, org: str) -> list[Repository]:
        try:
            return await self.get_organization_repositories(org)
        except GitHubError as e:
            logger.error("Failed to fetch repositories for organization %s: %s", org, e)
            return []

    async def _cached_list(self, key: str, path: str, model, params: dict | None = None) -> list:
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return list(cached)

        items = await self._client.get_paginated(path, model, params=params)
        self._cache.put(key, tuple(items))
        return items
