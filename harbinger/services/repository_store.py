"""Monitored repository persistence: in-memory or a JSON file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from harbinger.config import Settings, settings
from harbinger.models.repository import MonitoredRepository

logger = logging.getLogger(__name__)

_repo_list = TypeAdapter(list[MonitoredRepository])


@runtime_checkable
class RepositoryStore(Protocol):
    """Interface for the user's ordered list of monitored repositories."""

    async def list_repositories(self) -> list[MonitoredRepository]: ...

    async def save_repositories(self, repositories: list[MonitoredRepository]) -> None: ...


class RepositoryManager:
    """Add/remove/toggle operations on top of a RepositoryStore.

    Every mutation is read-modify-write of the whole list; full_name is the key.
    """

    def __init__(self, store: RepositoryStore):
        self._store = store

    async def get_monitored_repositories(self) -> list[MonitoredRepository]:
        return await self._store.list_repositories()

    async def get_monitored_repository(self, full_name: str) -> MonitoredRepository | None:
        for repo in await self._store.list_repositories():
            if repo.full_name == full_name:
                return repo
        return None

    async def is_monitored(self, full_name: str) -> bool:
        return await self.get_monitored_repository(full_name) is not None

    async def add_repository(self, repository: MonitoredRepository) -> bool:
        """Returns False if a repository with the same full name is already monitored."""
        repositories = await self._store.list_repositories()
        if any(r.full_name == repository.full_name for r in repositories):
            logger.warning("Repository %s is already being monitored", repository.full_name)
            return False
        repositories.append(repository)
        await self._store.save_repositories(repositories)
        return True

    async def remove_repository(self, full_name: str) -> bool:
        repositories = await self._store.list_repositories()
        remaining = [r for r in repositories if r.full_name != full_name]
        if len(remaining) == len(repositories):
            return False
        await self._store.save_repositories(remaining)
        return True

    async def update_workflow_tracking(self, full_name: str, workflow_name: str, enabled: bool) -> bool:
        repositories = await self._store.list_repositories()
        for repo in repositories:
            if repo.full_name == full_name:
                repo.tracked_workflows[workflow_name] = enabled
                await self._store.save_repositories(repositories)
                return True
        logger.error("Repository %s not found for workflow update", full_name)
        return False

    async def set_tracked_workflows(self, full_name: str, workflows: dict[str, bool]) -> bool:
        repositories = await self._store.list_repositories()
        for repo in repositories:
            if repo.full_name == full_name:
                repo.tracked_workflows = dict(workflows)
                await self._store.save_repositories(repositories)
                return True
        logger.error("Repository %s not found for workflow update", full_name)
        return False


class MemoryRepositoryStore:
    def __init__(self, repositories: list[MonitoredRepository] | None = None) -> None:
        self._repositories = list(repositories or [])

    async def list_repositories(self) -> list[MonitoredRepository]:
        return [r.model_copy(deep=True) for r in self._repositories]

    async def save_repositories(self, repositories: list[MonitoredRepository]) -> None:
        self._repositories = [r.model_copy(deep=True) for r in repositories]


class JsonFileRepositoryStore:
    """Keeps the list as a JSON array, in the order repositories were added."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)

    async def list_repositories(self) -> list[MonitoredRepository]:
        if not self._path.exists():
            return []
        try:
            return _repo_list.validate_json(self._path.read_bytes())
        except ValidationError as e:
            logger.error("Failed to decode repositories from %s: %s", self._path, e)
            return []

    async def save_repositories(self, repositories: list[MonitoredRepository]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(_repo_list.dump_json(repositories, indent=2))
        logger.debug("Saved %d repositories to %s", len(repositories), self._path)


def get_repository_store(config: Settings | None = None) -> RepositoryStore:
    """Factory: returns the RepositoryStore selected by ``repository_backend``."""
    config = config or settings
    if config.repository_backend == "file":
        return JsonFileRepositoryStore(config.repositories_file)
    return MemoryRepositoryStore()
