"""Detects whether repositories have GitHub Actions workflows, batching the API calls.

A repository picker can ask about hundreds of rows at once. Requests are
queued behind a short debounce timer and released in small batches so the
burst stays inside GitHub's rate limits. Results can be kept in a JSON file
so a restart does not re-check every repository.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, Field, ValidationError

from harbinger.config import Settings, settings
from harbinger.exceptions import GitHubError
from harbinger.models.repository import Repository
from harbinger.services.cache_service import TTLCache
from harbinger.services.github_client import GitHubClient

logger = logging.getLogger(__name__)


class WorkflowCacheSnapshot(BaseModel):
    workflow_status: dict[str, bool] = Field(default_factory=dict)
    saved_at: datetime


class JsonFileWorkflowCache:
    """Detection results on disk. The snapshot expires as a whole, ``max_age`` after it was saved."""

    def __init__(self, path: str, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._path = Path(path)
        self._clock = clock

    def load(self, max_age: float) -> tuple[dict[str, bool], float]:
        """Returns the stored results and how many seconds they stay valid."""
        if not self._path.exists():
            return {}, 0.0
        try:
            snapshot = WorkflowCacheSnapshot.model_validate_json(self._path.read_bytes())
        except ValidationError as e:
            logger.warning("Failed to load workflow cache from %s: %s", self._path, e)
            self.clear()
            return {}, 0.0

        remaining = max_age - (self._clock() - snapshot.saved_at).total_seconds()
        if remaining <= 0:
            logger.info("Workflow cache in %s expired, clearing", self._path)
            self.clear()
            return {}, 0.0

        logger.debug("Loaded %d workflow results from %s", len(snapshot.workflow_status), self._path)
        return snapshot.workflow_status, remaining

    def save(self, results: dict[str, bool]) -> None:
        snapshot = WorkflowCacheSnapshot(workflow_status=results, saved_at=self._clock())
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(snapshot.model_dump_json(indent=2))
        logger.debug("Saved %d workflow results to %s", len(results), self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


def get_workflow_cache_file(config: Settings | None = None) -> JsonFileWorkflowCache | None:
    """Factory: the on-disk result cache, or None when ``workflow_cache_backend`` is memory."""
    config = config or settings
    if config.workflow_cache_backend == "file":
        return JsonFileWorkflowCache(config.workflow_cache_file)
    return None


class WorkflowViabilityDetector:
    def __init__(
        self,
        client: GitHubClient,
        cache: TTLCache | None = None,
        debounce: float | None = None,
        batch_size: int | None = None,
        batch_delay: float | None = None,
        persistent_cache: JsonFileWorkflowCache | None = None,
    ):
        self._client = client
        self._cache = cache or TTLCache(default_ttl=settings.workflow_cache_ttl_seconds)
        self._debounce = settings.detection_debounce_seconds if debounce is None else debounce
        self._batch_size = batch_size or settings.detection_batch_size
        self._batch_delay = (
            settings.detection_batch_delay_seconds if batch_delay is None else batch_delay
        )
        self._persistent_cache = persistent_cache
        self._semaphore = asyncio.Semaphore(self._batch_size)
        self._pending: list[tuple[Repository, asyncio.Future[bool]]] = []
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._timer: asyncio.TimerHandle | None = None

        if persistent_cache is not None:
            results, remaining = persistent_cache.load(self._cache.default_ttl)
            for full_name, has_workflows in results.items():
                self._cache.put(full_name, has_workflows, ttl=remaining)

    async def has_workflows(self, repository: Repository) -> bool:
        key = repository.full_name

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if not repository.is_basically_viable:
            self._cache.put(key, False)
            return False

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending.append((repository, future))
        self._arm_timer(self._debounce)
        return await future

    def get_cached_result(self, repository: Repository) -> bool | None:
        return self._cache.get(repository.full_name)

    def set_cached_result(self, full_name: str, has_workflows: bool) -> None:
        self._cache.put(full_name, has_workflows)
        self._persist()

    def clear_cache(self) -> None:
        self._cache.clear()
        self._in_flight.clear()
        if self._persistent_cache is not None:
            self._persistent_cache.clear()

    async def wait_idle(self) -> None:
        """Wait for dispatched batches to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _arm_timer(self, delay: float) -> None:
        # Only one batch timer is ever armed; a new request restarts the window.
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(delay, self._process_pending)

    def _process_pending(self) -> None:
        self._timer = None
        if not self._pending:
            return

        batch = self._pending[: self._batch_size]
        del self._pending[: self._batch_size]
        logger.debug("Dispatching %d workflow checks (%d still queued)", len(batch), len(self._pending))

        task = asyncio.create_task(self._run_batch(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        if self._pending:
            self._arm_timer(self._batch_delay)

    async def _run_batch(self, batch: list[tuple[Repository, asyncio.Future[bool]]]) -> None:
        await asyncio.gather(*(self._check_single(repository, future) for repository, future in batch))
        self._persist()

    def _persist(self) -> None:
        if self._persistent_cache is None:
            return
        try:
            self._persistent_cache.save(dict(self._cache.items()))
        except OSError as e:
            logger.warning("Failed to save workflow cache: %s", e)

    async def _check_single(self, repository: Repository, future: asyncio.Future[bool]) -> None:
        key = repository.full_name

        # TODO: let duplicates await the in-flight check instead of answering False
        if key in self._in_flight:
            _resolve(future, False)
            return

        self._in_flight.add(key)
        try:
            async with self._semaphore:
                response = await self._client.get_workflows(repository.owner_login, repository.name)
            result = len(response.workflows) > 0
        except GitHubError as e:
            logger.warning("Failed to check workflows for %s: %s", key, e)
            result = False
        except Exception as e:
            logger.exception("Unexpected error checking workflows for %s", key)
            if not future.done():
                future.set_exception(e)
            return
        finally:
            self._in_flight.discard(key)

        self._cache.put(key, result)
        _resolve(future, result)


def _resolve(future: asyncio.Future[bool], value: bool) -> None:
    if not future.done():
        future.set_result(value)
