"""Periodic workflow status monitor for all monitored repositories."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Protocol

from harbinger.config import settings
from harbinger.exceptions import GitHubError
from harbinger.models.repository import MonitoredRepository
from harbinger.models.workflow import (
    OverallStatus,
    RepositoryWorkflowStatus,
    WorkflowRun,
    WorkflowRunStatus,
    WorkflowRunSummary,
)
from harbinger.services.github_client import GitHubClient
from harbinger.services.repository_store import RepositoryStore

logger = logging.getLogger(__name__)

NO_REPOSITORIES_TEXT = "No repositories monitored"


class WorkflowMonitorObserver(Protocol):
    """Receives monitor updates on the event loop thread."""

    def on_repository_updated(self, status: RepositoryWorkflowStatus) -> None: ...

    def on_overall_status_updated(self, overall: OverallStatus) -> None: ...


# ── Status derivation ──


def summarize_runs(
    repository: MonitoredRepository, runs: Iterable[WorkflowRun], limit: int = 10
) -> RepositoryWorkflowStatus:
    """Keep the tracked runs (newest first) and truncate to ``limit``."""
    tracked = [run for run in runs if repository.is_workflow_tracked(run.name or "")]
    return RepositoryWorkflowStatus(
        repository=repository,
        workflows=[WorkflowRunSummary.from_run(run) for run in tracked[:limit]],
    )


def calculate_overall_status(statuses: Iterable[RepositoryWorkflowStatus]) -> WorkflowRunStatus:
    """Failure beats Running beats Success; errored repositories do not vote."""
    working = [s.overall_status for s in statuses if s.error is None]
    if not working:
        return WorkflowRunStatus.UNKNOWN
    if WorkflowRunStatus.FAILURE in working:
        return WorkflowRunStatus.FAILURE
    if WorkflowRunStatus.RUNNING in working:
        return WorkflowRunStatus.RUNNING
    if all(s == WorkflowRunStatus.SUCCESS for s in working):
        return WorkflowRunStatus.SUCCESS
    return WorkflowRunStatus.UNKNOWN


def generate_status_text(statuses: Iterable[RepositoryWorkflowStatus]) -> str:
    statuses = list(statuses)
    total = len(statuses)
    if total == 0:
        return NO_REPOSITORIES_TEXT

    overall = calculate_overall_status(statuses)
    if overall == WorkflowRunStatus.SUCCESS:
        return f"All {total} repositories passing"
    if overall == WorkflowRunStatus.FAILURE:
        failing = sum(1 for s in statuses if s.overall_status == WorkflowRunStatus.FAILURE)
        return f"{failing} of {total} repositories failing"
    if overall == WorkflowRunStatus.RUNNING:
        running = sum(1 for s in statuses if s.overall_status == WorkflowRunStatus.RUNNING)
        return f"{running} of {total} repositories running workflows"

    errored = sum(1 for s in statuses if s.error is not None)
    if errored == total:
        return "All repositories have errors"
    if errored:
        return f"{errored} of {total} repositories have errors"
    return "No workflow data available"


# ── Monitor ──


class WorkflowStatusMonitor:
    """Fetches workflow runs for every monitored repository and publishes statuses.

    ``start_monitoring()`` refreshes immediately and then every
    ``refresh_interval`` seconds. Each refresh fans out one request per
    repository; observers get a per-repository update as each request
    finishes and one overall update once all of them have.
    """

    def __init__(
        self,
        client: GitHubClient,
        store: RepositoryStore,
        refresh_interval: float | None = None,
        run_limit: int | None = None,
    ):
        self._client = client
        self._store = store
        self._refresh_interval = (
            settings.refresh_interval_seconds if refresh_interval is None else refresh_interval
        )
        self._run_limit = run_limit or settings.workflow_run_limit
        self._observers: list[WorkflowMonitorObserver] = []
        self._statuses: dict[str, RepositoryWorkflowStatus] = {}
        self._overall = OverallStatus(status=WorkflowRunStatus.UNKNOWN, text=NO_REPOSITORIES_TEXT)
        self._monitoring = False
        self._timer_task: asyncio.Task | None = None
        self._refresh_tasks: set[asyncio.Task] = set()

    # ── Observers ──

    def subscribe(self, observer: WorkflowMonitorObserver) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ── Lifecycle ──

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    @property
    def timer_armed(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start_monitoring(self) -> None:
        if self._monitoring:
            logger.warning("Attempted to start monitoring but already running")
            return

        self._monitoring = True
        logger.info("Starting workflow monitoring (interval=%ss)", self._refresh_interval)
        self._spawn_refresh()
        self._timer_task = asyncio.create_task(self._periodic_refresh())

    def stop_monitoring(self, cancel_in_flight: bool = False) -> None:
        """Stop scheduling refreshes. In-flight refreshes finish unless cancelled."""
        if not self._monitoring:
            logger.warning("Attempted to stop monitoring but not running")
            return

        self._monitoring = False
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
        if cancel_in_flight:
            for task in list(self._refresh_tasks):
                task.cancel()
        logger.info("Stopped workflow monitoring")

    async def wait_idle(self) -> None:
        """Wait for refreshes already started to finish."""
        if self._refresh_tasks:
            await asyncio.gather(*self._refresh_tasks, return_exceptions=True)

    async def _periodic_refresh(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            logger.debug("Periodic refresh triggered")
            self._spawn_refresh()

    def _spawn_refresh(self) -> None:
        task = asyncio.create_task(self._refresh_logged())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh_logged(self) -> None:
        try:
            await self.refresh_all()
        except Exception:
            logger.exception("Workflow refresh failed")

    # ── Refresh ──

    async def refresh_all(self) -> OverallStatus:
        repositories = await self._store.list_repositories()

        if not repositories:
            logger.info("No repositories to monitor")
            self._statuses = {}
            self._overall = OverallStatus(status=WorkflowRunStatus.UNKNOWN, text=NO_REPOSITORIES_TEXT)
            self._notify_overall(self._overall)
            return self._overall

        logger.info("Refreshing %d repositories", len(repositories))
        results = await asyncio.gather(*(self._refresh_repository(r) for r in repositories))

        self._statuses = {s.repository.full_name: s for s in results}
        self._overall = OverallStatus(
            status=calculate_overall_status(results),
            text=generate_status_text(results),
            repository_count=len(results),
        )
        logger.info("Completed refresh: %s (%s)", self._overall.status.value, self._overall.text)
        self._notify_overall(self._overall)
        return self._overall

    async def _refresh_repository(self, repository: MonitoredRepository) -> RepositoryWorkflowStatus:
        try:
            response = await self._client.get_workflow_runs(repository.owner, repository.name)
        except GitHubError as e:
            logger.error("Failed to fetch workflow runs for %s: %s", repository.full_name, e)
            status = RepositoryWorkflowStatus(repository=repository, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error refreshing %s", repository.full_name)
            status = RepositoryWorkflowStatus(repository=repository, error=str(e) or type(e).__name__)
        else:
            logger.debug(
                "Fetched %d workflow runs for %s", len(response.workflow_runs), repository.full_name
            )
            status = summarize_runs(repository, response.workflow_runs, self._run_limit)

        self._notify_repository(status)
        return status

    def get_repository_statuses(self) -> list[RepositoryWorkflowStatus]:
        return sorted(self._statuses.values(), key=lambda s: s.repository.full_name)

    def get_overall_status(self) -> OverallStatus:
        return self._overall

    # ── Notification ──

    def _notify_repository(self, status: RepositoryWorkflowStatus) -> None:
        for observer in list(self._observers):
            try:
                observer.on_repository_updated(status)
            except Exception:
                logger.exception("Observer failed handling update for %s", status.repository.full_name)

    def _notify_overall(self, overall: OverallStatus) -> None:
        for observer in list(self._observers):
            try:
                observer.on_overall_status_updated(overall)
            except Exception:
                logger.exception("Observer failed handling overall status update")
