from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from harbinger.models.repository import MonitoredRepository

RUNNING_STATES = {"queued", "in_progress", "waiting", "requested", "pending"}


class WorkflowRunStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RUNNING = "running"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return {
            WorkflowRunStatus.SUCCESS: "Success",
            WorkflowRunStatus.FAILURE: "Failed",
            WorkflowRunStatus.RUNNING: "Running",
            WorkflowRunStatus.UNKNOWN: "Unknown",
        }[self]


# ── Raw GitHub payloads ──


class Workflow(BaseModel):
    id: int
    name: str
    path: str = ""
    state: str = "active"
    html_url: str | None = None

    @property
    def is_active(self) -> bool:
        return self.state == "active"


class WorkflowsResponse(BaseModel):
    total_count: int = 0
    workflows: list[Workflow] = Field(default_factory=list)


class CommitAuthor(BaseModel):
    name: str | None = None
    email: str | None = None


class HeadCommit(BaseModel):
    id: str | None = None
    message: str = ""
    author: CommitAuthor | None = None


class Actor(BaseModel):
    login: str


class WorkflowRun(BaseModel):
    id: int | None = None
    name: str | None = None
    status: str | None = None
    conclusion: str | None = None
    html_url: str
    head_sha: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    head_commit: HeadCommit | None = None
    actor: Actor | None = None
    triggering_actor: Actor | None = None

    @property
    def is_running(self) -> bool:
        return self.status in RUNNING_STATES

    @property
    def run_status(self) -> WorkflowRunStatus:
        if self.is_running:
            return WorkflowRunStatus.RUNNING
        if self.conclusion == "success":
            return WorkflowRunStatus.SUCCESS
        if self.conclusion == "failure":
            return WorkflowRunStatus.FAILURE
        return WorkflowRunStatus.UNKNOWN


class WorkflowRunsResponse(BaseModel):
    total_count: int = 0
    workflow_runs: list[WorkflowRun] = Field(default_factory=list)


# ── Derived status ──


class WorkflowRunSummary(BaseModel):
    model_config = {"frozen": True}

    name: str
    status: WorkflowRunStatus
    url: str
    commit_sha: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    commit_message: str | None = None
    commit_author: str | None = None
    actor: str | None = None

    @classmethod
    def from_run(cls, run: WorkflowRun) -> WorkflowRunSummary:
        commit = run.head_commit
        actor = run.triggering_actor or run.actor
        return cls(
            name=run.name or "Unknown Workflow",
            status=run.run_status,
            url=run.html_url,
            commit_sha=run.head_sha,
            created_at=run.created_at,
            updated_at=run.updated_at,
            commit_message=commit.message if commit else None,
            commit_author=commit.author.name if commit and commit.author else None,
            actor=actor.login if actor else None,
        )

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:7]


class RepositoryWorkflowStatus(BaseModel):
    repository: MonitoredRepository
    # most recent first, already filtered and truncated
    workflows: list[WorkflowRunSummary] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None

    @property
    def overall_status(self) -> WorkflowRunStatus:
        """Badge semantics: the most recent tracked run decides."""
        if self.error is not None or not self.workflows:
            return WorkflowRunStatus.UNKNOWN
        return self.workflows[0].status

    @property
    def status_description(self) -> str:
        if not self.workflows:
            if self.error is not None:
                return f"Error: {self.error}"
            return "No workflow data"
        return {
            WorkflowRunStatus.SUCCESS: "Latest workflow passed",
            WorkflowRunStatus.FAILURE: "Latest workflow failed",
            WorkflowRunStatus.RUNNING: "Workflow running",
            WorkflowRunStatus.UNKNOWN: "Status unknown",
        }[self.workflows[0].status]


class OverallStatus(BaseModel):
    status: WorkflowRunStatus
    text: str
    repository_count: int = 0
