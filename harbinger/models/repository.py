from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator


class RepositoryOwner(BaseModel):
    login: str


class Repository(BaseModel):
    """Snapshot of a GitHub repository as returned by the REST API."""

    model_config = {"frozen": True}

    id: int
    owner: RepositoryOwner
    name: str
    full_name: str
    private: bool = False
    visibility: str | None = None
    html_url: str
    description: str | None = None
    archived: bool = False
    disabled: bool = False
    fork: bool = False
    language: str | None = None
    default_branch: str = "main"

    @model_validator(mode="before")
    @classmethod
    def _default_visibility(cls, data):
        if isinstance(data, dict) and data.get("visibility") is None:
            data = {**data, "visibility": "private" if data.get("private") else "public"}
        return data

    @property
    def owner_login(self) -> str:
        return self.owner.login

    @property
    def is_basically_viable(self) -> bool:
        """Cheap local check: archived or disabled repos never run workflows."""
        return not self.archived and not self.disabled


class Organization(BaseModel):
    model_config = {"frozen": True}

    login: str
    id: int
    url: str
    description: str | None = None


class RepositorySearchResult(BaseModel):
    total_count: int = 0
    incomplete_results: bool = False
    items: list[Repository] = Field(default_factory=list)


class MonitoredRepository(BaseModel):
    """A repository the user chose to monitor. Unique by full_name."""

    owner: str
    name: str
    full_name: str
    private: bool = False
    url: str
    description: str | None = None
    # workflow name -> enabled; empty means every workflow is tracked
    tracked_workflows: dict[str, bool] = Field(default_factory=dict)
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_repository(cls, repository: Repository) -> MonitoredRepository:
        return cls(
            owner=repository.owner_login,
            name=repository.name,
            full_name=repository.full_name,
            private=repository.private,
            url=repository.html_url,
            description=repository.description,
        )

    def is_workflow_tracked(self, workflow_name: str) -> bool:
        if not self.tracked_workflows:
            return True
        return self.tracked_workflows.get(workflow_name, False)

    @property
    def has_specific_workflows_configured(self) -> bool:
        return bool(self.tracked_workflows)

    @property
    def tracked_workflow_names(self) -> list[str]:
        return sorted(name for name, enabled in self.tracked_workflows.items() if enabled)
