"""Harbinger: GitHub Actions status monitor core."""

__version__ = "0.1.0"

from harbinger.app import Harbinger, configure_logging  # noqa: E402
from harbinger.exceptions import GitHubError, HarbingerError, AuthFlowError  # noqa: E402
from harbinger.models.workflow import WorkflowRunStatus  # noqa: E402

__all__ = [
    "Harbinger",
    "configure_logging",
    "HarbingerError",
    "GitHubError",
    "AuthFlowError",
    "WorkflowRunStatus",
]
