"""Harbinger exceptions."""

from __future__ import annotations


class HarbingerError(Exception):
    """Base exception for Harbinger."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ── GitHub REST errors ──


class GitHubError(HarbingerError):
    """A GitHub API call failed."""


class CredentialMissingError(GitHubError):
    """No access token is stored."""

    def __init__(self, message: str = "No access token available"):
        super().__init__(message)


class InvalidRequestError(GitHubError):
    """The request could not be built from the given input."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class NetworkError(GitHubError):
    """Transport-level failure (DNS, connect, read)."""

    def __init__(self, message: str = "Network error"):
        super().__init__(f"Network error: {message}")


class UnauthorizedError(GitHubError):
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class RateLimitError(GitHubError):
    """403 with an exhausted request quota."""

    def __init__(self, reset_at: int | None = None):
        msg = "Rate limit exceeded"
        if reset_at:
            msg += f". Resets at {reset_at}"
        super().__init__(msg, status_code=403)
        self.reset_at = reset_at


class ForbiddenError(GitHubError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, status_code=403)


class NotFoundError(GitHubError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class ServerError(GitHubError):
    """Any other non-2xx response."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}", status_code=status_code)


class DecodeError(GitHubError):
    """Response body did not match the expected schema."""

    def __init__(self, detail: str):
        super().__init__(f"Decoding error: {detail}")
        self.detail = detail


# ── Device flow errors ──


class AuthFlowError(HarbingerError):
    """The OAuth device flow failed."""


class AuthorizationPendingError(AuthFlowError):
    def __init__(self):
        super().__init__("Authorization pending")


class SlowDownError(AuthFlowError):
    def __init__(self):
        super().__init__("Polling too fast")


class AccessDeniedError(AuthFlowError):
    def __init__(self):
        super().__init__("Access denied by user")


class ExpiredTokenError(AuthFlowError):
    def __init__(self):
        super().__init__("Device code expired")


class DeviceFlowDisabledError(AuthFlowError):
    def __init__(self):
        super().__init__("Device flow not enabled for this app")


class UnknownAuthError(AuthFlowError):
    def __init__(self, code: str):
        super().__init__(f"Unknown error: {code}")
        self.code = code


class InvalidResponseError(AuthFlowError):
    def __init__(self, message: str = "Invalid response from GitHub"):
        super().__init__(message)
