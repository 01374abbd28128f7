"""GitHub OAuth device flow for input-constrained clients.

The flow is driven by the caller: ``begin_authorization()`` returns the code
the user enters at the verification URL, and ``exchange_for_token()`` makes a
single token request once the user says they are done. There is no internal
polling loop; on ``AuthorizationPendingError`` or ``SlowDownError`` the caller
decides when to try again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

import httpx

from harbinger.auth.credentials import CredentialStore
from harbinger.config import settings
from harbinger.exceptions import (
    AccessDeniedError,
    AuthFlowError,
    AuthorizationPendingError,
    DeviceFlowDisabledError,
    ExpiredTokenError,
    InvalidResponseError,
    NetworkError,
    SlowDownError,
    UnknownAuthError,
)

logger = logging.getLogger(__name__)

DEVICE_CODE_PATH = "/login/device/code"
ACCESS_TOKEN_PATH = "/login/oauth/access_token"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

_ERROR_CODES: dict[str, type[AuthFlowError]] = {
    "authorization_pending": AuthorizationPendingError,
    "slow_down": SlowDownError,
    "access_denied": AccessDeniedError,
    "expired_token": ExpiredTokenError,
    "unsupported_grant_type": DeviceFlowDisabledError,
}

# Errors after which the same device code may be exchanged again
_RETRYABLE = (AuthorizationPendingError, SlowDownError, NetworkError)


class DeviceFlowState(str, Enum):
    IDLE = "idle"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DeviceFlowSession:
    device_code: str
    user_code: str
    verification_uri: str
    expires_at: datetime
    interval: int = 5


@dataclass(frozen=True)
class DeviceAuthorization:
    user_code: str
    verification_uri: str


def map_error_code(code: str) -> AuthFlowError:
    """Translate a GitHub OAuth ``error`` value into an exception instance."""
    error_cls = _ERROR_CODES.get(code)
    if error_cls is None:
        return UnknownAuthError(code)
    return error_cls()


class DeviceFlowAuthenticator:
    def __init__(
        self,
        credentials: CredentialStore,
        client_id: str | None = None,
        scopes: list[str] | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._credentials = credentials
        self._client_id = settings.github_client_id if client_id is None else client_id
        self._scopes = settings.oauth_scope_list if scopes is None else scopes
        self._clock = clock
        self._http = httpx.AsyncClient(
            base_url=(base_url or settings.github_oauth_url).rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=timeout if timeout is not None else settings.http_timeout,
            transport=transport,
        )
        self._session: DeviceFlowSession | None = None
        self.state = DeviceFlowState.IDLE

    @property
    def session(self) -> DeviceFlowSession | None:
        return self._session

    async def begin_authorization(self) -> DeviceAuthorization:
        """Request a device code. Returns the user code and where to enter it."""
        if not self._client_id:
            raise DeviceFlowDisabledError()

        logger.info("Initiating device flow")
        data = await self._post(
            DEVICE_CODE_PATH,
            {"client_id": self._client_id, "scope": " ".join(self._scopes)},
        )
        if "error" in data:
            logger.warning("Device code request rejected: %s", data["error"])
            raise map_error_code(str(data["error"]))

        try:
            session = DeviceFlowSession(
                device_code=_required_str(data, "device_code"),
                user_code=_required_str(data, "user_code"),
                verification_uri=_required_str(data, "verification_uri"),
                expires_at=self._clock() + timedelta(seconds=int(data["expires_in"])),
                interval=int(data.get("interval") or 5),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Malformed device code response: {e}") from e

        self._session = session
        self.state = DeviceFlowState.AWAITING_AUTHORIZATION
        logger.info("Device code received, verification at %s", session.verification_uri)
        return DeviceAuthorization(
            user_code=session.user_code, verification_uri=session.verification_uri
        )

    async def exchange_for_token(self) -> str:
        """Make one token request for the active session.

        On success the token is written to the credential store and the session
        ends. Pending, slow-down and transport errors keep the session alive.
        """
        session = self._session
        if session is None:
            raise InvalidResponseError("No device flow in progress")

        if self._clock() > session.expires_at:
            logger.warning("Device code expired before exchange")
            self._end(DeviceFlowState.EXPIRED)
            raise ExpiredTokenError()

        self.state = DeviceFlowState.EXCHANGING
        try:
            token = await self._request_token(session)
        except _RETRYABLE:
            if self._session is session:
                self.state = DeviceFlowState.AWAITING_AUTHORIZATION
            raise
        except ExpiredTokenError:
            if self._session is session:
                self._end(DeviceFlowState.EXPIRED)
            raise
        except AuthFlowError:
            if self._session is session:
                self._end(DeviceFlowState.FAILED)
            raise

        if self._session is not session:
            logger.info("Device flow was cancelled during token exchange, discarding token")
            raise InvalidResponseError("Device flow was cancelled")

        await self._credentials.set_token(token)
        self._end(DeviceFlowState.AUTHENTICATED)
        logger.info("Access token received")
        return token

    def cancel(self) -> None:
        if self._session is not None:
            logger.info("Cancelling device flow")
        self._end(DeviceFlowState.CANCELLED)

    async def sign_out(self) -> None:
        """Forget the stored access token."""
        self._end(DeviceFlowState.IDLE)
        await self._credentials.clear()

    async def _request_token(self, session: DeviceFlowSession) -> str:
        data = await self._post(
            ACCESS_TOKEN_PATH,
            {
                "client_id": self._client_id,
                "device_code": session.device_code,
                "grant_type": DEVICE_CODE_GRANT,
            },
        )
        if "error" in data:
            logger.debug("Token exchange returned %s", data["error"])
            raise map_error_code(str(data["error"]))

        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise InvalidResponseError("No access token in response")
        return token

    async def _post(self, path: str, form: dict[str, str]) -> dict:
        try:
            resp = await self._http.post(path, data=form)
        except httpx.RequestError as e:
            logger.warning("Device flow request to %s failed: %s", path, e)
            raise NetworkError(str(e) or type(e).__name__) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise InvalidResponseError(f"HTTP {resp.status_code} with non-JSON body") from e
        if not isinstance(data, dict):
            raise InvalidResponseError()
        return data

    def _end(self, state: DeviceFlowState) -> None:
        self._session = None
        self.state = state

    async def close(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()


def _required_str(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} missing")
    return value
