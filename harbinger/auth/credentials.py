"""Access-token store: in-memory or an encrypted JSON file."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken

from harbinger.config import Settings, settings

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialStore(Protocol):
    """Interface for the single GitHub access token every API call reads."""

    async def get_token(self) -> str | None: ...

    async def set_token(self, token: str) -> None: ...

    async def clear(self) -> None: ...

    async def is_configured(self) -> bool: ...


class MemoryCredentialStore:
    """Process-local token holder (tests, short-lived tools)."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    async def get_token(self) -> str | None:
        return self._token

    async def set_token(self, token: str) -> None:
        self._token = token

    async def clear(self) -> None:
        self._token = None

    async def is_configured(self) -> bool:
        return bool(self._token and self._token.strip())


class EncryptedFileCredentialStore:
    """Keeps one Fernet-encrypted token per service/account pair in a JSON file."""

    def __init__(
        self,
        path: str,
        service: str = "Harbinger",
        account: str = "GitHubAccessToken",
        secret: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._key = f"{service}/{account}"
        self._fernet = _fernet_for(secret or settings.app_secret_key)

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text())
        except json.JSONDecodeError:
            logger.warning("Credential file %s is corrupt, ignoring it", self._path)
            return {}

    def _save(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(items, indent=2))
        self._path.chmod(0o600)

    async def get_token(self) -> str | None:
        ciphertext = self._load().get(self._key)
        if ciphertext is None:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.warning("Stored token for %s cannot be decrypted with the current secret", self._key)
            return None

    async def set_token(self, token: str) -> None:
        items = self._load()
        items[self._key] = self._fernet.encrypt(token.encode()).decode()
        self._save(items)
        logger.info("Stored access token for %s", self._key)

    async def clear(self) -> None:
        items = self._load()
        if items.pop(self._key, None) is not None:
            self._save(items)
            logger.info("Cleared access token for %s", self._key)

    async def is_configured(self) -> bool:
        token = await self.get_token()
        return bool(token and token.strip())


def _fernet_for(secret: str) -> Fernet:
    # Fernet keys must be 32 url-safe base64 bytes
    key_bytes = hashlib.sha256(secret.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key_bytes))


def get_credential_store(config: Settings | None = None) -> CredentialStore:
    """Factory: returns the CredentialStore selected by ``credential_backend``."""
    config = config or settings
    if config.credential_backend == "file":
        return EncryptedFileCredentialStore(
            config.credential_file,
            service=config.credential_service,
            account=config.credential_account,
            secret=config.app_secret_key,
        )
    return MemoryCredentialStore()
