"""Key-value persistence media.

The exchange store and the token store are written against the small
``KeyValueStore`` protocol so any durable medium can back them. Media raise
``StorageError``; the stores built on top absorb it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from authsession.models.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "authsession"


class KeyValueStore(Protocol):
    """String key-value medium used for session persistence."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """In-memory medium that lives as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class KeyringKeyValueStore:
    """Durable medium backed by the operating system keyring.

    Each key becomes one keyring entry under ``service_name``, so refresh
    tokens are held by the platform credential store (Keychain, Secret
    Service, Windows Credential Locker) rather than in a plain file. Keyring
    calls block, so they run in a worker thread.

    Args:
        service_name: Keyring service the entries are filed under
        backend: Keyring backend to use. Defaults to the backend ``keyring``
            selects for the platform.
    """

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        backend: Any | None = None,
    ):
        self.service_name = service_name
        self._keyring = backend if backend is not None else keyring

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(
                self._keyring.get_password, self.service_name, key
            )
        except KeyringError as e:
            raise StorageError(f"Failed to read {key} from keyring: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(
                self._keyring.set_password, self.service_name, key, value
            )
        except KeyringError as e:
            raise StorageError(f"Failed to write {key} to keyring: {e}") from e
        logger.debug(f"Stored {key} in keyring service {self.service_name}")

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._keyring.delete_password, self.service_name, key
            )
        except PasswordDeleteError:
            # Nothing stored under this key
            return
        except KeyringError as e:
            raise StorageError(f"Failed to delete {key} from keyring: {e}") from e
