"""Ephemeral exchange store.

Holds the PKCE verifier and CSRF state for the single login attempt that is
in flight. Starting a new attempt overwrites the previous pair; every
callback clears it.
"""

from __future__ import annotations

import logging

from authsession.models.errors import StorageError
from authsession.models.security import PendingExchange
from authsession.primitives.storage import KeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)

VERIFIER_KEY = "pkce_code_verifier"
STATE_KEY = "pkce_state"


class ExchangeStore:
    """Short-lived storage for one verifier/state pair.

    Args:
        storage: Medium for the two keys. Defaults to process memory, which
            suits hosts where the callback is handled by the same process
            that started the login.
    """

    def __init__(self, storage: KeyValueStore | None = None):
        self._storage = storage if storage is not None else MemoryKeyValueStore()

    async def store(self, code_verifier: str, state: str) -> None:
        """Persist the pair for the attempt about to navigate away.

        Raises:
            StorageError: If the pair could not be written. A login must not
                navigate away without it.
        """
        await self._storage.set(VERIFIER_KEY, code_verifier)
        await self._storage.set(STATE_KEY, state)
        logger.debug("Stored PKCE exchange data")

    async def retrieve(self) -> PendingExchange | None:
        """Return the stored pair, or None if either half is missing."""
        try:
            code_verifier = await self._storage.get(VERIFIER_KEY)
            state = await self._storage.get(STATE_KEY)
        except StorageError as e:
            logger.warning(f"Could not read PKCE exchange data: {e}")
            return None

        if not code_verifier or not state:
            return None
        return PendingExchange(code_verifier=code_verifier, state=state)

    async def clear(self) -> None:
        for key in (VERIFIER_KEY, STATE_KEY):
            try:
                await self._storage.delete(key)
            except StorageError as e:
                logger.warning(f"Could not clear PKCE exchange key {key}: {e}")

    async def is_empty(self) -> bool:
        return await self.retrieve() is None
