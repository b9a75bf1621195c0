"""Durable token persistence.

Caches the session's token set across restarts. The copy held by the session
manager is authoritative; this store is rewritten from it after every
exchange, refresh and logout.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from authsession.models.errors import StorageError
from authsession.models.tokens import TokenSet
from authsession.primitives.storage import KeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)

TOKENS_KEY = "tokens"


class TokenStore:
    """Saves, loads and clears the serialized token set.

    Every failure degrades to "no token set found": nothing here raises.

    Args:
        storage: Durable medium (e.g. ``KeyringKeyValueStore``)
        key: Storage key for the serialized token set
    """

    def __init__(self, storage: KeyValueStore | None = None, key: str = TOKENS_KEY):
        self._storage = storage if storage is not None else MemoryKeyValueStore()
        self.key = key

    async def save(self, tokens: TokenSet) -> None:
        try:
            await self._storage.set(self.key, tokens.model_dump_json())
        except StorageError as e:
            logger.error(f"Failed to persist tokens: {e}")
            return
        logger.debug("Persisted token set")

    async def load(self) -> TokenSet | None:
        try:
            raw = await self._storage.get(self.key)
        except StorageError as e:
            logger.warning(f"Failed to read stored tokens: {e}")
            return None

        if not raw:
            return None

        try:
            return TokenSet.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                f"Ignoring unreadable stored tokens: {e.error_count()} errors"
            )
            return None

    async def clear(self) -> None:
        try:
            await self._storage.delete(self.key)
        except StorageError as e:
            logger.error(f"Failed to clear stored tokens: {e}")
