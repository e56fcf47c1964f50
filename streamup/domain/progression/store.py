"""Key-value persistence for the progression payload.

Stores move opaque bytes; decoding and validation live in the engine so
that every kind of bad data degrades the same way.
"""

from abc import ABC, abstractmethod

from loguru import logger

from streamup.shared.storage.redis import RedisManager


class ProgressionStore(ABC):
    @abstractmethod
    async def load(self, account_id: str) -> bytes | None:
        """Stored payload, or None when nothing was saved yet."""

    @abstractmethod
    async def save(self, account_id: str, payload: bytes) -> None: ...


class InMemoryProgressionStore(ProgressionStore):
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def load(self, account_id: str) -> bytes | None:
        return self._data.get(account_id)

    async def save(self, account_id: str, payload: bytes) -> None:
        self._data[account_id] = payload


class RedisProgressionStore(ProgressionStore):
    """One string key per account: ``{key_prefix}:{account_id}``."""

    def __init__(self, redis_manager: RedisManager, redis_url: str, key_prefix: str) -> None:
        self._redis_manager = redis_manager
        self._redis_url = redis_url
        self._key_prefix = key_prefix

    def _make_key(self, account_id: str) -> str:
        return f"{self._key_prefix}:{account_id}"

    async def load(self, account_id: str) -> bytes | None:
        client = self._redis_manager.get_client(self._redis_url)
        packed = await client.get(self._make_key(account_id))
        logger.debug("progression load: {} hit={}", account_id, packed is not None)
        return packed

    async def save(self, account_id: str, payload: bytes) -> None:
        client = self._redis_manager.get_client(self._redis_url)
        await client.set(self._make_key(account_id), payload)
