"""Redis-backed read cache for account aggregates."""

from __future__ import annotations

import logging
from typing import Final

from pydantic import TypeAdapter, ValidationError
from redis import Redis
from redis.exceptions import RedisError, WatchError

from .domain.account import Account

logger = logging.getLogger(__name__)

_ACCOUNT_ADAPTER: Final[TypeAdapter[Account]] = TypeAdapter(Account)


class AccountCache:
    """Caches serialised accounts under ``account:{id}`` with a bounded TTL.

    Each account also has a generation counter. Writers bump it when they
    invalidate, and readers only populate the cache when the generation they
    observed before loading from the store is still current. A read that raced
    a write can therefore never pin a pre-write snapshot.

    Redis failures are logged and treated as misses.
    """

    def __init__(self, client: Redis, *, ttl_seconds: int, key_prefix: str = "account") -> None:
        self._client = client
        self._ttl_ms = ttl_seconds * 1000
        # outlives any entry filled under the generation it guards
        self._generation_ttl_ms = self._ttl_ms * 2
        self._key_prefix = key_prefix

    def key(self, account_id: str) -> str:
        return f"{self._key_prefix}:{account_id}"

    def _generation_key(self, account_id: str) -> str:
        return f"{self._key_prefix}:{account_id}:generation"

    def get(self, account_id: str) -> Account | None:
        try:
            raw = self._client.get(self.key(account_id))
        except RedisError as exc:
            logger.warning("cache read failed for account %s: %s", account_id, exc)
            return None
        if raw is None:
            return None
        try:
            return _ACCOUNT_ADAPTER.validate_json(raw)
        except ValidationError:
            logger.warning("discarding undecodable cache entry for account %s", account_id)
            self.delete(account_id)
            return None

    def generation(self, account_id: str) -> int | None:
        """Return the current generation, or ``None`` when Redis is unreachable."""
        try:
            value = self._client.get(self._generation_key(account_id))
        except RedisError as exc:
            logger.warning("cache generation read failed for account %s: %s", account_id, exc)
            return None
        return int(value) if value is not None else 0

    def set(self, account_id: str, account: Account, *, generation: int | None) -> bool:
        """Store ``account`` only if no invalidation happened since ``generation`` was read."""
        if generation is None:
            return False
        payload = _ACCOUNT_ADAPTER.dump_json(account)
        generation_key = self._generation_key(account_id)
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(generation_key)
                current = pipe.get(generation_key)
                if (int(current) if current is not None else 0) != generation:
                    pipe.unwatch()
                    logger.debug("skipping cache fill for account %s: invalidated during load", account_id)
                    return False
                pipe.multi()
                pipe.set(self.key(account_id), payload, px=self._ttl_ms)
                pipe.execute()
                return True
        except WatchError:
            logger.debug("skipping cache fill for account %s: invalidated during load", account_id)
            return False
        except RedisError as exc:
            logger.warning("cache write failed for account %s: %s", account_id, exc)
            return False

    def delete(self, account_id: str) -> None:
        try:
            self._client.delete(self.key(account_id))
        except RedisError as exc:
            logger.warning("cache delete failed for account %s: %s", account_id, exc)

    def invalidate(self, account_id: str) -> None:
        """Bump the generation and drop the cached entry after a committed write."""
        try:
            with self._client.pipeline() as pipe:
                pipe.incr(self._generation_key(account_id))
                pipe.pexpire(self._generation_key(account_id), self._generation_ttl_ms)
                pipe.delete(self.key(account_id))
                pipe.execute()
        except RedisError as exc:
            logger.error(
                "cache invalidation failed for account %s, entry may be stale for up to %sms: %s",
                account_id,
                self._ttl_ms,
                exc,
            )

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError:
            return False
