"""Cache-aside repository over the persistent account table."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from ..cache import AccountCache
from ..errors import InvalidArgumentError, NotFoundError
from ..repository import AccountRepository
from .account import Account
from .contracts import Page, PageMeta

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountStore:
    """Reads through the cache, writes to the store and invalidates.

    A read issued after :meth:`write` returns always observes the new value. A
    read that raced the write may briefly return the previous snapshot; the
    event stream, not this API, is the authoritative change signal.
    """

    def __init__(self, repository: AccountRepository, cache: AccountCache) -> None:
        self._repository = repository
        self._cache = cache

    @property
    def repository(self) -> AccountRepository:
        return self._repository

    @property
    def cache(self) -> AccountCache:
        return self._cache

    def read(self, account_id: str) -> Account:
        """Return the account (active or deactivated) or raise :class:`NotFoundError`."""
        cached = self._cache.get(account_id)
        if cached is not None:
            return cached

        generation = self._cache.generation(account_id)
        account = self._repository.get_account(account_id)
        if account is None:
            # misses are never cached so a later creation is visible immediately
            raise NotFoundError("account", account_id)
        self._cache.set(account_id, account, generation=generation)
        return account

    def write(self, account_id: str, mutation: Callable[[], T]) -> T:
        """Run ``mutation`` (one store transaction), then invalidate the cache entry."""
        result = mutation()
        self._cache.invalidate(account_id)
        return result

    def invalidate(self, account_id: str) -> None:
        self._cache.invalidate(account_id)

    def find_by_email(self, email: str) -> Account | None:
        return self._repository.find_by_email(email)

    def list_all(self, page: int = 1, limit: int = 10) -> Page[Account]:
        if page < 1 or limit < 1:
            raise InvalidArgumentError("page and limit must be positive integers")
        total = self._repository.count_accounts()
        accounts = self._repository.list_accounts(offset=(page - 1) * limit, limit=limit)
        return Page(data=accounts, meta=PageMeta.build(page, limit, total))
