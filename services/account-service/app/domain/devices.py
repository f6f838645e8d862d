"""Push device-token registrations."""

from __future__ import annotations

import logging

from schemas import DeviceTokenAdded, DeviceTokenRemoved, Platform
from schemas.events import DEVICE_TOKEN_ADDED, DEVICE_TOKEN_REMOVED

from ..errors import InvalidArgumentError, NotFoundError
from ..messaging.publisher import EventPublisher
from .account import DeviceToken
from .store import AccountStore

logger = logging.getLogger(__name__)


class DeviceTokenRegistry:
    """Token strings are globally unique; registering one moves it to the caller."""

    def __init__(self, store: AccountStore, publisher: EventPublisher) -> None:
        self._store = store
        self._repository = store.repository
        self._publisher = publisher

    def register(self, account_id: str, token: str, platform: str | Platform) -> DeviceToken:
        if not token or not platform:
            raise InvalidArgumentError("token and platform are required")
        try:
            platform = Platform(platform)
        except ValueError as exc:
            raise InvalidArgumentError("platform must be ios, android, or web") from exc

        self._store.read(account_id)
        device_token, previous_owner = self._store.write(
            account_id,
            lambda: self._repository.upsert_device_token(account_id, token, platform),
        )
        if previous_owner is not None:
            logger.info(
                "device token ownership moved from account %s to %s", previous_owner, account_id
            )
            self._store.invalidate(previous_owner)

        self._publisher.publish(
            DEVICE_TOKEN_ADDED,
            DeviceTokenAdded(
                account_id=account_id,
                device_token=device_token.token,
                platform=device_token.platform,
            ),
        )
        return device_token

    def deactivate(self, account_id: str, token: str) -> None:
        """Mark the token inactive; the row is kept."""
        if not token:
            raise InvalidArgumentError("token is required")
        matched = self._store.write(
            account_id,
            lambda: self._repository.deactivate_device_token(account_id, token),
        )
        if not matched:
            raise NotFoundError("device token", token)
        self._publisher.publish(
            DEVICE_TOKEN_REMOVED,
            DeviceTokenRemoved(account_id=account_id, device_token=token),
        )

    def list_active(self, account_id: str) -> list[DeviceToken]:
        return self._repository.list_active_device_tokens(account_id)
