"""Default-on-read notification preferences."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic.alias_generators import to_camel

from schemas import EmailFrequency, PreferencesUpdated
from schemas.events import PREFERENCES_UPDATED

from ..errors import InvalidArgumentError
from ..messaging.publisher import EventPublisher
from .account import PREFERENCE_FIELDS, Preference
from .store import AccountStore

logger = logging.getLogger(__name__)

_BOOLEAN_FIELDS = frozenset(
    {"email_enabled", "push_enabled", "sms_enabled", "marketing_emails", "security_emails"}
)
_STRING_FIELDS = frozenset({"language", "timezone"})
_EMAIL_FREQUENCIES = frozenset(item.value for item in EmailFrequency)


class PreferenceManager:
    """One preference row per account, created with fixed defaults on first read."""

    def __init__(self, store: AccountStore, publisher: EventPublisher) -> None:
        self._store = store
        self._repository = store.repository
        self._publisher = publisher

    def get_or_create_defaults(self, account_id: str) -> Preference:
        """Return the account's preferences, materialising the defaults if absent.

        Safe under concurrent first reads: creation is an insert-or-ignore on
        the unique ``account_id``, so every caller converges on the same row.
        """
        preference = self._repository.get_preference(account_id)
        if preference is not None:
            return preference
        preference, created = self._repository.insert_default_preference(account_id)
        if created:
            logger.info("created default preferences for account %s", account_id)
            self._store.invalidate(account_id)
        return preference

    def update_preferences(self, account_id: str, fields: Mapping[str, Any]) -> Preference:
        """Apply ``fields`` over the current row, leaving unspecified fields untouched."""
        changes = self._validate(fields)
        self._store.read(account_id)
        previous = self.get_or_create_defaults(account_id)
        if not changes:
            return previous

        updated = self._store.write(
            account_id,
            lambda: self._repository.upsert_preference(account_id, changes),
        )
        self._publisher.publish(
            PREFERENCES_UPDATED,
            PreferencesUpdated(
                account_id=account_id,
                old_preferences=previous.to_snapshot(),
                new_preferences=updated.to_snapshot(),
                changed_field_names=[to_camel(name) for name in changes],
            ),
        )
        return updated

    def can_receive_email(self, account_id: str) -> bool:
        return self.get_or_create_defaults(account_id).email_enabled

    def can_receive_push(self, account_id: str) -> bool:
        return self.get_or_create_defaults(account_id).push_enabled

    def _validate(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for name, value in fields.items():
            if name not in PREFERENCE_FIELDS:
                raise InvalidArgumentError(f"unknown preference field: {name}")
            if name in _BOOLEAN_FIELDS and not isinstance(value, bool):
                raise InvalidArgumentError(f"{name} must be a boolean")
            if name in _STRING_FIELDS and (not isinstance(value, str) or not value):
                raise InvalidArgumentError(f"{name} must be a non-empty string")
            if name == "email_frequency":
                value = getattr(value, "value", value)
                if value not in _EMAIL_FREQUENCIES:
                    raise InvalidArgumentError(
                        "email_frequency must be one of immediate, daily, weekly, never"
                    )
            changes[name] = value
        return changes
