"""Account event contracts published on the ``account.events`` topic exchange.

Every payload is a self-contained snapshot; consumers must tolerate
redelivery and must not assume ordering between events.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .account import AccountData, CamelModel, Platform, PreferenceSnapshot

ACCOUNT_REGISTERED = "account.registered"
ACCOUNT_CREATED = "account.created"
ACCOUNT_UPDATED = "account.updated"
ACCOUNT_DELETED = "account.deleted"
PREFERENCES_UPDATED = "account.preferences.updated"
DEVICE_TOKEN_ADDED = "account.device-token.added"
DEVICE_TOKEN_REMOVED = "account.device-token.removed"


class EventEnvelope(CamelModel):
    """Standard fields appended to every published payload."""

    timestamp: datetime
    source: str
    version: str


class AccountRegistered(CamelModel):
    account_id: str
    email: str
    display_name: str | None = None
    preferences: PreferenceSnapshot | None = None


class AccountCreated(AccountRegistered):
    pass


class AccountUpdated(CamelModel):
    account_id: str
    email: str
    display_name: str | None = None
    changed_field_names: list[str] = Field(default_factory=list)
    old_data: AccountData
    new_data: AccountData


class AccountDeleted(CamelModel):
    account_id: str
    email: str
    display_name: str | None = None


class PreferencesUpdated(CamelModel):
    account_id: str
    old_preferences: PreferenceSnapshot
    new_preferences: PreferenceSnapshot
    changed_field_names: list[str] = Field(default_factory=list)


class DeviceTokenAdded(CamelModel):
    account_id: str
    device_token: str
    platform: Platform


class DeviceTokenRemoved(CamelModel):
    account_id: str
    device_token: str
