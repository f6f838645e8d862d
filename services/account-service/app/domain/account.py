from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from schemas import (
    AccountStatus,
    EmailFrequency,
    Platform,
    PreferenceSnapshot,
)

DEFAULT_PREFERENCES: dict[str, Any] = {
    "email_enabled": True,
    "push_enabled": True,
    "sms_enabled": False,
    "email_frequency": EmailFrequency.immediate.value,
    "language": "en",
    "timezone": "UTC",
    "marketing_emails": False,
    "security_emails": True,
}

PREFERENCE_FIELDS: tuple[str, ...] = tuple(DEFAULT_PREFERENCES)


@dataclass(slots=True)
class Preference:
    """Per-account notification settings, materialised on first read."""

    account_id: str
    email_enabled: bool = True
    push_enabled: bool = True
    sms_enabled: bool = False
    email_frequency: str = EmailFrequency.immediate.value
    language: str = "en"
    timezone: str = "UTC"
    marketing_emails: bool = False
    security_emails: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_snapshot(self) -> PreferenceSnapshot:
        return PreferenceSnapshot(**asdict(self))


@dataclass(slots=True)
class DeviceToken:
    """Push token; the token string is globally unique across accounts."""

    token: str
    account_id: str
    platform: Platform
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class Account:
    """Aggregate root for account identity."""

    account_id: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    display_name: str | None = None
    status: AccountStatus = AccountStatus.active
    preferences: Preference | None = None
    device_tokens: list[DeviceToken] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.active
