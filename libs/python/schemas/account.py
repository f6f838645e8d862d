"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AccountStatus(str, Enum):
    active = "active"
    deactivated = "deactivated"


class Platform(str, Enum):
    ios = "ios"
    android = "android"
    web = "web"


class EmailFrequency(str, Enum):
    immediate = "immediate"
    daily = "daily"
    weekly = "weekly"
    never = "never"


class CamelModel(BaseModel):
    """Base for payloads consumed by other services; serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class PreferenceSnapshot(CamelModel):
    account_id: str
    email_enabled: bool
    push_enabled: bool
    sms_enabled: bool
    email_frequency: EmailFrequency
    language: str
    timezone: str
    marketing_emails: bool
    security_emails: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AccountData(CamelModel):
    """Subset of account fields carried in ``account.updated`` diffs."""

    email: str
    display_name: str | None = None
