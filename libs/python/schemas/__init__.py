"""Shared schema exports."""

from .account import (
    AccountData,
    AccountStatus,
    EmailFrequency,
    Platform,
    PreferenceSnapshot,
)
from .events import (
    AccountCreated,
    AccountDeleted,
    AccountRegistered,
    AccountUpdated,
    DeviceTokenAdded,
    DeviceTokenRemoved,
    EventEnvelope,
    PreferencesUpdated,
)

__all__ = [
    "AccountData",
    "AccountStatus",
    "EmailFrequency",
    "Platform",
    "PreferenceSnapshot",
    "AccountCreated",
    "AccountDeleted",
    "AccountRegistered",
    "AccountUpdated",
    "DeviceTokenAdded",
    "DeviceTokenRemoved",
    "EventEnvelope",
    "PreferencesUpdated",
]
