"""Explicit construction of the service graph.

The process-wide resources (database pool, redis client, broker transport)
are created by the caller and passed in, so tests can hand in fakes.
"""

from __future__ import annotations

from dataclasses import dataclass

from redis import Redis

from .cache import AccountCache
from .config import Settings
from .domain.auth import AuthService
from .domain.devices import DeviceTokenRegistry
from .domain.preferences import PreferenceManager
from .domain.service import AccountService
from .domain.store import AccountStore
from .messaging.publisher import EventPublisher
from .messaging.rabbitmq import MessageBus
from .repository import AccountRepository
from .security.guard import AccessGuard
from .security.passwords import PasswordHasher
from .security.tokens import TokenService


@dataclass(slots=True)
class Services:
    guard: AccessGuard
    store: AccountStore
    publisher: EventPublisher
    preferences: PreferenceManager
    devices: DeviceTokenRegistry
    accounts: AccountService
    auth: AuthService


def build_services(
    settings: Settings,
    *,
    repository: AccountRepository,
    cache_client: Redis,
    bus: MessageBus,
) -> Services:
    tokens = TokenService.from_settings(settings)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    publisher = EventPublisher(
        bus,
        source=settings.app_name,
        schema_version=settings.event_schema_version,
    )
    store = AccountStore(
        repository,
        AccountCache(cache_client, ttl_seconds=settings.cache_ttl_seconds),
    )
    preferences = PreferenceManager(store, publisher)
    devices = DeviceTokenRegistry(store, publisher)
    return Services(
        guard=AccessGuard(tokens, settings.internal_api_key),
        store=store,
        publisher=publisher,
        preferences=preferences,
        devices=devices,
        accounts=AccountService(store, preferences, devices, publisher, hasher),
        auth=AuthService(store, tokens, hasher, publisher),
    )
