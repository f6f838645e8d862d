from __future__ import annotations

import copy
import json
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import internal, routes
from app.api.responses import register_error_handlers
from app.config import Settings
from app.container import Services, build_services
from app.domain.account import DEFAULT_PREFERENCES, Account, DeviceToken, Preference
from app.domain.contracts import NewAccount
from app.errors import ConflictError, NotFoundError
from schemas import AccountStatus, Platform

INTERNAL_KEY = "internal-test-key"


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed behaviours.

    A single lock stands in for row-level atomicity, so upserts behave like
    ``INSERT ... ON CONFLICT``. Returned objects are copies, as rows read from
    a database would be.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.accounts: dict[str, Account] = {}
        self.preferences: dict[str, Preference] = {}
        self.device_tokens: dict[str, DeviceToken] = {}
        self.get_account_calls = 0
        self.healthy = True

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def create_account(self, payload: NewAccount) -> Account:
        with self._lock:
            if any(a.email == payload.email for a in self.accounts.values()):
                raise ConflictError("account with this email already exists", code="EMAIL_TAKEN")
            now = self._now()
            account = Account(
                account_id=str(uuid.uuid4()),
                email=payload.email,
                password_hash=payload.password_hash,
                display_name=payload.display_name,
                created_at=now,
                updated_at=now,
            )
            self.accounts[account.account_id] = account
            self.preferences[account.account_id] = Preference(
                account_id=account.account_id,
                created_at=now,
                updated_at=now,
                **{**DEFAULT_PREFERENCES, **payload.preferences},
            )
            result = replace(account)
            result.preferences = replace(self.preferences[account.account_id])
            result.device_tokens = []
            return result

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            self.get_account_calls += 1
            account = self.accounts.get(account_id)
            if account is None:
                return None
            result = replace(account)
            pref = self.preferences.get(account_id)
            result.preferences = replace(pref) if pref else None
            result.device_tokens = self.list_active_device_tokens(account_id)
            return result

    def find_by_email(self, email: str) -> Account | None:
        with self._lock:
            for account in self.accounts.values():
                if account.email == email:
                    result = replace(account)
                    pref = self.preferences.get(account.account_id)
                    result.preferences = replace(pref) if pref else None
                    result.device_tokens = []
                    return result
            return None

    def update_account(self, account_id: str, changes: dict[str, Any]) -> Account | None:
        with self._lock:
            account = self.accounts.get(account_id)
            if account is None:
                return None
            if "email" in changes and any(
                a.email == changes["email"] and a.account_id != account_id
                for a in self.accounts.values()
            ):
                raise ConflictError("account with this email already exists", code="EMAIL_TAKEN")
            for name, value in changes.items():
                setattr(account, name, AccountStatus(value) if name == "status" else value)
            account.updated_at = self._now()
            result = replace(account)
            pref = self.preferences.get(account_id)
            result.preferences = replace(pref) if pref else None
            result.device_tokens = []
            return result

    def count_accounts(self) -> int:
        return len(self.accounts)

    def list_accounts(self, *, offset: int, limit: int) -> list[Account]:
        with self._lock:
            ordered = sorted(self.accounts.values(), key=lambda a: a.created_at, reverse=True)
            return [copy.deepcopy(a) for a in ordered[offset : offset + limit]]

    def get_preference(self, account_id: str) -> Preference | None:
        with self._lock:
            pref = self.preferences.get(account_id)
            return replace(pref) if pref else None

    def insert_default_preference(self, account_id: str) -> tuple[Preference, bool]:
        with self._lock:
            if account_id not in self.accounts:
                raise NotFoundError("account", account_id)
            if account_id in self.preferences:
                return replace(self.preferences[account_id]), False
            now = self._now()
            self.preferences[account_id] = Preference(
                account_id=account_id, created_at=now, updated_at=now, **DEFAULT_PREFERENCES
            )
            return replace(self.preferences[account_id]), True

    def upsert_preference(self, account_id: str, fields: dict[str, Any]) -> Preference:
        with self._lock:
            if account_id not in self.accounts:
                raise NotFoundError("account", account_id)
            now = self._now()
            pref = self.preferences.get(account_id)
            if pref is None:
                pref = Preference(
                    account_id=account_id, created_at=now, **{**DEFAULT_PREFERENCES, **fields}
                )
            else:
                pref = replace(pref, **fields)
            pref.updated_at = now
            self.preferences[account_id] = pref
            return replace(pref)

    def upsert_device_token(
        self, account_id: str, token: str, platform: Platform
    ) -> tuple[DeviceToken, str | None]:
        with self._lock:
            if account_id not in self.accounts:
                raise NotFoundError("account", account_id)
            now = self._now()
            existing = self.device_tokens.get(token)
            previous = existing.account_id if existing and existing.account_id != account_id else None
            if existing is None:
                row = DeviceToken(
                    token=token, account_id=account_id, platform=platform, created_at=now, updated_at=now
                )
            else:
                row = replace(existing, account_id=account_id, platform=platform, is_active=True, updated_at=now)
            self.device_tokens[token] = row
            return replace(row), previous

    def deactivate_device_token(self, account_id: str, token: str) -> int:
        with self._lock:
            row = self.device_tokens.get(token)
            if row is None or row.account_id != account_id:
                return 0
            row.is_active = False
            row.updated_at = self._now()
            return 1

    def list_active_device_tokens(self, account_id: str) -> list[DeviceToken]:
        with self._lock:
            return [
                replace(row)
                for row in self.device_tokens.values()
                if row.account_id == account_id and row.is_active
            ]

    def ping(self) -> bool:
        return self.healthy


class FakeBus:
    """Message bus double recording every published event."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.declared: list[str] = []

    def ensure_durable_topic(self, name: str) -> None:
        self.declared.append(name)

    def publish(self, routing_key: str, body: str, persistent: bool = True) -> bool:
        assert persistent
        if not self.connected:
            return False
        self.published.append((routing_key, json.loads(body)))
        return True

    def health_probe(self) -> bool:
        return self.connected

    def events(self, routing_key: str) -> list[dict[str, Any]]:
        return [body for key, body in self.published if key == routing_key]


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        jwt_secret="test-secret",
        jwt_issuer="account-service-test",
        jwt_ttl_seconds=3600,
        internal_api_key=INTERNAL_KEY,
        bcrypt_rounds=4,
        cache_ttl_seconds=300,
    )


@pytest.fixture()
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


@pytest.fixture()
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture()
def services(settings, repository, redis_client, bus) -> Services:
    return build_services(settings, repository=repository, cache_client=redis_client, bus=bus)


@pytest.fixture()
def api_client(services):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(routes.router)
    app.include_router(internal.router)
    app.state.services = services

    with TestClient(app) as client:
        yield client


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
