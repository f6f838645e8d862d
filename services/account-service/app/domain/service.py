"""Account service orchestrating persistence, caching and event emission."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import EmailStr, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from schemas import AccountCreated, AccountData, AccountDeleted, AccountStatus, AccountUpdated
from schemas.events import ACCOUNT_CREATED, ACCOUNT_DELETED, ACCOUNT_UPDATED

from ..errors import ConflictError, InvalidArgumentError, NotFoundError
from ..messaging.publisher import EventPublisher
from ..security.passwords import PasswordHasher
from .account import Account, DeviceToken, Preference
from .contracts import CreateAccountInput, NewAccount, Page
from .devices import DeviceTokenRegistry
from .preferences import PreferenceManager
from .store import AccountStore

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"email", "display_name"})
_EMAIL_ADAPTER = TypeAdapter(EmailStr)


@dataclass(slots=True)
class AccountValidation:
    """Result of an internal existence check; deactivated rows are still returned."""

    account_id: str
    valid: bool
    account: Account | None = None


@dataclass(slots=True)
class ContactInfo:
    account_id: str
    email: str
    preferences: Preference
    device_tokens: list[DeviceToken] = field(default_factory=list)


class AccountService:
    """Account workflows backed by the cache-aside store."""

    def __init__(
        self,
        store: AccountStore,
        preferences: PreferenceManager,
        devices: DeviceTokenRegistry,
        publisher: EventPublisher,
        hasher: PasswordHasher,
    ) -> None:
        self._store = store
        self._repository = store.repository
        self._preferences = preferences
        self._devices = devices
        self._publisher = publisher
        self._hasher = hasher

    def create_account(self, payload: CreateAccountInput) -> Account:
        """Create an account on behalf of a user, with optional channel overrides."""
        email = normalise_email(payload.email)
        if self._store.find_by_email(email) is not None:
            raise ConflictError("account with this email already exists", code="EMAIL_TAKEN")

        overrides: dict[str, Any] = {}
        if payload.email_enabled is not None:
            overrides["email_enabled"] = payload.email_enabled
        if payload.push_enabled is not None:
            overrides["push_enabled"] = payload.push_enabled

        account = self._repository.create_account(
            NewAccount(
                email=email,
                password_hash=self._hasher.hash(payload.password),
                display_name=payload.display_name,
                preferences=overrides,
            )
        )
        logger.info("account %s created", account.account_id)
        self._publisher.publish(
            ACCOUNT_CREATED,
            AccountCreated(
                account_id=account.account_id,
                email=account.email,
                display_name=account.display_name,
                preferences=account.preferences.to_snapshot() if account.preferences else None,
            ),
        )
        return account

    def get_account(self, account_id: str) -> Account:
        return self._store.read(account_id)

    def list_accounts(self, page: int = 1, limit: int = 10) -> Page[Account]:
        return self._store.list_all(page, limit)

    def find_by_email(self, email: str) -> Account:
        account = self._store.find_by_email(normalise_email(email))
        if account is None:
            raise NotFoundError("account", email)
        return account

    def update_account(self, account_id: str, changes: dict[str, Any]) -> Account:
        """Update profile fields and emit ``account.updated`` with before/after data."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"unknown account field(s): {', '.join(sorted(unknown))}")
        if "email" in changes:
            changes = {**changes, "email": normalise_email(changes["email"])}

        previous = self._store.read(account_id)
        if not changes:
            return previous

        account = self._store.write(
            account_id,
            lambda: self._repository.update_account(account_id, changes),
        )
        if account is None:
            raise NotFoundError("account", account_id)

        self._publisher.publish(
            ACCOUNT_UPDATED,
            AccountUpdated(
                account_id=account.account_id,
                email=account.email,
                display_name=account.display_name,
                changed_field_names=[to_camel(name) for name in changes],
                old_data=AccountData(email=previous.email, display_name=previous.display_name),
                new_data=AccountData(email=account.email, display_name=account.display_name),
            ),
        )
        return account

    def remove_account(self, account_id: str) -> None:
        """Soft delete: the row is kept with ``status=deactivated``."""
        account = self._store.read(account_id)
        self._store.write(
            account_id,
            lambda: self._repository.update_account(
                account_id, {"status": AccountStatus.deactivated}
            ),
        )
        logger.info("account %s deactivated", account_id)
        self._publisher.publish(
            ACCOUNT_DELETED,
            AccountDeleted(
                account_id=account_id,
                email=account.email,
                display_name=account.display_name,
            ),
        )

    # -- reads for other services -------------------------------------

    def validate_account(self, account_id: str) -> AccountValidation:
        try:
            account = self._store.read(account_id)
        except NotFoundError:
            return AccountValidation(account_id=account_id, valid=False)
        return AccountValidation(account_id=account_id, valid=account.is_active, account=account)

    def contact_info(self, account_id: str) -> ContactInfo:
        account = self._store.read(account_id)
        return ContactInfo(
            account_id=account_id,
            email=account.email,
            preferences=self._preferences.get_or_create_defaults(account_id),
            device_tokens=self._devices.list_active(account_id),
        )


def normalise_email(email: str) -> str:
    """Validate ``email`` and return it trimmed and lowercased."""
    try:
        email = _EMAIL_ADAPTER.validate_python((email or "").strip())
    except ValidationError as exc:
        raise InvalidArgumentError("a valid email is required") from exc
    return email.lower()
