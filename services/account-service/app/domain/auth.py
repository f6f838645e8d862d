"""Registration and login workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from schemas import AccountRegistered
from schemas.events import ACCOUNT_REGISTERED

from ..errors import ConflictError, InvalidArgumentError, UnauthenticatedError
from ..messaging.publisher import EventPublisher
from ..repository import AccountRepository
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenService
from .account import Account
from .contracts import NewAccount, RegisterInput
from .service import normalise_email
from .store import AccountStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthResult:
    """An account together with a freshly issued session token."""

    account: Account
    token: str
    expires_in: int


class AuthService:
    def __init__(
        self,
        store: AccountStore,
        tokens: TokenService,
        hasher: PasswordHasher,
        publisher: EventPublisher,
    ) -> None:
        self._store = store
        self._repository: AccountRepository = store.repository
        self._tokens = tokens
        self._hasher = hasher
        self._publisher = publisher

    def register(self, payload: RegisterInput) -> AuthResult:
        """Create an active account with default preferences and sign the caller in."""
        email = normalise_email(payload.email)
        if not payload.password:
            raise InvalidArgumentError("password is required")
        if self._store.find_by_email(email) is not None:
            raise ConflictError("account with this email already exists", code="EMAIL_TAKEN")

        account = self._repository.create_account(
            NewAccount(
                email=email,
                password_hash=self._hasher.hash(payload.password),
                display_name=payload.display_name,
            )
        )
        logger.info("account %s registered", account.account_id)
        self._publisher.publish(
            ACCOUNT_REGISTERED,
            AccountRegistered(
                account_id=account.account_id,
                email=account.email,
                display_name=account.display_name,
                preferences=account.preferences.to_snapshot() if account.preferences else None,
            ),
        )
        return self._session(account)

    def login(self, email: str, password: str) -> AuthResult:
        """Exchange credentials for a token; deactivated accounts never authenticate."""
        try:
            email = normalise_email(email)
        except InvalidArgumentError as exc:
            raise UnauthenticatedError("invalid credentials", code="INVALID_CREDENTIALS") from exc
        account = self._store.find_by_email(email)
        if account is None or not account.is_active:
            raise UnauthenticatedError("invalid credentials", code="INVALID_CREDENTIALS")
        if not self._hasher.verify(password or "", account.password_hash):
            raise UnauthenticatedError("invalid credentials", code="INVALID_CREDENTIALS")
        return self._session(account)

    def profile(self, account_id: str) -> Account:
        return self._store.read(account_id)

    def _session(self, account: Account) -> AuthResult:
        return AuthResult(
            account=account,
            token=self._tokens.issue(account.account_id),
            expires_in=self._tokens.ttl_seconds,
        )
