"""Request authentication for end users and internal services."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import UnauthenticatedError, UnauthorizedError
from .tokens import TokenService

logger = logging.getLogger(__name__)


class TrustLevel(str, Enum):
    end_user = "end_user"
    internal_service = "internal_service"


@dataclass(frozen=True, slots=True)
class Caller:
    """Identity established by :class:`AccessGuard` for a single request."""

    trust: TrustLevel
    account_id: str | None = None


class AccessGuard:
    """Classifies a request as end-user (bearer token) or internal-service (shared key)."""

    def __init__(self, tokens: TokenService, internal_api_key: str) -> None:
        self._tokens = tokens
        self._internal_api_key = internal_api_key.encode("utf-8")

    def authorize(
        self,
        trust: TrustLevel,
        *,
        authorization: str | None = None,
        internal_api_key: str | None = None,
    ) -> Caller:
        """Authenticate the caller using the mode selected by ``trust``."""
        if trust is TrustLevel.internal_service:
            self.authenticate_service(internal_api_key)
            return Caller(trust=trust)
        return Caller(trust=trust, account_id=self.authenticate_user(authorization))

    def authenticate_user(self, authorization: str | None) -> str:
        """Validate an ``Authorization: Bearer`` header and return the account id."""
        if not authorization:
            raise UnauthenticatedError("missing bearer token", code="MISSING_TOKEN")
        scheme, _, token = authorization.strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise UnauthenticatedError("malformed authorization header", code="INVALID_TOKEN")
        return self._tokens.validate(token)

    def authenticate_service(self, presented_key: str | None) -> None:
        if not presented_key:
            logger.warning("internal request rejected: no api key provided")
            raise UnauthenticatedError("no internal api key provided", code="MISSING_INTERNAL_KEY")
        if not hmac.compare_digest(presented_key.encode("utf-8"), self._internal_api_key):
            logger.warning("internal request rejected: api key mismatch")
            raise UnauthorizedError("invalid internal api key", code="INVALID_INTERNAL_KEY")
