"""Issuing and validating session JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import Settings
from ..errors import UnauthenticatedError

_ALGORITHM = "HS256"


class TokenService:
    """Stateless HS256 session tokens.

    There is no revocation list: a token stays valid until its ``exp`` even if
    the account is deactivated in the meantime.
    """

    def __init__(self, *, secret: str, issuer: str, ttl_seconds: int) -> None:
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            ttl_seconds=settings.jwt_ttl_seconds,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account_id: str) -> str:
        """Create a signed token whose subject is ``account_id``.

        Parameters
        ----------
        account_id:
            Account identifier to embed in the `sub` claim.

        Returns
        -------
        str
            The encoded JWT.
        """
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account_id,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def validate(self, token: str) -> str:
        """Verify ``token`` and return the account id it was issued for.

        Raises
        ------
        UnauthenticatedError
            When the signature, structure, issuer or expiry check fails.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise UnauthenticatedError("token expired", code="TOKEN_EXPIRED") from exc
        except jwt.PyJWTError as exc:
            raise UnauthenticatedError("invalid token", code="INVALID_TOKEN") from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise UnauthenticatedError("invalid token", code="INVALID_TOKEN")
        return subject
