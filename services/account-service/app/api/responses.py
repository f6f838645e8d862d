"""Response envelope, serialised views and error translation for the HTTP edge."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..domain.account import Account, DeviceToken, Preference
from ..errors import AccountServiceError, ErrorKind

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.unauthenticated: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.unauthorized: status.HTTP_403_FORBIDDEN,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.invalid_argument: status.HTTP_400_BAD_REQUEST,
    ErrorKind.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class Envelope(BaseModel):
    """Wrapper applied to every successful response."""

    success: bool = True
    message: str
    data: Any = None
    timestamp: datetime


def success(message: str, data: Any = None) -> Envelope:
    return Envelope(message=message, data=data, timestamp=datetime.now(timezone.utc))


class PreferenceResponse(BaseModel):
    account_id: str
    email_enabled: bool
    push_enabled: bool
    sms_enabled: bool
    email_frequency: str
    language: str
    timezone: str
    marketing_emails: bool
    security_emails: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, preference: Preference) -> "PreferenceResponse":
        return cls(
            account_id=preference.account_id,
            email_enabled=preference.email_enabled,
            push_enabled=preference.push_enabled,
            sms_enabled=preference.sms_enabled,
            email_frequency=preference.email_frequency,
            language=preference.language,
            timezone=preference.timezone,
            marketing_emails=preference.marketing_emails,
            security_emails=preference.security_emails,
            created_at=preference.created_at,
            updated_at=preference.updated_at,
        )


class DeviceTokenResponse(BaseModel):
    token: str
    account_id: str
    platform: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, device_token: DeviceToken) -> "DeviceTokenResponse":
        return cls(
            token=device_token.token,
            account_id=device_token.account_id,
            platform=device_token.platform.value,
            is_active=device_token.is_active,
            created_at=device_token.created_at,
            updated_at=device_token.updated_at,
        )


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` aggregate, without its password hash."""

    account_id: str
    email: str
    display_name: str | None
    status: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    preferences: PreferenceResponse | None = None
    device_tokens: list[DeviceTokenResponse] = []

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            account_id=account.account_id,
            email=account.email,
            display_name=account.display_name,
            status=account.status.value,
            is_active=account.is_active,
            created_at=account.created_at,
            updated_at=account.updated_at,
            preferences=(
                PreferenceResponse.from_domain(account.preferences) if account.preferences else None
            ),
            device_tokens=[DeviceTokenResponse.from_domain(token) for token in account.device_tokens],
        )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccountServiceError)
    async def handle_service_error(request: Request, exc: AccountServiceError) -> JSONResponse:
        status_code = _STATUS_BY_KIND[exc.kind]
        if status_code >= 500:
            logger.error("request %s %s failed: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if exc.kind is ErrorKind.unauthenticated else None
        return JSONResponse(
            status_code=status_code,
            content={
                "success": False,
                "message": exc.message,
                "error": exc.code,
                "details": exc.details,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            headers=headers,
        )
