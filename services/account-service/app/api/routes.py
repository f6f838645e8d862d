"""HTTP route definitions for end-user account operations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from ..container import Services
from ..domain.contracts import CreateAccountInput, RegisterInput
from ..security.guard import Caller
from .dependencies import ensure_self, get_services, require_user
from .responses import (
    AccountResponse,
    DeviceTokenResponse,
    Envelope,
    PreferenceResponse,
    success,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    display_name: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CreateAccountRequest(BaseModel):
    """Payload accepted when creating an account on behalf of a user."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    display_name: str | None = None
    email_enabled: bool | None = None
    push_enabled: bool | None = None


class UpdateAccountRequest(BaseModel):
    email: EmailStr | None = None
    display_name: str | None = None


class UpdatePreferencesRequest(BaseModel):
    """Partial preference update; omitted fields are left unchanged."""

    email_enabled: bool | None = None
    push_enabled: bool | None = None
    sms_enabled: bool | None = None
    email_frequency: str | None = None
    language: str | None = None
    timezone: str | None = None
    marketing_emails: bool | None = None
    security_emails: bool | None = None


class DeviceTokenRequest(BaseModel):
    token: str
    platform: str


class RemoveDeviceTokenRequest(BaseModel):
    token: str


class SessionResponse(BaseModel):
    """Token issuance response containing the bearer token and the account."""

    user: AccountResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# -- auth ----------------------------------------------------------------


@router.post("/auth/register", response_model=Envelope, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, services: Services = Depends(get_services)) -> Envelope:
    result = services.auth.register(
        RegisterInput(
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    )
    return success(
        "User registered successfully",
        SessionResponse(
            user=AccountResponse.from_domain(result.account),
            access_token=result.token,
            expires_in=result.expires_in,
        ),
    )


@router.post("/auth/login", response_model=Envelope)
def login(payload: LoginRequest, services: Services = Depends(get_services)) -> Envelope:
    result = services.auth.login(payload.email, payload.password)
    return success(
        "Login successful",
        SessionResponse(
            user=AccountResponse.from_domain(result.account),
            access_token=result.token,
            expires_in=result.expires_in,
        ),
    )


@router.get("/auth/profile", response_model=Envelope)
def profile(
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    account = services.auth.profile(caller.account_id)
    return success("Profile retrieved successfully", AccountResponse.from_domain(account))


# -- users -----------------------------------------------------------------


@router.post("/users", response_model=Envelope, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: CreateAccountRequest,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    account = services.accounts.create_account(
        CreateAccountInput(
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
            email_enabled=payload.email_enabled,
            push_enabled=payload.push_enabled,
        )
    )
    logger.info("account %s created by %s", account.account_id, caller.account_id)
    return success("User created successfully", AccountResponse.from_domain(account))


@router.get("/users", response_model=Envelope)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    result = services.accounts.list_accounts(page, limit)
    return success(
        "Users retrieved successfully",
        {
            "data": [AccountResponse.from_domain(account) for account in result.data],
            "meta": {
                "page": result.meta.page,
                "limit": result.meta.limit,
                "total": result.meta.total,
                "total_pages": result.meta.total_pages,
            },
        },
    )


@router.get("/users/{account_id}", response_model=Envelope)
def get_user(
    account_id: str,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    account = services.accounts.get_account(account_id)
    return success("User retrieved successfully", AccountResponse.from_domain(account))


@router.patch("/users/{account_id}", response_model=Envelope)
def update_user(
    account_id: str,
    payload: UpdateAccountRequest,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    ensure_self(caller, account_id)
    account = services.accounts.update_account(account_id, payload.model_dump(exclude_unset=True))
    return success("User updated successfully", AccountResponse.from_domain(account))


@router.delete("/users/{account_id}", response_model=Envelope)
def delete_user(
    account_id: str,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    ensure_self(caller, account_id)
    services.accounts.remove_account(account_id)
    return success("User deleted successfully")


@router.get("/users/{account_id}/preferences", response_model=Envelope)
def get_preferences(
    account_id: str,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    preference = services.preferences.get_or_create_defaults(account_id)
    return success("Preferences retrieved successfully", PreferenceResponse.from_domain(preference))


@router.patch("/users/{account_id}/preferences", response_model=Envelope)
def update_preferences(
    account_id: str,
    payload: UpdatePreferencesRequest,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    ensure_self(caller, account_id)
    preference = services.preferences.update_preferences(
        account_id, payload.model_dump(exclude_unset=True)
    )
    return success("Preferences updated successfully", PreferenceResponse.from_domain(preference))


@router.get("/users/{account_id}/can-receive-email", response_model=Envelope)
def can_receive_email(
    account_id: str,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    allowed = services.preferences.can_receive_email(account_id)
    return success("Check completed", {"can_receive_email": allowed})


@router.get("/users/{account_id}/can-receive-push", response_model=Envelope)
def can_receive_push(
    account_id: str,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    allowed = services.preferences.can_receive_push(account_id)
    return success("Check completed", {"can_receive_push": allowed})


@router.post(
    "/users/{account_id}/device-tokens",
    response_model=Envelope,
    status_code=status.HTTP_201_CREATED,
)
def add_device_token(
    account_id: str,
    payload: DeviceTokenRequest,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    ensure_self(caller, account_id)
    device_token = services.devices.register(account_id, payload.token, payload.platform)
    return success("Device token added successfully", DeviceTokenResponse.from_domain(device_token))


@router.delete("/users/{account_id}/device-tokens", response_model=Envelope)
def remove_device_token(
    account_id: str,
    payload: RemoveDeviceTokenRequest,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    ensure_self(caller, account_id)
    services.devices.deactivate(account_id, payload.token)
    return success("Device token removed successfully")


@router.get("/users/{account_id}/device-tokens", response_model=Envelope)
def list_device_tokens(
    account_id: str,
    caller: Caller = Depends(require_user),
    services: Services = Depends(get_services),
) -> Envelope:
    tokens = services.devices.list_active(account_id)
    return success(
        "Device tokens retrieved successfully",
        [DeviceTokenResponse.from_domain(token) for token in tokens],
    )
