"""Service-to-service routes guarded by the shared internal API key."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..container import Services
from .dependencies import get_services, require_internal_service
from .responses import AccountResponse, DeviceTokenResponse, Envelope, PreferenceResponse, success

router = APIRouter(
    prefix="/v1/internal/users",
    tags=["internal"],
    dependencies=[Depends(require_internal_service)],
)


@router.get("/by-email/{email}", response_model=Envelope)
def get_by_email(email: str, services: Services = Depends(get_services)) -> Envelope:
    account = services.accounts.find_by_email(email)
    return success("User found", AccountResponse.from_domain(account))


@router.get("/{account_id}/validate", response_model=Envelope)
def validate_user(account_id: str, services: Services = Depends(get_services)) -> Envelope:
    """Report whether the account exists and is active; deactivated rows are still returned."""
    result = services.accounts.validate_account(account_id)
    if result.account is None:
        return success("User validation failed", {"valid": False, "account_id": account_id})
    return success(
        "User validated" if result.valid else "User validation failed",
        {
            "valid": result.valid,
            "account_id": account_id,
            "account": AccountResponse.from_domain(result.account),
        },
    )


@router.get("/{account_id}/notification-preferences", response_model=Envelope)
def notification_preferences(account_id: str, services: Services = Depends(get_services)) -> Envelope:
    services.accounts.get_account(account_id)
    preference = services.preferences.get_or_create_defaults(account_id)
    return success(
        "Preferences retrieved",
        {
            "account_id": account_id,
            "email_enabled": preference.email_enabled,
            "push_enabled": preference.push_enabled,
            "preferences": PreferenceResponse.from_domain(preference),
        },
    )


@router.get("/{account_id}/contact-info", response_model=Envelope)
def contact_info(account_id: str, services: Services = Depends(get_services)) -> Envelope:
    info = services.accounts.contact_info(account_id)
    return success(
        "Contact info retrieved",
        {
            "account_id": info.account_id,
            "email": info.email,
            "preferences": PreferenceResponse.from_domain(info.preferences),
            "device_tokens": [DeviceTokenResponse.from_domain(token) for token in info.device_tokens],
        },
    )


@router.get("/{account_id}/notification-profile", response_model=Envelope)
def notification_profile(account_id: str, services: Services = Depends(get_services)) -> Envelope:
    info = services.accounts.contact_info(account_id)
    return success(
        "Notification profile retrieved",
        {
            "account_id": info.account_id,
            "email": info.email,
            "preferences": PreferenceResponse.from_domain(info.preferences),
            "device_tokens": [DeviceTokenResponse.from_domain(token) for token in info.device_tokens],
        },
    )


@router.get("/{account_id}/device-tokens", response_model=Envelope)
def device_tokens(account_id: str, services: Services = Depends(get_services)) -> Envelope:
    tokens = services.devices.list_active(account_id)
    return success(
        "Device tokens retrieved",
        {
            "account_id": account_id,
            "tokens": [DeviceTokenResponse.from_domain(token) for token in tokens],
        },
    )
