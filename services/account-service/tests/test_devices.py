from __future__ import annotations

import pytest

from app.domain.contracts import RegisterInput
from app.errors import InvalidArgumentError, NotFoundError
from schemas import Platform
from schemas.events import DEVICE_TOKEN_ADDED, DEVICE_TOKEN_REMOVED


def _register(services, email: str) -> str:
    return services.auth.register(RegisterInput(email=email, password="secret-pass")).account.account_id


@pytest.fixture()
def owner(services) -> str:
    return _register(services, "owner@example.com")


def test_register_adds_active_token_and_emits_event(services, bus, owner):
    token = services.devices.register(owner, "tok-abc", "android")

    assert token.platform is Platform.android
    assert token.is_active is True
    assert [t.token for t in services.devices.list_active(owner)] == ["tok-abc"]
    [event] = bus.events(DEVICE_TOKEN_ADDED)
    assert event["accountId"] == owner
    assert event["deviceToken"] == "tok-abc"
    assert event["platform"] == "android"
    assert {"timestamp", "source", "version"} <= set(event)


@pytest.mark.parametrize(
    "token, platform",
    [("", "ios"), ("tok", ""), ("tok", "blackberry")],
)
def test_register_rejects_invalid_input(services, owner, token, platform):
    with pytest.raises(InvalidArgumentError):
        services.devices.register(owner, token, platform)


def test_register_for_unknown_account_raises_not_found(services):
    with pytest.raises(NotFoundError):
        services.devices.register("ghost", "tok", "ios")


def test_registering_claimed_token_moves_ownership(services, repository, owner):
    other = _register(services, "other@example.com")
    services.devices.register(owner, "shared-token", "ios")
    # warm the previous owner's cache so the transfer must invalidate it
    assert [t.token for t in services.store.read(owner).device_tokens] == ["shared-token"]

    services.devices.register(other, "shared-token", "web")

    assert services.devices.list_active(owner) == []
    moved = services.devices.list_active(other)
    assert [(t.token, t.platform) for t in moved] == [("shared-token", Platform.web)]
    assert services.store.read(owner).device_tokens == []
    assert len(repository.device_tokens) == 1


def test_deactivate_keeps_row_and_emits_event(services, repository, bus, owner):
    services.devices.register(owner, "tok-1", "ios")

    services.devices.deactivate(owner, "tok-1")

    assert services.devices.list_active(owner) == []
    assert repository.device_tokens["tok-1"].is_active is False
    removed = bus.events(DEVICE_TOKEN_REMOVED)
    assert [(e["accountId"], e["deviceToken"]) for e in removed] == [(owner, "tok-1")]


def test_reregistering_deactivated_token_reactivates_it(services, repository, owner):
    services.devices.register(owner, "tok-1", "ios")
    services.devices.deactivate(owner, "tok-1")

    services.devices.register(owner, "tok-1", "ios")

    assert repository.device_tokens["tok-1"].is_active is True
    assert [t.token for t in services.devices.list_active(owner)] == ["tok-1"]


def test_deactivate_unknown_token_raises_not_found(services, bus, owner):
    with pytest.raises(NotFoundError):
        services.devices.deactivate(owner, "never-registered")
    assert bus.events(DEVICE_TOKEN_REMOVED) == []


def test_deactivate_token_owned_by_someone_else_raises_not_found(services, owner):
    other = _register(services, "other@example.com")
    services.devices.register(other, "tok-other", "android")

    with pytest.raises(NotFoundError):
        services.devices.deactivate(owner, "tok-other")
    assert [t.token for t in services.devices.list_active(other)] == ["tok-other"]


def test_deactivate_requires_token(services, owner):
    with pytest.raises(InvalidArgumentError):
        services.devices.deactivate(owner, "")
