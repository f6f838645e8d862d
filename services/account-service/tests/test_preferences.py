from __future__ import annotations

import threading

import pytest

from app.domain.account import DEFAULT_PREFERENCES
from app.domain.contracts import RegisterInput
from app.errors import InvalidArgumentError, NotFoundError
from schemas.events import PREFERENCES_UPDATED


@pytest.fixture()
def account_id(services) -> str:
    result = services.auth.register(RegisterInput(email="pref@example.com", password="secret-pass"))
    return result.account.account_id


def test_registration_materialises_default_preferences(services, account_id):
    preference = services.preferences.get_or_create_defaults(account_id)
    for name, value in DEFAULT_PREFERENCES.items():
        assert getattr(preference, name) == value


def test_defaults_created_on_first_read_when_row_missing(services, repository, account_id):
    del repository.preferences[account_id]

    first = services.preferences.get_or_create_defaults(account_id)
    second = services.preferences.get_or_create_defaults(account_id)

    assert first.email_enabled is True
    assert first.created_at == second.created_at
    assert list(repository.preferences) == [account_id]


def test_concurrent_first_reads_converge_on_one_row(services, repository, account_id, monkeypatch):
    del repository.preferences[account_id]
    # force every caller down the creation path at the same time
    monkeypatch.setattr(repository, "get_preference", lambda _account_id: None)

    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    errors = []

    def first_read():
        barrier.wait()
        try:
            results.append(services.preferences.get_or_create_defaults(account_id))
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=first_read) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(results) == workers
    assert len(repository.preferences) == 1
    assert len({(p.created_at, p.email_enabled, p.push_enabled) for p in results}) == 1


def test_update_changes_only_supplied_fields_and_emits_event(services, bus, account_id):
    updated = services.preferences.update_preferences(account_id, {"push_enabled": False})

    assert updated.push_enabled is False
    assert updated.email_enabled is True
    events = bus.events(PREFERENCES_UPDATED)
    assert len(events) == 1
    event = events[0]
    assert event["accountId"] == account_id
    assert event["changedFieldNames"] == ["pushEnabled"]
    assert event["oldPreferences"]["pushEnabled"] is True
    assert event["newPreferences"]["pushEnabled"] is False
    assert event["source"] == "account-service"


def test_update_is_visible_through_cached_account(services, account_id):
    services.store.read(account_id)
    services.preferences.update_preferences(account_id, {"marketing_emails": True})

    account = services.store.read(account_id)
    assert account.preferences.marketing_emails is True
    assert account.preferences.email_enabled is True


def test_update_on_missing_row_applies_over_defaults(services, repository, account_id):
    del repository.preferences[account_id]

    updated = services.preferences.update_preferences(
        account_id, {"language": "fr", "email_frequency": "weekly"}
    )

    assert updated.language == "fr"
    assert updated.email_frequency == "weekly"
    assert updated.push_enabled is True
    assert updated.timezone == "UTC"


def test_empty_update_is_a_no_op(services, bus, account_id):
    preference = services.preferences.update_preferences(account_id, {})
    assert preference.email_enabled is True
    assert bus.events(PREFERENCES_UPDATED) == []


def test_update_for_unknown_account_raises_not_found(services, bus):
    with pytest.raises(NotFoundError):
        services.preferences.update_preferences("nope", {"push_enabled": False})
    assert bus.published == []


@pytest.mark.parametrize(
    "fields",
    [
        {"favourite_colour": "blue"},
        {"push_enabled": "no"},
        {"language": ""},
        {"email_frequency": "hourly"},
    ],
)
def test_invalid_update_is_rejected(services, account_id, fields):
    with pytest.raises(InvalidArgumentError):
        services.preferences.update_preferences(account_id, fields)


def test_channel_checks_follow_preferences(services, account_id):
    assert services.preferences.can_receive_email(account_id) is True
    assert services.preferences.can_receive_push(account_id) is True

    services.preferences.update_preferences(
        account_id, {"email_enabled": False, "push_enabled": False}
    )

    assert services.preferences.can_receive_email(account_id) is False
    assert services.preferences.can_receive_push(account_id) is False
