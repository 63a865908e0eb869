import pytest
from marshmallow import ValidationError

from conftest import BRAND_ID, OTHER_BRAND_ID, OTHER_WORKSPACE_ID, USER_ID, WORKSPACE_ID, account_input, set_plan
from socialconnect.extensions.db import db
from socialconnect.models.social.social_account import SocialAccount
from socialconnect.services.social.account_service import SocialAccountService
from socialconnect.services.social.errors import NotFoundError, PlanLimitError, TokenExchangeError
from socialconnect.services.social.oauth.base import TokenBundle


class RecordingCache:
    def __init__(self):
        self.keys = []

    def invalidate(self, key):
        self.keys.append(key)


@pytest.fixture
def cache():
    return RecordingCache()


@pytest.fixture
def service(seed, cache):
    return SocialAccountService(cache=cache)


def test_reconcile_creates_active_account_with_encrypted_tokens(service, cache):
    account = service.reconcile(account_input(), WORKSPACE_ID, acting_user_id=USER_ID)

    assert account["status"] == "ACTIVE"
    assert account["can_publish"] is True
    assert account["workspace_id"] == WORKSPACE_ID
    assert "access_token" not in account

    stored = SocialAccount.get_by_id(account["id"])
    assert stored["access_token"] != "access-1"
    assert SocialAccount.to_dto_with_tokens(stored)["access_token"] == "access-1"

    assert cache.keys == [f"brand:{BRAND_ID}"]
    activity = db.get_collection("activity_logs").find_one({"type": "social_account.connected"})
    assert activity["actor_user_id"] == USER_ID
    assert activity["payload"]["platform_account_id"] == "open-1"


def test_reconnecting_an_expired_tiktok_account_updates_in_place(service):
    first = service.reconcile(account_input(), WORKSPACE_ID)
    service.mark_as_expired(first["id"], "TOKEN_EXPIRED", "expired upstream")

    second = service.reconcile(
        account_input(access_token="access-2", refresh_token="refresh-2", display_name="Renamed"),
        WORKSPACE_ID,
    )

    assert second["id"] == first["id"]
    assert second["status"] == "ACTIVE"
    assert second["display_name"] == "Renamed"
    assert second["last_error_code"] is None
    assert db.get_collection("social_accounts").count_documents({}) == 1
    assert service.get_with_tokens(first["id"])["access_token"] == "access-2"
    assert service.get_by_platform_account(BRAND_ID, "TIKTOK", "open-1")["id"] == first["id"]
    assert service.get_by_platform_account(BRAND_ID, "TIKTOK", "open-9") is None


def test_reconnect_keeps_can_publish_unless_given(service):
    created = service.reconcile(account_input(platform="LINKEDIN", platform_account_id="m-1"), WORKSPACE_ID)
    assert created["can_publish"] is False

    again = service.reconcile(account_input(platform="LINKEDIN", platform_account_id="m-1"), WORKSPACE_ID)
    assert again["can_publish"] is False

    enabled = service.reconcile(account_input(platform="LINKEDIN", platform_account_id="m-1", can_publish=True), WORKSPACE_ID)
    assert enabled["can_publish"] is True


def test_brand_of_another_workspace_is_not_found(service):
    with pytest.raises(NotFoundError) as exc:
        service.reconcile(account_input(brand_id=OTHER_BRAND_ID), WORKSPACE_ID)
    assert exc.value.code == "BRAND_NOT_FOUND"
    assert db.get_collection("social_accounts").count_documents({}) == 0


def test_accounts_are_invisible_across_workspaces(service):
    account = service.reconcile(account_input(), WORKSPACE_ID)

    with pytest.raises(NotFoundError):
        service.get_by_id(account["id"], OTHER_WORKSPACE_ID)
    with pytest.raises(NotFoundError):
        service.disconnect(account["id"], OTHER_WORKSPACE_ID)
    with pytest.raises(NotFoundError):
        service.list_by_brand(BRAND_ID, OTHER_WORKSPACE_ID)


def test_plan_limit_applies_to_new_accounts_only(service):
    service.reconcile(account_input(platform_account_id="open-1"), WORKSPACE_ID)

    with pytest.raises(PlanLimitError) as exc:
        service.reconcile(account_input(platform_account_id="open-2"), WORKSPACE_ID)
    assert exc.value.code == "PLAN_LIMIT_REACHED"
    assert exc.value.meta["limit"] == "1"

    # updating the existing account is always allowed
    service.reconcile(account_input(platform_account_id="open-1", access_token="rotated"), WORKSPACE_ID)

    # other platforms have their own allowance
    service.reconcile(account_input(platform="PINTEREST", platform_account_id="pin-1"), WORKSPACE_ID)

    set_plan("STARTER")
    service.reconcile(account_input(platform_account_id="open-2"), WORKSPACE_ID)
    assert SocialAccount.count_for_brand_platform(BRAND_ID, "TIKTOK") == 2


def test_malformed_input_is_rejected(service):
    with pytest.raises(ValidationError):
        service.reconcile(account_input(platform="MYSPACE"), WORKSPACE_ID)
    with pytest.raises(ValidationError):
        service.reconcile(account_input(access_token=""), WORKSPACE_ID)


def test_disconnect_and_delete(service, cache):
    account = service.reconcile(account_input(), WORKSPACE_ID)

    disconnected = service.disconnect(account["id"], WORKSPACE_ID, acting_user_id=USER_ID)
    assert disconnected["status"] == "REVOKED"
    assert disconnected["can_publish"] is False
    assert service.get_active_accounts_for_brand(BRAND_ID) == []

    assert service.delete(account["id"], WORKSPACE_ID, acting_user_id=USER_ID) is True
    assert service.list_by_brand(BRAND_ID, WORKSPACE_ID) == []
    assert db.get_collection("activity_logs").count_documents({"type": "social_account.deleted"}) == 1


class StubTokenClient:
    def __init__(self, bundle=None, error=None):
        self.bundle = bundle
        self.error = error
        self.seen = None

    def refresh_access_token(self, account):
        self.seen = account
        if self.error:
            raise self.error
        return self.bundle


def test_refresh_stores_new_tokens_and_keeps_refresh_token(service):
    account = service.reconcile(account_input(), WORKSPACE_ID)
    client = StubTokenClient(TokenBundle(access_token="fresh", expires_in=3600))

    refreshed = service.refresh_account_token(account["id"], client, workspace_id=WORKSPACE_ID)

    assert client.seen["refresh_token"] == "refresh-1"
    assert refreshed["token_expires_at"] is not None
    tokens = service.get_with_tokens(account["id"])
    assert tokens["access_token"] == "fresh"
    assert tokens["refresh_token"] == "refresh-1"


def test_failed_refresh_marks_account_expired(service):
    account = service.reconcile(account_input(), WORKSPACE_ID)
    client = StubTokenClient(error=TokenExchangeError("invalid_grant"))

    with pytest.raises(TokenExchangeError):
        service.refresh_account_token(account["id"], client)

    stored = service.get_by_id(account["id"], WORKSPACE_ID)
    assert stored["status"] == "EXPIRED"
    assert stored["last_error_code"] == "REFRESH_FAILED"
