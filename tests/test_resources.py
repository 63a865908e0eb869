from types import SimpleNamespace
from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import BRAND_ID, OTHER_BRAND_ID, USER_ID, WORKSPACE_ID, account_input
from socialconnect.services.social.account_service import SocialAccountService
from socialconnect.services.social.publishers.base import PublishResult
from socialconnect.services.social.state_codec import decode_state


PHOTO = {"content_type": "PHOTO", "items": [{"url": "https://cdn.example.test/a.jpg", "media_type": "IMAGE"}]}


@pytest.fixture
def tiktok_env(monkeypatch):
    monkeypatch.setenv("TIKTOK_CLIENT_ID", "tt-client")
    monkeypatch.setenv("TIKTOK_CLIENT_SECRET", "tt-secret")
    monkeypatch.setenv("TIKTOK_REDIRECT_URI", "https://api.example.com/api/v1/social/oauth/tiktok/callback")


@pytest.fixture
def connected(seed):
    return SocialAccountService().reconcile(account_input(), WORKSPACE_ID)


# ------------------------------------------------------------
# OAuth
# ------------------------------------------------------------
def test_endpoints_require_a_token(client, seed):
    resp = client.get(f"/api/v1/social/accounts?brand_id={BRAND_ID}")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "AUTH_TOKEN_MISSING"


def test_authorize_returns_consent_url(client, seed, auth_headers, tiktok_env):
    resp = client.get(f"/api/v1/social/oauth/tiktok/authorize?brand_id={BRAND_ID}&locale=en", headers=auth_headers)

    assert resp.status_code == 200
    url = resp.get_json()["data"]["authorize_url"]
    assert url.startswith("https://www.tiktok.com/v2/auth/authorize/")
    state = decode_state(parse_qs(urlsplit(url).query)["state"][0])
    assert state == {"brand_id": BRAND_ID, "workspace_id": WORKSPACE_ID, "user_id": USER_ID, "locale": "en"}


def test_authorize_unconfigured_provider(client, seed, auth_headers, monkeypatch):
    monkeypatch.delenv("LINKEDIN_CLIENT_ID", raising=False)

    resp = client.get(f"/api/v1/social/oauth/linkedin/authorize?brand_id={BRAND_ID}", headers=auth_headers)

    assert resp.status_code == 500
    assert resp.get_json()["code"] == "PLATFORM_NOT_CONFIGURED"


def test_authorize_foreign_brand_is_not_found(client, seed, auth_headers, tiktok_env):
    resp = client.get(f"/api/v1/social/oauth/tiktok/authorize?brand_id={OTHER_BRAND_ID}", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "BRAND_NOT_FOUND"


def test_callback_without_params_redirects(client, seed):
    resp = client.get("/api/v1/social/oauth/tiktok/callback")

    assert resp.status_code == 302
    assert resp.headers["Location"] == "https://app.example.com/auth/error?source=tiktok&error=missing_params"


def test_options_without_pending_list_connected_accounts(client, seed, auth_headers):
    account = SocialAccountService().reconcile(
        account_input("LINKEDIN", "org-1", token_data={"author_urn": "urn:li:organization:org-1"}), WORKSPACE_ID,
    )

    resp = client.get(f"/api/v1/social/oauth/linkedin/pending?brand_id={BRAND_ID}", headers=auth_headers)

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["has_pending"] is False
    assert [(c["id"], c["can_publish"]) for c in data["candidates"]] == [(account["id"], False)]


def test_selection_without_pending_sets_publish_flags(client, seed, auth_headers):
    account = SocialAccountService().reconcile(account_input("LINKEDIN", "org-1"), WORKSPACE_ID)

    resp = client.post("/api/v1/social/oauth/linkedin/selection", json={"brand_id": BRAND_ID, "selected_ids": ["org-1"]},
                       headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["accounts"][0]["can_publish"] is True

    resp = client.post("/api/v1/social/oauth/linkedin/selection", json={"brand_id": BRAND_ID, "selected_ids": []},
                       headers=auth_headers)
    assert resp.status_code == 200
    assert SocialAccountService().get_by_id(account["id"], WORKSPACE_ID)["can_publish"] is False


def test_selection_body_is_validated(client, seed, auth_headers):
    resp = client.post("/api/v1/social/oauth/linkedin/selection", json={"brand_id": BRAND_ID}, headers=auth_headers)
    assert resp.status_code == 422


# ------------------------------------------------------------
# Accounts
# ------------------------------------------------------------
def test_list_and_get_accounts(client, connected, auth_headers):
    resp = client.get(f"/api/v1/social/accounts?brand_id={BRAND_ID}", headers=auth_headers)

    assert resp.status_code == 200
    accounts = resp.get_json()["data"]["accounts"]
    assert [a["id"] for a in accounts] == [connected["id"]]
    assert "access_token" not in accounts[0]

    resp = client.get(f"/api/v1/social/accounts/{connected['id']}", headers=auth_headers)
    assert resp.get_json()["data"]["platform_account_id"] == "open-1"


def test_disconnect_then_delete(client, connected, auth_headers):
    resp = client.post(f"/api/v1/social/accounts/{connected['id']}/disconnect", headers=auth_headers)
    assert resp.get_json()["data"]["status"] == "REVOKED"

    resp = client.delete(f"/api/v1/social/accounts/{connected['id']}", headers=auth_headers)
    assert resp.status_code == 200

    resp = client.get(f"/api/v1/social/accounts/{connected['id']}", headers=auth_headers)
    assert resp.status_code == 404


def test_publish_is_queued(client, connected, auth_headers, monkeypatch):
    queued = []

    def fake_enqueue(func, *args, **kwargs):
        queued.append((func, args, kwargs))
        return SimpleNamespace(id="job-1")

    monkeypatch.setattr("socialconnect.resources.social.accounts_resource.enqueue", fake_enqueue)

    resp = client.post(f"/api/v1/social/accounts/{connected['id']}/publish", json=PHOTO, headers=auth_headers)

    assert resp.status_code == 202
    assert resp.get_json()["data"] == {"job_id": "job-1"}
    func, args, kwargs = queued[0]
    assert func == "socialconnect.tasks.social.publish_job.publish_to_account"
    assert args[0] == connected["id"]
    assert args[1]["content_type"] == "PHOTO"
    assert kwargs["retry"].max == 3


def test_publish_inline(client, connected, auth_headers, monkeypatch):
    class FakePublisher:
        def publish(self, account, payload):
            return PublishResult(post_id="vid-1", permalink="https://www.tiktok.com/@creator/video/vid-1")

    monkeypatch.setattr(
        "socialconnect.services.social.publish_service.get_publisher",
        lambda platform, media_resolver=None: FakePublisher(),
    )

    resp = client.post(f"/api/v1/social/accounts/{connected['id']}/publish?sync=true", json=PHOTO, headers=auth_headers)

    assert resp.status_code == 200
    assert resp.get_json()["data"]["post_id"] == "vid-1"


def test_publish_rejects_bad_payload(client, connected, auth_headers):
    resp = client.post(f"/api/v1/social/accounts/{connected['id']}/publish",
                       json={"content_type": "LINK"}, headers=auth_headers)
    assert resp.status_code == 422


def test_refresh_unknown_account(client, seed, auth_headers):
    resp = client.post("/api/v1/social/accounts/missing/refresh", headers=auth_headers)
    assert resp.status_code == 404
