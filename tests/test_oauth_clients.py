from urllib.parse import parse_qs, urlsplit

import pytest
import requests
import responses

from conftest import platform_config
from socialconnect.services.social.errors import ConfigurationError, IdentityFetchError, NotFoundError, TokenExchangeError
from socialconnect.services.social.oauth.base import TokenBundle
from socialconnect.services.social.oauth.facebook import LONG_LIVED_DEFAULT_EXPIRES_IN, MetaTokenClient
from socialconnect.services.social.oauth.linkedin import LinkedInTokenClient
from socialconnect.services.social.oauth.pinterest import PinterestTokenClient
from socialconnect.services.social.oauth.registry import get_token_client, provider_for_platform
from socialconnect.services.social.oauth.tiktok import TikTokTokenClient
from socialconnect.services.social.oauth.x import XTokenClient, code_challenge_s256
from socialconnect.services.social.state_codec import decode_state


API = "https://api.example.test"
TOKEN_URL = "https://auth.example.test/token"
STATE = {"brand_id": "b1", "workspace_id": "w1", "user_id": "u1"}


def params_of(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


# ------------------------------------------------------------
# Registry
# ------------------------------------------------------------
def test_registry_rejects_unknown_provider():
    with pytest.raises(NotFoundError) as exc:
        get_token_client("myspace")
    assert exc.value.code == "PROVIDER_NOT_SUPPORTED"


def test_meta_platforms_share_one_provider():
    assert provider_for_platform("INSTAGRAM") == "facebook"
    assert provider_for_platform("facebook") == "facebook"
    with pytest.raises(NotFoundError):
        provider_for_platform("MYSPACE")


def test_unconfigured_client_refuses_to_authorize():
    client = LinkedInTokenClient(platform_config("linkedin", client_id=None))
    with pytest.raises(ConfigurationError):
        client.build_authorize_url(STATE)


# ------------------------------------------------------------
# Authorize URLs
# ------------------------------------------------------------
def test_authorize_url_keeps_redirect_query_unless_stripped():
    linkedin = params_of(LinkedInTokenClient(platform_config("linkedin")).build_authorize_url(STATE))
    assert linkedin["redirect_uri"] == "https://api.example.com/social/oauth/callback?x=1"
    assert linkedin["scope"] == "scope.a scope.b"

    tiktok = params_of(TikTokTokenClient(platform_config("tiktok")).build_authorize_url(STATE))
    assert tiktok["redirect_uri"] == "https://api.example.com/social/oauth/callback"
    assert tiktok["scope"] == "scope.a,scope.b"


def test_x_authorize_url_carries_pkce_challenge_for_state_verifier():
    url = XTokenClient(platform_config("x")).build_authorize_url(STATE, default_locale="en")
    params = params_of(url)

    state = decode_state(params["state"])
    assert state["locale"] == "en"
    assert 43 <= len(state["code_verifier"]) <= 128
    assert params["code_challenge"] == code_challenge_s256(state["code_verifier"])
    assert params["code_challenge_method"] == "S256"


# ------------------------------------------------------------
# Token exchange
# ------------------------------------------------------------
@responses.activate
def test_exchange_error_surfaces_error_description():
    responses.add(responses.POST, TOKEN_URL, status=400,
                  json={"error": "invalid_grant", "error_description": "The authorization code has expired"})

    with pytest.raises(TokenExchangeError) as exc:
        LinkedInTokenClient(platform_config("linkedin")).exchange_code("stale")

    assert exc.value.message == "The authorization code has expired"
    assert exc.value.meta["status"] == 400


@responses.activate
def test_exchange_error_with_unreadable_body_uses_raw_text():
    responses.add(responses.POST, TOKEN_URL, status=502, body="upstream unavailable")

    with pytest.raises(TokenExchangeError) as exc:
        PinterestTokenClient(platform_config("pinterest")).exchange_code("c")
    assert exc.value.message == "upstream unavailable"


@responses.activate
def test_tiktok_token_may_be_nested_under_data():
    responses.add(responses.POST, TOKEN_URL, json={"data": {
        "access_token": "act", "refresh_token": "rft", "open_id": "open-9",
        "expires_in": 86400, "scope": "user.info.basic,video.publish",
    }})

    bundle = TikTokTokenClient(platform_config("tiktok")).exchange_code("c")

    assert bundle.access_token == "act"
    assert bundle.platform_user_id == "open-9"
    assert bundle.scopes == ["user.info.basic", "video.publish"]
    assert "access_token" not in bundle.raw
    assert bundle.token_expires_at is not None


@responses.activate
def test_tiktok_error_answered_with_http_200():
    responses.add(responses.POST, TOKEN_URL, json={"error": "invalid_request", "error_description": "Code expired"})

    with pytest.raises(TokenExchangeError) as exc:
        TikTokTokenClient(platform_config("tiktok")).exchange_code("c")
    assert exc.value.message == "Code expired"


def test_x_exchange_requires_code_verifier():
    with pytest.raises(TokenExchangeError) as exc:
        XTokenClient(platform_config("x")).exchange_code("c", None)
    assert exc.value.code == "PKCE_VERIFIER_MISSING"


@responses.activate
def test_x_exchange_sends_verifier():
    responses.add(responses.POST, TOKEN_URL, json={"access_token": "x-tok", "scope": "tweet.write users.read"})

    bundle = XTokenClient(platform_config("x")).exchange_code("c", "verifier-123")

    assert bundle.scopes == ["tweet.write", "users.read"]
    assert "code_verifier=verifier-123" in responses.calls[0].request.body


def test_refresh_without_refresh_token_fails_fast():
    with pytest.raises(TokenExchangeError) as exc:
        TikTokTokenClient(platform_config("tiktok")).refresh_access_token({"refresh_token": None})
    assert exc.value.code == "REFRESH_TOKEN_MISSING"


# ------------------------------------------------------------
# Discovery
# ------------------------------------------------------------
@responses.activate
def test_linkedin_org_acl_403_means_member_only():
    responses.add(responses.GET, f"{API}/v2/userinfo", json={"sub": "m-1", "name": "Jane Doe", "email": "j@x.io"})
    responses.add(responses.GET, f"{API}/v2/organizationAcls", status=403, json={"message": "Not enough permissions"})

    discovery = LinkedInTokenClient(platform_config("linkedin")).discover_accounts(TokenBundle(access_token="t"))

    assert discovery.requires_selection is True
    assert [c.id for c in discovery.candidates] == ["member:m-1"]
    assert discovery.candidates[0].token_data["author_urn"] == "urn:li:person:m-1"


@responses.activate
def test_linkedin_lists_only_approved_publishing_roles():
    responses.add(responses.GET, f"{API}/v2/userinfo", json={"sub": "m-1", "given_name": "Jane", "family_name": "Doe"})
    responses.add(responses.GET, f"{API}/v2/organizationAcls", json={"elements": [
        {"role": "ADMINISTRATOR", "state": "APPROVED", "organization": "urn:li:organization:11",
         "organization~": {"id": 11, "localizedName": "Acme", "vanityName": "acme"}},
        {"role": "ANALYST", "state": "APPROVED", "organization": "urn:li:organization:12"},
        {"role": "ADMINISTRATOR", "state": "REQUESTED", "organization": "urn:li:organization:13"},
        {"role": "DIRECT_SPONSORED_CONTENT_POSTER", "state": "APPROVED", "organization": "urn:li:organization:14"},
    ]})

    discovery = LinkedInTokenClient(platform_config("linkedin")).discover_accounts(TokenBundle(access_token="t"))

    ids = [c.id for c in discovery.candidates]
    assert ids == ["member:m-1", "organization:11", "organization:14"]
    assert discovery.candidates[0].display_name == "Jane Doe"
    assert discovery.candidates[1].token_data["author_urn"] == "urn:li:organization:11"
    assert discovery.candidates[2].display_name == "Unnamed Organization"


@responses.activate
def test_identity_failure_is_fatal():
    responses.add(responses.GET, f"{API}/v2/userinfo", status=401, json={"message": "Invalid access token"})

    with pytest.raises(IdentityFetchError) as exc:
        LinkedInTokenClient(platform_config("linkedin")).discover_accounts(TokenBundle(access_token="t"))
    assert exc.value.message == "Invalid access token"


@responses.activate
def test_pinterest_creates_board_when_none_exist():
    responses.add(responses.GET, f"{API}/v5/user_account", json={"username": "maker", "account_type": "BUSINESS"})
    responses.add(responses.GET, f"{API}/v5/boards", json={"items": []})
    responses.add(responses.POST, f"{API}/v5/boards", json={"id": "board-1", "name": "Main"})

    discovery = PinterestTokenClient(platform_config("pinterest")).discover_accounts(TokenBundle(access_token="t"))

    candidate = discovery.candidates[0]
    assert candidate.platform_account_id == "maker"
    assert candidate.token_data["board_id"] == "board-1"
    assert candidate.token_data["environment"] == "production"


@responses.activate
def test_token_endpoint_network_failure_is_exchange_error():
    responses.add(responses.POST, TOKEN_URL, body=requests.ConnectionError("connection reset"))

    with pytest.raises(TokenExchangeError) as exc:
        LinkedInTokenClient(platform_config("linkedin")).refresh_access_token({"refresh_token": "r-1"})

    assert exc.value.meta == {"provider": "linkedin", "step": "refresh"}
    assert "connection reset" not in exc.value.message


# ------------------------------------------------------------
# Meta (Facebook Pages + Instagram business accounts)
# ------------------------------------------------------------
def meta_client():
    return MetaTokenClient(platform_config("facebook"))


@responses.activate
def test_meta_exchange_upgrades_to_long_lived_token():
    responses.add(responses.GET, TOKEN_URL, json={"access_token": "short", "expires_in": 3600})
    responses.add(responses.GET, TOKEN_URL, json={"access_token": "long", "expires_in": 5000})

    bundle = meta_client().exchange_code("c")

    assert bundle.access_token == "long"
    assert bundle.expires_in == 5000
    assert params_of(responses.calls[1].request.url)["fb_exchange_token"] == "short"
    assert params_of(responses.calls[1].request.url)["grant_type"] == "fb_exchange_token"


@responses.activate
def test_meta_exchange_keeps_short_lived_token_when_upgrade_fails():
    responses.add(responses.GET, TOKEN_URL, json={"access_token": "short"})
    responses.add(responses.GET, TOKEN_URL, status=400, json={"error": {"message": "Invalid OAuth access token"}})

    bundle = meta_client().exchange_code("c")

    assert bundle.access_token == "short"
    assert bundle.expires_in == LONG_LIVED_DEFAULT_EXPIRES_IN


@responses.activate
def test_meta_discovery_yields_pages_and_linked_instagram_accounts():
    responses.add(responses.GET, f"{API}/me", json={"id": "u-1", "name": "Jane"})
    responses.add(responses.GET, f"{API}/me/accounts", json={"data": [
        {"id": "page-1", "name": "Acme", "access_token": "page-tok-1",
         "picture": {"data": {"url": "https://cdn.example.test/p1.png"}},
         "instagram_business_account": {"id": "ig-1", "username": "acme.ig"}},
        {"id": "page-2", "name": "No token"},
        {"id": "page-3", "name": "Acme Outlet", "access_token": "page-tok-3"},
    ]})

    discovery = meta_client().discover_accounts(TokenBundle(access_token="user-tok", expires_in=5000))

    assert discovery.requires_selection is False
    assert discovery.profile == {"id": "u-1", "name": "Jane"}
    assert [(c.platform, c.platform_account_id) for c in discovery.candidates] == [
        ("FACEBOOK", "page-1"), ("INSTAGRAM", "ig-1"), ("FACEBOOK", "page-3"),
    ]

    page, ig = discovery.candidates[0], discovery.candidates[1]
    assert page.access_token == "page-tok-1"
    assert page.external_avatar_url == "https://cdn.example.test/p1.png"
    assert page.token_data == {"user_access_token": "user-tok", "page_id": "page-1"}
    assert ig.access_token == "page-tok-1"
    assert ig.username == "acme.ig"
    assert ig.token_data == {"page_id": "page-1", "instagram_account_id": "ig-1"}


@pytest.mark.parametrize("status", [401, 403, 404])
@responses.activate
def test_meta_pages_without_access_are_empty(status):
    responses.add(responses.GET, f"{API}/me/accounts", status=status, json={"error": {"message": "no access"}})
    assert meta_client().fetch_linked_entities("user-tok") == []


@responses.activate
def test_meta_page_refresh_fetches_fresh_page_token():
    responses.add(responses.GET, f"{API}/page-1", json={"id": "page-1", "access_token": "page-new"})
    responses.add(responses.GET, TOKEN_URL, json={"access_token": "page-long", "expires_in": 100})

    bundle = meta_client().refresh_access_token({
        "platform": "FACEBOOK",
        "access_token": "page-old",
        "scopes": ["pages_manage_posts"],
        "token_data": {"user_access_token": "user-tok", "page_id": "page-1"},
    })

    assert bundle.access_token == "page-long"
    assert bundle.scopes == ["pages_manage_posts"]
    assert params_of(responses.calls[0].request.url)["access_token"] == "user-tok"
    assert params_of(responses.calls[1].request.url)["fb_exchange_token"] == "page-new"
