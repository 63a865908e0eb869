from urllib.parse import parse_qs, urlsplit

import pytest
from marshmallow import ValidationError

from conftest import (
    BRAND_ID,
    OTHER_BRAND_ID,
    OTHER_WORKSPACE_ID,
    USER_ID,
    WORKSPACE_ID,
    account_input,
    platform_config,
    set_plan,
)
from socialconnect.extensions.db import db
from socialconnect.models.social.pending_selection import PendingSelection
from socialconnect.services.social.callback_orchestrator import (
    GENERIC_CALLBACK_ERROR,
    OUTCOME_CONNECTED,
    OUTCOME_ERROR,
    OUTCOME_PENDING_SELECTION,
    CallbackOrchestrator,
    sanitize_error_message,
)
from socialconnect.services.social.errors import NotFoundError, PlanLimitError, TokenExchangeError
from socialconnect.services.social.oauth.base import AccountCandidate, Discovery, TokenBundle
from socialconnect.services.social.oauth.tiktok import TikTokTokenClient
from socialconnect.services.social.state_codec import decode_state, encode_state


FRONTEND = "https://app.example.com"


class FakeTokenClient:
    def __init__(self, discovery=None, exchange_error=None):
        self.discovery = discovery
        self.exchange_error = exchange_error
        self.codes = []

    def exchange_code(self, code, code_verifier=None):
        self.codes.append((code, code_verifier))
        if self.exchange_error:
            raise self.exchange_error
        return TokenBundle(access_token="grant-token", refresh_token="grant-refresh", expires_in=3600, scopes=["s"])

    def discover_accounts(self, bundle):
        return self.discovery


def tiktok_discovery():
    return Discovery(candidates=[AccountCandidate(
        id="user:open-1",
        kind="user",
        platform="TIKTOK",
        platform_account_id="open-1",
        access_token="grant-token",
        refresh_token="grant-refresh",
        display_name="Creator",
        token_data={"open_id": "open-1"},
    )])


def linkedin_discovery():
    shared = {"access_token": "grant-token", "refresh_token": "grant-refresh"}
    return Discovery(
        candidates=[
            AccountCandidate(id="member:m-1", kind="member", platform="LINKEDIN", platform_account_id="m-1",
                             display_name="Jane Doe", token_data={"author_urn": "urn:li:person:m-1"}, **shared),
            AccountCandidate(id="organization:o-1", kind="organization", platform="LINKEDIN", platform_account_id="o-1",
                             display_name="Acme Inc", token_data={"author_urn": "urn:li:organization:o-1"}, **shared),
        ],
        requires_selection=True,
        profile={"sub": "m-1", "name": "Jane Doe", "email": "jane@example.com"},
    )


def make_orchestrator(client):
    return CallbackOrchestrator(client_factory=lambda provider: client, frontend_url=FRONTEND)


def state_for(brand_id=BRAND_ID, workspace_id=WORKSPACE_ID, **extra):
    return encode_state({"brand_id": brand_id, "workspace_id": workspace_id, "user_id": USER_ID, **extra})


def query_of(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


# ------------------------------------------------------------
# Authorize
# ------------------------------------------------------------
def test_authorize_url_carries_decodable_state(seed):
    orchestrator = CallbackOrchestrator(client_factory=lambda p: TikTokTokenClient(platform_config("tiktok")))

    url = orchestrator.build_authorize_url("tiktok", BRAND_ID, WORKSPACE_ID, USER_ID)

    params = query_of(url)
    assert params["client_key"] == "client-id"
    assert params["redirect_uri"] == "https://api.example.com/social/oauth/callback"
    assert decode_state(params["state"]) == {
        "brand_id": BRAND_ID, "workspace_id": WORKSPACE_ID, "user_id": USER_ID, "locale": "tr",
    }


def test_authorize_rejects_foreign_brand(seed):
    orchestrator = CallbackOrchestrator(client_factory=lambda p: TikTokTokenClient(platform_config("tiktok")))
    with pytest.raises(NotFoundError):
        orchestrator.build_authorize_url("tiktok", OTHER_BRAND_ID, WORKSPACE_ID, USER_ID)


# ------------------------------------------------------------
# Callback
# ------------------------------------------------------------
def test_missing_code_redirects_to_auth_error(seed):
    outcome = make_orchestrator(FakeTokenClient()).handle_callback("tiktok", None, state_for())

    assert outcome.status == OUTCOME_ERROR
    assert outcome.redirect_url == f"{FRONTEND}/auth/error?source=tiktok&error=missing_params"


def test_success_reconciles_and_redirects_connected(seed):
    client = FakeTokenClient(tiktok_discovery())

    outcome = make_orchestrator(client).handle_callback("tiktok", "the-code", state_for(locale="en"))

    assert outcome.status == OUTCOME_CONNECTED
    assert outcome.redirect_url == f"{FRONTEND}/en/acme/main/social-accounts?connected=tiktok"
    assert client.codes == [("the-code", None)]
    assert [a["platform_account_id"] for a in outcome.accounts] == ["open-1"]
    assert db.get_collection("social_accounts").count_documents({"brand_id": BRAND_ID}) == 1


def test_pkce_verifier_travels_through_state(seed):
    client = FakeTokenClient(tiktok_discovery())
    make_orchestrator(client).handle_callback("x", "c", state_for(code_verifier="v" * 43))
    assert client.codes == [("c", "v" * 43)]


def test_selection_required_stages_pending_selection(seed):
    outcome = make_orchestrator(FakeTokenClient(linkedin_discovery())).handle_callback("linkedin", "c", state_for())

    assert outcome.status == OUTCOME_PENDING_SELECTION
    assert outcome.redirect_url == f"{FRONTEND}/tr/acme/main/social-accounts?select=linkedin"
    assert db.get_collection("social_accounts").count_documents({}) == 0

    stored = PendingSelection().load(BRAND_ID, "LINKEDIN")
    assert stored["access_token"] == "grant-token"
    assert [c["id"] for c in stored["candidates"]] == ["member:m-1", "organization:o-1"]


def test_provider_error_redirects_with_message(seed):
    outcome = make_orchestrator(FakeTokenClient()).handle_callback(
        "tiktok", None, state_for(), error="access_denied", error_description="User denied access",
    )

    assert outcome.redirect_url.startswith(f"{FRONTEND}/tr/acme/main/social-accounts?")
    assert query_of(outcome.redirect_url) == {"error": "tiktok_callback_failed", "message": "User denied access"}
    assert "%20" in outcome.redirect_url


def test_exchange_error_message_is_surfaced(seed):
    client = FakeTokenClient(exchange_error=TokenExchangeError("The authorization code has expired"))

    outcome = make_orchestrator(client).handle_callback("tiktok", "c", state_for())

    assert outcome.error_code == "TOKEN_EXCHANGE_FAILED"
    assert query_of(outcome.redirect_url)["message"] == "The authorization code has expired"


def test_error_redirect_falls_back_to_workspace_home(seed):
    # brand belongs to another workspace: no brand slug, workspace slug still known
    outcome = make_orchestrator(FakeTokenClient(tiktok_discovery())).handle_callback(
        "tiktok", "c", state_for(brand_id=OTHER_BRAND_ID),
    )

    assert outcome.status == OUTCOME_ERROR
    assert outcome.redirect_url.startswith(f"{FRONTEND}/tr/acme/home?")
    assert query_of(outcome.redirect_url)["message"] == "Brand not found in this workspace"


def test_error_redirect_falls_back_to_locale_root(seed):
    outcome = make_orchestrator(FakeTokenClient(tiktok_discovery())).handle_callback(
        "tiktok", "c", state_for(workspace_id="ws-missing", locale="de"),
    )
    assert outcome.redirect_url.startswith(f"{FRONTEND}/de?error=tiktok_callback_failed")


def test_workspace_mismatch_is_rejected(seed):
    outcome = make_orchestrator(FakeTokenClient(tiktok_discovery())).handle_callback(
        "tiktok", "c", state_for(), workspace_id=OTHER_WORKSPACE_ID,
    )
    assert outcome.error_code == "INVALID_OAUTH_STATE"
    assert query_of(outcome.redirect_url)["message"] == "Workspace ID mismatch in OAuth state"


def test_unexpected_errors_use_generic_message(seed):
    client = FakeTokenClient(exchange_error=RuntimeError("socket closed: access_token=abc"))

    outcome = make_orchestrator(client).handle_callback("tiktok", "c", state_for())

    assert outcome.error_message == GENERIC_CALLBACK_ERROR
    assert "abc" not in outcome.redirect_url


def meta_discovery(*accounts):
    return Discovery(candidates=[
        AccountCandidate(id=f"{platform.lower()}:{account_id}", kind=platform.lower(), platform=platform,
                         platform_account_id=account_id, access_token=f"tok-{account_id}", display_name=account_id)
        for platform, account_id in accounts
    ])


def test_rejected_candidates_do_not_stop_the_rest(seed):
    discovery = meta_discovery(
        ("FACEBOOK", "page-1"), ("INSTAGRAM", "ig-1"), ("FACEBOOK", "page-2"), ("INSTAGRAM", "ig-2"),
    )

    outcome = make_orchestrator(FakeTokenClient(discovery)).handle_callback("facebook", "c", state_for())

    assert outcome.status == OUTCOME_CONNECTED
    assert outcome.redirect_url == f"{FRONTEND}/tr/acme/main/social-accounts?connected=facebook"
    assert [a["platform_account_id"] for a in outcome.accounts] == ["page-1", "ig-1"]
    assert [(s["platform_account_id"], s["code"]) for s in outcome.skipped] == [
        ("page-2", "PLAN_LIMIT_REACHED"), ("ig-2", "PLAN_LIMIT_REACHED"),
    ]
    rows = db.get_collection("social_accounts").find({"brand_id": BRAND_ID})
    assert sorted(r["platform_account_id"] for r in rows) == ["ig-1", "page-1"]


def test_every_candidate_rejected_is_an_error(seed):
    discovery = meta_discovery(("FACEBOOK", "pending_page-1"))

    outcome = make_orchestrator(FakeTokenClient(discovery)).handle_callback("facebook", "c", state_for())

    assert outcome.status == OUTCOME_ERROR
    assert outcome.error_code == "VALIDATION_FAILED"
    assert db.get_collection("social_accounts").count_documents({}) == 0


def test_no_accounts_is_an_error(seed):
    outcome = make_orchestrator(FakeTokenClient(Discovery(candidates=[]))).handle_callback("tiktok", "c", state_for())
    assert outcome.error_code == "NO_ACCOUNTS_FOUND"


def test_sanitize_error_message_redacts_and_truncates():
    assert sanitize_error_message("failed access_token=abc123&x=1") == "failed access_token=[redacted]&x=1"
    assert len(sanitize_error_message("e" * 500)) == 200


# ------------------------------------------------------------
# Pending selection
# ------------------------------------------------------------
@pytest.fixture
def staged(seed):
    orchestrator = make_orchestrator(FakeTokenClient(linkedin_discovery()))
    orchestrator.handle_callback("linkedin", "c", state_for())
    return orchestrator


def test_pending_selection_public_view_has_no_tokens(staged):
    view = staged.get_pending_selection(BRAND_ID, "linkedin", WORKSPACE_ID)

    assert [c["id"] for c in view["candidates"]] == ["member:m-1", "organization:o-1"]
    assert view["profile"] == {"name": "Jane Doe", "email": "jane@example.com"}
    assert "grant-token" not in str(view)


def test_resolve_selection_connects_publishable_account(staged):
    accounts = staged.resolve_selection(BRAND_ID, "linkedin", ["organization:o-1"], WORKSPACE_ID, user_id=USER_ID)

    assert len(accounts) == 1
    assert accounts[0]["platform_account_id"] == "o-1"
    assert accounts[0]["can_publish"] is True
    assert PendingSelection().load(BRAND_ID, "LINKEDIN") is None

    stored = staged.accounts.get_with_tokens(accounts[0]["id"])
    assert stored["access_token"] == "grant-token"
    assert stored["token_data"]["author_urn"] == "urn:li:organization:o-1"


def test_resolve_selection_checks_plan_limit_before_writing(staged):
    with pytest.raises(PlanLimitError):
        staged.resolve_selection(BRAND_ID, "linkedin", ["member:m-1", "organization:o-1"], WORKSPACE_ID)

    assert db.get_collection("social_accounts").count_documents({}) == 0
    assert PendingSelection().load(BRAND_ID, "LINKEDIN") is not None

    set_plan("STARTER")
    accounts = staged.resolve_selection(BRAND_ID, "linkedin", ["m-1", "o-1"], WORKSPACE_ID)
    assert len(accounts) == 2


def test_resolve_selection_rejects_empty_and_unknown_ids(staged):
    with pytest.raises(ValidationError):
        staged.resolve_selection(BRAND_ID, "linkedin", [], WORKSPACE_ID)

    with pytest.raises(NotFoundError) as exc:
        staged.resolve_selection(BRAND_ID, "linkedin", ["organization:nope"], WORKSPACE_ID)
    assert exc.value.code == "SELECTED_ACCOUNT_NOT_FOUND"


def test_expired_selection_fails_gracefully(seed):
    orchestrator = make_orchestrator(FakeTokenClient())
    with pytest.raises(NotFoundError) as exc:
        orchestrator.resolve_selection(BRAND_ID, "linkedin", ["member:m-1"], WORKSPACE_ID)
    assert exc.value.code == "SELECTED_ACCOUNT_NOT_FOUND"


def test_without_pending_selection_lists_connected_accounts(seed):
    orchestrator = make_orchestrator(FakeTokenClient())
    set_plan("STARTER")
    member = orchestrator.accounts.reconcile(account_input("LINKEDIN", "m-1", can_publish=True), WORKSPACE_ID)
    org = orchestrator.accounts.reconcile(account_input("LINKEDIN", "o-1"), WORKSPACE_ID)

    view = orchestrator.get_pending_selection(BRAND_ID, "linkedin", WORKSPACE_ID)

    assert view["has_pending"] is False
    assert {c["id"]: c["can_publish"] for c in view["candidates"]} == {member["id"]: True, org["id"]: False}
    assert "access_token" not in str(view)


def test_without_pending_selection_sets_publish_flags(seed):
    orchestrator = make_orchestrator(FakeTokenClient())
    set_plan("STARTER")
    member = orchestrator.accounts.reconcile(account_input("LINKEDIN", "m-1", can_publish=True), WORKSPACE_ID)
    org = orchestrator.accounts.reconcile(account_input("LINKEDIN", "o-1"), WORKSPACE_ID)

    accounts = orchestrator.resolve_selection(BRAND_ID, "linkedin", [org["id"]], WORKSPACE_ID)

    assert {a["id"]: a["can_publish"] for a in accounts} == {member["id"]: False, org["id"]: True}

    accounts = orchestrator.resolve_selection(BRAND_ID, "linkedin", [], WORKSPACE_ID)
    assert [a["can_publish"] for a in accounts] == [False, False]

    with pytest.raises(NotFoundError) as exc:
        orchestrator.resolve_selection(BRAND_ID, "linkedin", ["o-404"], WORKSPACE_ID)
    assert exc.value.code == "SELECTED_ACCOUNT_NOT_FOUND"


def test_selection_is_scoped_to_its_workspace(staged):
    with pytest.raises(NotFoundError):
        staged.get_pending_selection(BRAND_ID, "linkedin", OTHER_WORKSPACE_ID)
