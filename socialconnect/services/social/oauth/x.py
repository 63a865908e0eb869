# socialconnect/services/social/oauth/x.py

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Any, Dict, Optional

from ....constants.service_code import PLATFORM_X
from ..errors import IdentityFetchError, TokenExchangeError
from .base import AccountCandidate, Discovery, OAuthTokenClient, TokenBundle


def make_code_verifier() -> str:
    # RFC 7636: 43..128 chars from the unreserved set
    return secrets.token_urlsafe(64)[:128]


def code_challenge_s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class XTokenClient(OAuthTokenClient):
    """
    X (Twitter) OAuth 2.0 Authorization Code with PKCE (S256).

    The code_verifier travels inside the state token and comes back on
    the callback; it is dropped before anything is persisted.
    """

    provider = "x"
    scope_separator = " "

    USER_FIELDS = "profile_image_url,username,name"

    def prepare_state(self, state_payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(state_payload)
        payload["code_verifier"] = payload.get("code_verifier") or make_code_verifier()
        return payload

    def authorize_params(self, state: str, state_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope_string,
            "state": state,
            "code_challenge": code_challenge_s256(state_payload["code_verifier"]),
            "code_challenge_method": "S256",
        }

    def _token_request(self, form: Dict[str, Any], step: str) -> TokenBundle:
        resp = self._token_call(
            "POST", self.config.token_url, step,
            data=form,
            auth=(self.config.client_id, self.config.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        data = self._safe_json(resp)
        if resp.status_code >= 400 or not data.get("access_token"):
            self._raise_exchange_error(resp, data, step=step)

        return TokenBundle(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            scopes=self.split_scopes(data.get("scope"), " "),
            raw={k: v for k, v in data.items() if k not in ("access_token", "refresh_token")},
        )

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        self.require_config()
        if not code_verifier:
            raise TokenExchangeError("Missing PKCE code_verifier in OAuth state", code="PKCE_VERIFIER_MISSING")
        return self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": code_verifier,
            "client_id": self.config.client_id,
        }, step="exchange")

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        refresh_token = account.get("refresh_token")
        if not refresh_token:
            raise TokenExchangeError("Missing X refresh_token", code="REFRESH_TOKEN_MISSING")
        return self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.client_id,
        }, step="refresh")

    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        data = self._get_identity_json(
            self.api_url("/2/users/me"),
            headers={"Authorization": f"Bearer {access_token}"},
            params={"user.fields": self.USER_FIELDS},
            what="user",
        )
        return data.get("data") or {}

    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        user = self.fetch_identity(bundle.access_token)
        user_id = str(user.get("id") or "")
        if not user_id:
            raise IdentityFetchError("X user lookup returned no id")

        candidate = AccountCandidate(
            id=f"user:{user_id}",
            kind="user",
            platform=PLATFORM_X,
            platform_account_id=user_id,
            display_name=user.get("name") or user.get("username"),
            username=user.get("username"),
            external_avatar_url=user.get("profile_image_url"),
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            token_expires_at=bundle.token_expires_at,
            scopes=bundle.scopes,
            token_data={"username": user.get("username")},
            raw_profile=user,
        )
        return Discovery(candidates=[candidate], profile=user)
