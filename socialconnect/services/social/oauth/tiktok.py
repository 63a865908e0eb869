# socialconnect/services/social/oauth/tiktok.py

from __future__ import annotations

from typing import Any, Dict, Optional

from ....constants.service_code import PLATFORM_TIKTOK
from ..errors import IdentityFetchError, TokenExchangeError
from .base import AccountCandidate, Discovery, OAuthTokenClient, TokenBundle


class TikTokTokenClient(OAuthTokenClient):
    """
    TikTok Login Kit v2.

      authorize: https://www.tiktok.com/v2/auth/authorize/   (client_key, comma scopes)
      token:     POST form https://open.tiktokapis.com/v2/oauth/token/
      user:      GET  /v2/user/info/?fields=open_id,union_id,display_name,avatar_url

    Token responses may be flat or nested under "data", and TikTok answers
    some errors with HTTP 200, so the body is checked too.
    """

    provider = "tiktok"
    scope_separator = ","
    strip_redirect_query = True

    USER_FIELDS = "open_id,union_id,display_name,avatar_url"

    def authorize_params(self, state: str, state_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "client_key": self.config.client_id,
            "scope": self.scope_string,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "state": state,
        }

    def _token_request(self, form: Dict[str, Any], step: str) -> TokenBundle:
        resp = self._token_call(
            "POST", self.config.token_url, step,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        data = self._safe_json(resp)
        payload = data.get("data") if isinstance(data.get("data"), dict) else data

        if resp.status_code >= 400 or (payload.get("error") and payload.get("error") != "ok"):
            self._raise_exchange_error(resp, payload, step=step)

        access_token = payload.get("access_token")
        open_id = payload.get("open_id")
        if not access_token or not open_id:
            raise TokenExchangeError(
                "TikTok token response is missing access_token/open_id",
                meta={"provider": self.provider, "step": step},
            )

        return TokenBundle(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
            scopes=self.split_scopes(payload.get("scope"), ","),
            platform_user_id=str(open_id),
            raw={k: v for k, v in payload.items() if k not in ("access_token", "refresh_token")},
        )

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        self.require_config()
        return self._token_request({
            "client_key": self.config.client_id,
            "client_secret": self.config.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }, step="exchange")

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        refresh_token = account.get("refresh_token")
        if not refresh_token:
            raise TokenExchangeError("Missing TikTok refresh_token", code="REFRESH_TOKEN_MISSING")
        return self._token_request({
            "client_key": self.config.client_id,
            "client_secret": self.config.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }, step="refresh")

    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        data = self._get_identity_json(
            self.api_url("/v2/user/info/"),
            headers={"Authorization": f"Bearer {access_token}"},
            params={"fields": self.USER_FIELDS},
            what="user info",
        )

        err = data.get("error") or {}
        if isinstance(err, dict) and err.get("code") not in (None, "ok", 0, "0"):
            raise IdentityFetchError(err.get("message") or "Failed to fetch TikTok user info")

        return ((data.get("data") or {}).get("user")) or {}

    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        user = self.fetch_identity(bundle.access_token)
        open_id = str(user.get("open_id") or bundle.platform_user_id)
        display_name = user.get("display_name")

        candidate = AccountCandidate(
            id=f"user:{open_id}",
            kind="user",
            platform=PLATFORM_TIKTOK,
            platform_account_id=open_id,
            display_name=display_name or open_id,
            username=display_name,
            external_avatar_url=user.get("avatar_url"),
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            token_expires_at=bundle.token_expires_at,
            scopes=bundle.scopes,
            token_data={
                "open_id": open_id,
                "union_id": user.get("union_id"),
                "refresh_expires_in": bundle.raw.get("refresh_expires_in"),
            },
            raw_profile=user,
        )
        return Discovery(candidates=[candidate], profile=user)
