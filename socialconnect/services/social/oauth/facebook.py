# socialconnect/services/social/oauth/facebook.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ....constants.service_code import PLATFORM_FACEBOOK, PLATFORM_INSTAGRAM
from ....utils.logger import Log
from ..errors import TokenExchangeError
from .base import AccountCandidate, Discovery, OAuthTokenClient, TokenBundle


PAGE_FIELDS = "id,name,access_token,picture{url},instagram_business_account{id,username,profile_picture_url}"

# Meta long-lived user tokens live ~60 days
LONG_LIVED_DEFAULT_EXPIRES_IN = 5184000


class MetaTokenClient(OAuthTokenClient):
    """
    Facebook Login for Business.

    One grant yields a user token; every Page the user manages becomes a
    FACEBOOK account (published with the page token) and every Instagram
    business account linked to one of those Pages becomes an INSTAGRAM account.
    """

    provider = "facebook"
    scope_separator = ","

    # ------------------------------------------------------------
    # Token
    # ------------------------------------------------------------
    def _token_get(self, params: Dict[str, Any], step: str) -> Dict[str, Any]:
        resp = self._token_call("GET", self.config.token_url, step, params=params)
        data = self._safe_json(resp)
        if resp.status_code >= 400 or data.get("error") or not data.get("access_token"):
            self._raise_exchange_error(resp, data, step=step)
        return data

    def exchange_long_lived(self, access_token: str) -> Dict[str, Any]:
        return self._token_get({
            "grant_type": "fb_exchange_token",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "fb_exchange_token": access_token,
        }, step="long_lived")

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        self.require_config()
        short_lived = self._token_get({
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.redirect_uri,
            "code": code,
        }, step="exchange")

        try:
            long_lived = self.exchange_long_lived(short_lived["access_token"])
        except TokenExchangeError as e:
            Log.warning(f"[oauth/facebook.py][exchange_code] long-lived exchange failed, keeping short-lived token: {e}")
            long_lived = short_lived

        return TokenBundle(
            access_token=long_lived["access_token"],
            expires_in=long_lived.get("expires_in") or LONG_LIVED_DEFAULT_EXPIRES_IN,
            scopes=list(self.config.scopes),
            raw={"token_type": long_lived.get("token_type")},
        )

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        """
        Page accounts: fetch a fresh page token with the stored user token.
        Everything else: re-exchange the current token for a long-lived one.
        """
        token_data = account.get("token_data") or {}
        user_token = token_data.get("user_access_token")
        page_id = token_data.get("page_id")

        token = account.get("access_token")
        if account.get("platform") == PLATFORM_FACEBOOK and user_token and page_id:
            resp = self._token_call(
                "GET", self.api_url(f"/{page_id}"), "refresh",
                params={"fields": "access_token", "access_token": user_token},
            )
            data = self._safe_json(resp)
            if resp.status_code >= 400 or not data.get("access_token"):
                self._raise_exchange_error(resp, data, step="refresh")
            token = data["access_token"]

        if not token:
            raise TokenExchangeError("Missing Meta access token", code="REFRESH_TOKEN_MISSING")

        data = self.exchange_long_lived(token)
        return TokenBundle(
            access_token=data["access_token"],
            expires_in=data.get("expires_in") or LONG_LIVED_DEFAULT_EXPIRES_IN,
            scopes=list(account.get("scopes") or self.config.scopes),
        )

    # ------------------------------------------------------------
    # Identity / pages
    # ------------------------------------------------------------
    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        return self._get_identity_json(
            self.api_url("/me"),
            params={"fields": "id,name", "access_token": access_token},
            what="user",
        )

    def fetch_linked_entities(self, access_token: str) -> List[Dict[str, Any]]:
        data = self._get_secondary_json(
            self.api_url("/me/accounts"),
            params={"fields": PAGE_FIELDS, "access_token": access_token},
            what="pages",
        )
        if not data:
            return []
        return data.get("data") or []

    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        user = self.fetch_identity(bundle.access_token)
        pages = self.fetch_linked_entities(bundle.access_token)

        candidates: List[AccountCandidate] = []
        for page in pages:
            page_id = str(page.get("id") or "")
            page_token = page.get("access_token")
            if not page_id or not page_token:
                Log.warning(f"[oauth/facebook.py][discover_accounts] skipping page without id/token: {page_id}")
                continue

            picture = ((page.get("picture") or {}).get("data") or {}).get("url")
            candidates.append(AccountCandidate(
                id=f"page:{page_id}",
                kind="page",
                platform=PLATFORM_FACEBOOK,
                platform_account_id=page_id,
                display_name=page.get("name") or page_id,
                external_avatar_url=picture,
                access_token=page_token,
                token_expires_at=bundle.token_expires_at,
                scopes=bundle.scopes,
                token_data={"user_access_token": bundle.access_token, "page_id": page_id},
                raw_profile={"id": page_id, "name": page.get("name")},
            ))

            ig = page.get("instagram_business_account") or {}
            ig_id = str(ig.get("id") or "")
            if not ig_id:
                continue

            candidates.append(AccountCandidate(
                id=f"instagram:{ig_id}",
                kind="instagram",
                platform=PLATFORM_INSTAGRAM,
                platform_account_id=ig_id,
                display_name=ig.get("username") or ig_id,
                username=ig.get("username"),
                external_avatar_url=ig.get("profile_picture_url"),
                access_token=page_token,
                token_expires_at=bundle.token_expires_at,
                scopes=bundle.scopes,
                token_data={"page_id": page_id, "instagram_account_id": ig_id},
                raw_profile=dict(ig),
            ))

        Log.info(f"[oauth/facebook.py][discover_accounts] pages={len(pages)} candidates={len(candidates)}")
        return Discovery(candidates=candidates, profile=user)
