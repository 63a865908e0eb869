# socialconnect/services/social/oauth/pinterest.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from ....constants.service_code import PLATFORM_PINTEREST
from ....utils.logger import Log
from ..errors import TokenExchangeError
from .base import AccountCandidate, Discovery, OAuthTokenClient, TokenBundle


DEFAULT_BOARD_NAME = "All Pins"


class PinterestTokenClient(OAuthTokenClient):
    """
    Pinterest API v5.

      token:  POST form + HTTP Basic {api}/v5/oauth/token
      user:   GET /v5/user_account
      boards: GET /v5/boards (first board becomes the default pin target,
              an "All Pins" board is created when the account has none)

    {api} is api.pinterest.com or api-sandbox.pinterest.com (PINTEREST_ENV).
    """

    provider = "pinterest"
    scope_separator = ","
    strip_redirect_query = True

    def _bearer(self, access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

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
            scopes=self.split_scopes(data.get("scope")),
            raw={k: v for k, v in data.items() if k not in ("access_token", "refresh_token")},
        )

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        self.require_config()
        return self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }, step="exchange")

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        refresh_token = account.get("refresh_token")
        if not refresh_token:
            raise TokenExchangeError("Missing Pinterest refresh_token", code="REFRESH_TOKEN_MISSING")
        return self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }, step="refresh")

    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        return self._get_identity_json(
            self.api_url("/v5/user_account"),
            headers=self._bearer(access_token),
            what="user account",
        )

    def fetch_linked_entities(self, access_token: str) -> List[Dict[str, Any]]:
        data = self._get_secondary_json(
            self.api_url("/v5/boards"),
            headers=self._bearer(access_token),
            params={"page_size": 50},
            what="boards",
        )
        if not data:
            return []
        return data.get("items") or []

    def create_board(self, access_token: str, name: str = DEFAULT_BOARD_NAME) -> Optional[Dict[str, Any]]:
        resp = requests.post(
            self.api_url("/v5/boards"),
            headers={**self._bearer(access_token), "Content-Type": "application/json"},
            json={"name": name, "privacy": "PUBLIC"},
            timeout=self.timeout,
        )
        data = self._safe_json(resp)
        if resp.status_code >= 400:
            Log.warning(f"[oauth/pinterest.py][create_board] http={resp.status_code} error={self.error_message(data)}")
            return None
        return data

    def default_board(self, access_token: str) -> Optional[Dict[str, Any]]:
        boards = self.fetch_linked_entities(access_token)
        if boards:
            return boards[0]
        return self.create_board(access_token)

    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        user = self.fetch_identity(bundle.access_token)
        board = self.default_board(bundle.access_token) or {}

        account_id = str(user.get("id") or user.get("username"))
        username = user.get("username")

        candidate = AccountCandidate(
            id=f"user:{account_id}",
            kind="user",
            platform=PLATFORM_PINTEREST,
            platform_account_id=account_id,
            display_name=user.get("business_name") or username or account_id,
            username=username,
            external_avatar_url=user.get("profile_image"),
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            token_expires_at=bundle.token_expires_at,
            scopes=bundle.scopes,
            token_data={
                "board_id": board.get("id"),
                "board_name": board.get("name"),
                "account_type": user.get("account_type"),
                "environment": self.config.extra.get("environment", "production"),
            },
            raw_profile=user,
        )
        return Discovery(candidates=[candidate], profile=user)
