# socialconnect/services/social/oauth/youtube.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ....constants.service_code import PLATFORM_YOUTUBE
from ..errors import IdentityFetchError, TokenExchangeError
from .base import AccountCandidate, Discovery, OAuthTokenClient, TokenBundle


class YouTubeTokenClient(OAuthTokenClient):
    """
    Google OAuth2 + YouTube Data API v3.

    access_type=offline and prompt=consent are always sent, otherwise Google
    omits the refresh_token on reconnect. Every channel the grant can see is
    connected as its own account.
    """

    provider = "youtube"
    scope_separator = " "
    strip_redirect_query = True

    def authorize_params(self, state: str, state_payload: Dict[str, Any]) -> Dict[str, Any]:
        params = super().authorize_params(state, state_payload)
        params.update({
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
        })
        return params

    def _token_request(self, form: Dict[str, Any], step: str) -> TokenBundle:
        resp = self._token_call(
            "POST", self.config.token_url, step,
            data=form,
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
            raw={k: v for k, v in data.items() if k not in ("access_token", "refresh_token", "id_token")},
        )

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        self.require_config()
        return self._token_request({
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }, step="exchange")

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        refresh_token = account.get("refresh_token")
        if not refresh_token:
            raise TokenExchangeError("Missing YouTube refresh_token", code="REFRESH_TOKEN_MISSING")
        bundle = self._token_request({
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }, step="refresh")
        # Google does not rotate refresh tokens
        bundle.refresh_token = bundle.refresh_token or refresh_token
        return bundle

    def list_channels(self, access_token: str) -> List[Dict[str, Any]]:
        data = self._get_identity_json(
            self.api_url("/youtube/v3/channels"),
            headers={"Authorization": f"Bearer {access_token}"},
            params={"part": "snippet,contentDetails,statistics", "mine": "true"},
            what="channels",
        )
        return data.get("items") or []

    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        channels = self.list_channels(access_token)
        if not channels:
            raise IdentityFetchError("No YouTube channel found for this Google account", code="YOUTUBE_NO_CHANNEL")
        return channels[0]

    def fetch_linked_entities(self, access_token: str) -> List[Dict[str, Any]]:
        return self.list_channels(access_token)

    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        channels = self.list_channels(bundle.access_token)
        if not channels:
            raise IdentityFetchError("No YouTube channel found for this Google account", code="YOUTUBE_NO_CHANNEL")

        candidates = []
        for channel in channels:
            channel_id = str(channel.get("id") or "")
            if not channel_id:
                continue
            snippet = channel.get("snippet") or {}
            thumbnails = snippet.get("thumbnails") or {}
            avatar = (thumbnails.get("high") or thumbnails.get("medium") or thumbnails.get("default") or {}).get("url")
            uploads = ((channel.get("contentDetails") or {}).get("relatedPlaylists") or {}).get("uploads")

            candidates.append(AccountCandidate(
                id=f"channel:{channel_id}",
                kind="channel",
                platform=PLATFORM_YOUTUBE,
                platform_account_id=channel_id,
                display_name=snippet.get("title") or channel_id,
                username=snippet.get("customUrl"),
                external_avatar_url=avatar,
                access_token=bundle.access_token,
                refresh_token=bundle.refresh_token,
                token_expires_at=bundle.token_expires_at,
                scopes=bundle.scopes,
                token_data={"channel_id": channel_id, "uploads_playlist_id": uploads},
                raw_profile=channel,
            ))

        return Discovery(candidates=candidates, profile=channels[0])
