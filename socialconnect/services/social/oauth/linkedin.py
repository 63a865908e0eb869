# socialconnect/services/social/oauth/linkedin.py

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ....constants.service_code import PLATFORM_LINKEDIN
from ....utils.logger import Log
from ..errors import IdentityFetchError, TokenExchangeError
from .base import AccountCandidate, Discovery, OAuthTokenClient, TokenBundle


LINKEDIN_VERSION = "202311"

ORG_ACL_PROJECTION = (
    "(elements*(roleAssignee,organization~(id,localizedName,vanityName,logoV2~(original,cropped)),role,state))"
)

PUBLISHING_ROLES = ("ADMINISTRATOR", "DIRECT_SPONSORED_CONTENT_POSTER")


def urn_suffix(urn) -> str:
    """urn:li:organization:123456 -> 123456 (plain ids pass through)."""
    return str(urn or "").split(":")[-1]


class LinkedInTokenClient(OAuthTokenClient):
    """
    LinkedIn OpenID Connect + Community Management.

    One grant exposes the member and every organization they administer, so
    discovery always ends in a manual selection step.
    """

    provider = "linkedin"
    scope_separator = " "

    def _headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
            "LinkedIn-Version": LINKEDIN_VERSION,
        }

    # ------------------------------------------------------------
    # Token
    # ------------------------------------------------------------
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
            scopes=self.split_scopes(data.get("scope")) or list(self.config.scopes),
            raw={k: v for k, v in data.items() if k not in ("access_token", "refresh_token", "id_token")},
        )

    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        self.require_config()
        return self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }, step="exchange")

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        refresh_token = account.get("refresh_token")
        if not refresh_token:
            raise TokenExchangeError("Missing LinkedIn refresh_token", code="REFRESH_TOKEN_MISSING")
        return self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }, step="refresh")

    # ------------------------------------------------------------
    # Identity / organizations
    # ------------------------------------------------------------
    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        profile = self._get_identity_json(
            self.api_url("/v2/userinfo"),
            headers={"Authorization": f"Bearer {access_token}"},
            what="profile",
        )
        if not profile.get("sub"):
            raise IdentityFetchError("LinkedIn profile response is missing sub")
        return profile

    def _logo_url(self, access_token: str, logo: Any) -> Optional[str]:
        if not isinstance(logo, dict):
            return None

        ref = logo.get("original") or logo.get("cropped")
        if isinstance(ref, dict):
            ref = ref.get("id") or ref.get("urn")
        if not isinstance(ref, str) or not ref:
            return None
        if ref.startswith("https://"):
            return ref

        try:
            resp = requests.get(
                self.api_url(f"/rest/images/{quote(ref, safe='')}"),
                headers={"Authorization": f"Bearer {access_token}", "LinkedIn-Version": LINKEDIN_VERSION},
                params={"fields": "downloadUrl"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            Log.debug(f"[oauth/linkedin.py][_logo_url] logo lookup failed: {e}")
            return None

        if resp.status_code >= 400:
            return None
        return self._safe_json(resp).get("downloadUrl")

    def fetch_linked_entities(self, access_token: str) -> List[Dict[str, Any]]:
        """
        Organizations where the member may publish (ADMINISTRATOR or
        DIRECT_SPONSORED_CONTENT_POSTER, state APPROVED).
        """
        data = self._get_secondary_json(
            f"{self.api_url('/v2/organizationAcls')}?q=roleAssignee&projection={ORG_ACL_PROJECTION}",
            headers=self._headers(access_token),
            what="organizations",
        )
        if not data or data.get("error"):
            return []

        organizations: List[Dict[str, Any]] = []
        for element in data.get("elements") or []:
            if element.get("role") not in PUBLISHING_ROLES or element.get("state") != "APPROVED":
                continue

            org = element.get("organization~") or {}
            org_id = org.get("id") or urn_suffix(element.get("organization"))
            if not org_id:
                Log.warning(f"[oauth/linkedin.py][fetch_linked_entities] organization info missing: {element}")
                continue

            organizations.append({
                "id": str(org_id),
                "localized_name": org.get("localizedName") or org.get("name") or "Unnamed Organization",
                "vanity_name": org.get("vanityName"),
                "logo_url": self._logo_url(access_token, org.get("logoV2")),
                "role": element.get("role"),
            })

        Log.info(f"[oauth/linkedin.py][fetch_linked_entities] organizations={len(organizations)}")
        return organizations

    # ------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------
    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        profile = self.fetch_identity(bundle.access_token)
        organizations = self.fetch_linked_entities(bundle.access_token)

        member_id = str(profile["sub"])
        shared = {
            "access_token": bundle.access_token,
            "refresh_token": bundle.refresh_token,
            "token_expires_at": bundle.token_expires_at,
            "scopes": bundle.scopes,
        }

        candidates = [
            AccountCandidate(
                id=f"member:{member_id}",
                kind="member",
                platform=PLATFORM_LINKEDIN,
                platform_account_id=member_id,
                display_name=profile.get("name") or " ".join(
                    p for p in (profile.get("given_name"), profile.get("family_name")) if p
                ) or member_id,
                username=profile.get("email"),
                external_avatar_url=profile.get("picture"),
                token_data={"account_type": "member", "author_urn": f"urn:li:person:{member_id}"},
                raw_profile=profile,
                **shared,
            )
        ]

        for org in organizations:
            candidates.append(AccountCandidate(
                id=f"organization:{org['id']}",
                kind="organization",
                platform=PLATFORM_LINKEDIN,
                platform_account_id=org["id"],
                display_name=org["localized_name"],
                username=org.get("vanity_name"),
                external_avatar_url=org.get("logo_url"),
                token_data={
                    "account_type": "organization",
                    "author_urn": f"urn:li:organization:{org['id']}",
                    "member_id": member_id,
                    "role": org.get("role"),
                },
                raw_profile=org,
                **shared,
            ))

        return Discovery(candidates=candidates, requires_selection=True, profile=profile)
