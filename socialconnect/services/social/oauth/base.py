# socialconnect/services/social/oauth/base.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from ....config import PlatformConfig
from ....constants.service_code import DEFAULT_LOCALE
from ....utils.helpers import strip_query_string
from ....utils.logger import Log
from ....utils.social.token_utils import expires_at_from
from ..errors import ConfigurationError, IdentityFetchError, TokenExchangeError
from ..state_codec import encode_state


GENERIC_EXCHANGE_ERROR = "Failed to exchange OAuth code"

# Secondary entity lists (orgs, boards, pages) answer these when the
# business scopes were not granted
NO_ACCESS_STATUSES = (401, 403, 404)


@dataclass
class TokenBundle:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scopes: List[str] = field(default_factory=list)
    platform_user_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def token_expires_at(self):
        return expires_at_from(self.expires_in)


@dataclass
class AccountCandidate:
    """
    One account discovered from a grant, shaped like a reconcile() input
    minus brand_id. `id` is unique within one discovery (kind:platform_account_id).
    """
    id: str
    kind: str
    platform: str
    platform_account_id: str
    access_token: str
    display_name: Optional[str] = None
    username: Optional[str] = None
    external_avatar_url: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expires_at: Any = None
    scopes: List[str] = field(default_factory=list)
    token_data: Dict[str, Any] = field(default_factory=dict)
    raw_profile: Dict[str, Any] = field(default_factory=dict)
    can_publish: Optional[bool] = None

    def to_reconcile_input(self, brand_id) -> Dict[str, Any]:
        data = {
            "brand_id": str(brand_id),
            "platform": self.platform,
            "platform_account_id": str(self.platform_account_id),
            "display_name": self.display_name,
            "username": self.username,
            "external_avatar_url": self.external_avatar_url,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_expires_at": self.token_expires_at,
            "scopes": list(self.scopes or []),
            "token_data": dict(self.token_data or {}),
            "raw_profile": dict(self.raw_profile or {}),
        }
        if self.can_publish is not None:
            data["can_publish"] = self.can_publish
        return data

    def to_public(self) -> Dict[str, Any]:
        """Selection UI view (no credentials)."""
        return {
            "id": self.id,
            "kind": self.kind,
            "platform_account_id": self.platform_account_id,
            "display_name": self.display_name,
            "username": self.username,
            "external_avatar_url": self.external_avatar_url,
        }


@dataclass
class Discovery:
    candidates: List[AccountCandidate]
    requires_selection: bool = False
    profile: Dict[str, Any] = field(default_factory=dict)


class OAuthTokenClient:
    """
    Uniform OAuth contract over each platform's wire format:

      build_authorize_url(state_payload)      -> consent screen URL
      exchange_code(code, code_verifier)      -> TokenBundle
      refresh_access_token(account)           -> TokenBundle
      fetch_identity(access_token)            -> primary profile (errors fatal)
      fetch_linked_entities(access_token)     -> pages / orgs / boards (401/403/404 -> [])
      discover_accounts(bundle)               -> Discovery (reconcile inputs)
    """

    provider: str = "unknown"
    scope_separator: str = " "
    strip_redirect_query: bool = False
    timeout: int = 30

    def __init__(self, config: PlatformConfig):
        self.config = config

    # ------------------------------------------------------------
    # Config
    # ------------------------------------------------------------
    def require_config(self):
        if not self.config.is_configured:
            Log.info(f"[oauth/base.py][{self.__class__.__name__}] {self.provider} OAuth env missing")
            raise ConfigurationError(f"{self.provider} OAuth is not configured")

    @property
    def redirect_uri(self) -> str:
        uri = self.config.redirect_uri or ""
        return strip_query_string(uri) if self.strip_redirect_query else uri

    @property
    def scope_string(self) -> str:
        return self.scope_separator.join(self.config.scopes)

    def api_url(self, path: str) -> str:
        return f"{self.config.api_base_url}/{path.lstrip('/')}"

    # ------------------------------------------------------------
    # Authorize
    # ------------------------------------------------------------
    def prepare_state(self, state_payload: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for flows that must carry extra data through the redirect (PKCE)."""
        return dict(state_payload)

    def authorize_params(self, state: str, state_payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "client_id": self.config.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope_string,
            "state": state,
        }

    def build_authorize_url(self, state_payload: Dict[str, Any], default_locale: str = DEFAULT_LOCALE) -> str:
        self.require_config()
        payload = self.prepare_state({**state_payload, "locale": state_payload.get("locale") or default_locale})
        state = encode_state(payload)
        return f"{self.config.auth_url}?{urlencode(self.authorize_params(state, payload))}"

    # ------------------------------------------------------------
    # Token endpoints
    # ------------------------------------------------------------
    def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> TokenBundle:
        raise NotImplementedError

    def refresh_access_token(self, account: Dict[str, Any]) -> TokenBundle:
        raise TokenExchangeError(f"{self.provider} does not support token refresh", code="REFRESH_NOT_SUPPORTED")

    # ------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------
    def fetch_identity(self, access_token: str) -> Dict[str, Any]:
        raise NotImplementedError

    def fetch_linked_entities(self, access_token: str) -> List[Dict[str, Any]]:
        return []

    def discover_accounts(self, bundle: TokenBundle) -> Discovery:
        raise NotImplementedError

    # ------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------
    @staticmethod
    def _safe_json(resp: requests.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            return {"raw": (resp.text or "")[:1500]}
        return data if isinstance(data, dict) else {"data": data}

    @staticmethod
    def error_message(data: Dict[str, Any], fallback: str = GENERIC_EXCHANGE_ERROR) -> str:
        """
        Platform's own words first:
          error_description > error.message > message > error > raw body > fallback
        """
        if not isinstance(data, dict):
            return fallback

        if data.get("error_description"):
            return str(data["error_description"])

        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])

        if data.get("message"):
            return str(data["message"])

        if isinstance(err, str) and err:
            return err

        if data.get("raw"):
            return str(data["raw"])[:300]

        return fallback

    def _token_call(self, method: str, url: str, step: str, **kwargs) -> requests.Response:
        """Token endpoint request; transport failures surface as TokenExchangeError."""
        try:
            return requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            Log.info(f"[oauth/base.py][{self.__class__.__name__}][{step}] token endpoint unreachable: {e}")
            raise TokenExchangeError(
                f"{self.provider} token endpoint unreachable",
                meta={"provider": self.provider, "step": step},
            )

    def _raise_exchange_error(self, resp: requests.Response, data: Dict[str, Any], step: str = "exchange"):
        message = self.error_message(data)
        Log.info(f"[oauth/base.py][{self.__class__.__name__}][{step}] http={resp.status_code} error={message}")
        raise TokenExchangeError(message, meta={"provider": self.provider, "status": resp.status_code, "step": step})

    def _get_identity_json(self, url: str, *, headers=None, params=None, what: str = "profile") -> Dict[str, Any]:
        """GET for primary identity calls: any HTTP error is fatal."""
        try:
            resp = requests.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise IdentityFetchError(f"Failed to fetch {self.provider} {what}: {e}")

        data = self._safe_json(resp)
        if resp.status_code >= 400:
            message = self.error_message(data, fallback=f"Failed to fetch {self.provider} {what}")
            Log.info(f"[oauth/base.py][{self.__class__.__name__}][identity] http={resp.status_code} error={message}")
            raise IdentityFetchError(message, meta={"provider": self.provider, "status": resp.status_code})
        return data

    def _get_secondary_json(self, url: str, *, headers=None, params=None, what: str = "entities") -> Optional[Dict[str, Any]]:
        """
        GET for secondary entity lists: 401/403/404 -> None ("no access"),
        other HTTP errors are raised.
        """
        resp = requests.get(url, headers=headers, params=params, timeout=self.timeout)
        if resp.status_code in NO_ACCESS_STATUSES:
            Log.info(f"[oauth/base.py][{self.__class__.__name__}] no access to {what} (http={resp.status_code})")
            return None

        data = self._safe_json(resp)
        if resp.status_code >= 400:
            raise IdentityFetchError(
                self.error_message(data, fallback=f"Failed to fetch {self.provider} {what}"),
                meta={"provider": self.provider, "status": resp.status_code},
            )
        return data

    @staticmethod
    def split_scopes(value, separator=None) -> List[str]:
        if not value:
            return []
        if isinstance(value, (list, tuple)):
            return [str(s) for s in value if s]
        text = str(value)
        if separator is None:
            separator = "," if "," in text else " "
        return [s.strip() for s in text.split(separator) if s.strip()]
