# socialconnect/services/social/callback_orchestrator.py

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, urlencode

from marshmallow import ValidationError

from ...constants.service_code import DEFAULT_LOCALE, PROVIDER_PLATFORMS
from ...models.social.pending_selection import PendingSelection
from ...models.social.social_account import SocialAccount
from ...utils.helpers import redact_tokens, truncate
from ...utils.logger import Log
from .account_service import SocialAccountService
from .errors import IdentityFetchError, InvalidStateError, NotFoundError, SocialError
from .oauth.base import Discovery, OAuthTokenClient, TokenBundle
from .oauth.registry import get_token_client
from .ports import BrandDirectory
from .state_codec import decode_state


OUTCOME_CONNECTED = "connected"
OUTCOME_PENDING_SELECTION = "pending_selection"
OUTCOME_ERROR = "error"

GENERIC_CALLBACK_ERROR = "Unexpected error while connecting the account"


def sanitize_error_message(message) -> str:
    """Redirect-safe error text: token-looking pairs redacted, 200 chars max."""
    return truncate(redact_tokens(message), 200)


@dataclass
class CallbackOutcome:
    provider: str
    status: str
    redirect_url: str
    accounts: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class CallbackOrchestrator:
    """
    Drives one OAuth redirect from the platform back to the frontend:

      decode state -> exchange code -> discover accounts
        -> reconcile each account           (?connected=<provider>)
        -> or stage a pending selection     (?select=<provider>)

    handle_callback() never raises; every failure becomes an error redirect.
    """

    def __init__(
        self,
        account_service: Optional[SocialAccountService] = None,
        pending_store: Optional[PendingSelection] = None,
        client_factory: Optional[Callable[[str], OAuthTokenClient]] = None,
        brands: Optional[BrandDirectory] = None,
        frontend_url: Optional[str] = None,
        default_locale: str = DEFAULT_LOCALE,
    ):
        self.accounts = account_service or SocialAccountService()
        self.pending = pending_store or PendingSelection()
        self.client_factory = client_factory or get_token_client
        self.brands = brands or self.accounts.brands
        self.frontend_url = (frontend_url or os.getenv("FRONTEND_URL", "http://localhost:3000")).rstrip("/")
        self.default_locale = default_locale

    # ------------------------------------------------------------
    # Authorize
    # ------------------------------------------------------------
    def build_authorize_url(self, provider: str, brand_id, workspace_id, user_id, locale: Optional[str] = None) -> str:
        self.accounts.require_brand(brand_id, workspace_id)
        client = self.client_factory(provider)
        url = client.build_authorize_url(
            {"brand_id": brand_id, "workspace_id": workspace_id, "user_id": user_id, "locale": locale},
            default_locale=self.default_locale,
        )
        Log.info(f"[callback_orchestrator.py][build_authorize_url][{provider}][brand:{brand_id}] authorize url issued")
        return url

    # ------------------------------------------------------------
    # Redirect targets
    # ------------------------------------------------------------
    def _redirect_context(self, state: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
        """Locale and slugs for the redirect; lookups that fail just shorten the path."""
        ctx = {"locale": self.default_locale, "workspace_slug": None, "brand_slug": None}
        if not state:
            return ctx

        ctx["locale"] = state.get("locale") or self.default_locale
        try:
            workspace = self.brands.find_workspace(state.get("workspace_id"))
            if workspace:
                ctx["workspace_slug"] = workspace.get("slug")
                brand = self.brands.find_brand(state.get("brand_id"))
                if brand and str(brand.get("workspace_id")) == str(workspace.get("id")):
                    ctx["brand_slug"] = brand.get("slug")
        except Exception as e:
            Log.warning(f"[callback_orchestrator.py][_redirect_context] slug lookup failed: {e}")
        return ctx

    def _accounts_page(self, ctx: Dict[str, Optional[str]]) -> Optional[str]:
        if not ctx.get("workspace_slug") or not ctx.get("brand_slug"):
            return None
        return f"{self.frontend_url}/{ctx['locale']}/{ctx['workspace_slug']}/{ctx['brand_slug']}/social-accounts"

    def missing_params_redirect(self, provider: str) -> str:
        return f"{self.frontend_url}/auth/error?{urlencode({'source': provider, 'error': 'missing_params'})}"

    def error_redirect(self, provider: str, message, state: Optional[Dict[str, Any]] = None) -> str:
        query = urlencode({"error": f"{provider}_callback_failed", "message": sanitize_error_message(message)}, quote_via=quote)
        ctx = self._redirect_context(state)

        page = self._accounts_page(ctx)
        if page:
            return f"{page}?{query}"
        if ctx.get("workspace_slug"):
            return f"{self.frontend_url}/{ctx['locale']}/{ctx['workspace_slug']}/home?{query}"
        return f"{self.frontend_url}/{ctx['locale']}?{query}"

    def success_redirect(self, provider: str, state: Dict[str, Any], flag: str = "connected") -> str:
        ctx = self._redirect_context(state)
        page = self._accounts_page(ctx)
        if not page:
            page = f"{self.frontend_url}/{ctx['locale']}"
        return f"{page}?{urlencode({flag: provider})}"

    # ------------------------------------------------------------
    # Callback
    # ------------------------------------------------------------
    def handle_callback(
        self,
        provider: str,
        code: Optional[str],
        state: Optional[str],
        workspace_id=None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> CallbackOutcome:
        log_tag = f"[callback_orchestrator.py][CallbackOrchestrator][handle_callback][{provider}]"

        if error:
            decoded = self._decode_quietly(state)
            message = error_description or error
            Log.info(f"{log_tag} provider returned error={error}")
            return CallbackOutcome(provider, OUTCOME_ERROR, self.error_redirect(provider, message, decoded),
                                   error_code=error, error_message=sanitize_error_message(message))

        if not code or not state:
            Log.info(f"{log_tag} missing code/state")
            return CallbackOutcome(provider, OUTCOME_ERROR, self.missing_params_redirect(provider),
                                   error_code="missing_params", error_message="missing_params")

        decoded: Optional[Dict[str, Any]] = None
        try:
            decoded = decode_state(state)
            if workspace_id is not None and str(workspace_id) != decoded["workspace_id"]:
                raise InvalidStateError("Workspace ID mismatch in OAuth state")

            log_tag = f"{log_tag}[brand:{decoded['brand_id']}]"
            client = self.client_factory(provider)
            bundle = client.exchange_code(code, decoded.get("code_verifier"))
            Log.info(f"{log_tag} token exchanged")

            discovery = client.discover_accounts(bundle)
            if not discovery.candidates:
                raise IdentityFetchError(f"No {provider} account available to connect", code="NO_ACCOUNTS_FOUND")

            if discovery.requires_selection:
                self._stage_selection(provider, decoded, bundle, discovery)
                Log.info(f"{log_tag} pending selection stored candidates={len(discovery.candidates)}")
                return CallbackOutcome(provider, OUTCOME_PENDING_SELECTION,
                                       self.success_redirect(provider, decoded, flag="select"))

            accounts, skipped, failures = self._reconcile_each(discovery, decoded, log_tag)
            if not accounts:
                raise failures[0]

            Log.info(f"{log_tag} reconciled accounts={len(accounts)} skipped={len(skipped)}")
            return CallbackOutcome(provider, OUTCOME_CONNECTED, self.success_redirect(provider, decoded),
                                   accounts=accounts, skipped=skipped)

        except SocialError as e:
            Log.info(f"{log_tag} failed code={e.code} error={e.message}")
            return CallbackOutcome(provider, OUTCOME_ERROR, self.error_redirect(provider, e.message, decoded),
                                   error_code=e.code, error_message=sanitize_error_message(e.message))
        except ValidationError as e:
            Log.info(f"{log_tag} account data rejected: {e.messages}")
            message = "Invalid account data returned by the platform"
            return CallbackOutcome(provider, OUTCOME_ERROR, self.error_redirect(provider, message, decoded),
                                   error_code="VALIDATION_FAILED", error_message=message)
        except Exception as e:
            Log.error(f"{log_tag} unexpected error: {e}", exc_info=True)
            return CallbackOutcome(provider, OUTCOME_ERROR,
                                   self.error_redirect(provider, GENERIC_CALLBACK_ERROR, decoded),
                                   error_code="INTERNAL_ERROR", error_message=GENERIC_CALLBACK_ERROR)

    @staticmethod
    def _decode_quietly(state: Optional[str]) -> Optional[Dict[str, Any]]:
        if not state:
            return None
        try:
            return decode_state(state)
        except InvalidStateError:
            return None

    def _reconcile_each(self, discovery: Discovery, state: Dict[str, Any], log_tag: str):
        """
        One grant can cover several pages and Instagram accounts; each is
        connected on its own and a rejected one does not stop the rest.
        """
        accounts, skipped, failures = [], [], []
        for candidate in discovery.candidates:
            try:
                accounts.append(self.accounts.reconcile(
                    candidate.to_reconcile_input(state["brand_id"]),
                    state["workspace_id"],
                    acting_user_id=state["user_id"],
                ))
            except (SocialError, ValidationError) as e:
                code = e.code if isinstance(e, SocialError) else "VALIDATION_FAILED"
                Log.warning(f"{log_tag} {candidate.platform}:{candidate.platform_account_id} not connected code={code}")
                skipped.append({
                    "platform": candidate.platform,
                    "platform_account_id": candidate.platform_account_id,
                    "code": code,
                })
                failures.append(e)
        return accounts, skipped, failures

    def _stage_selection(self, provider: str, state: Dict[str, Any], bundle: TokenBundle, discovery: Discovery):
        # every candidate of one grant shares its credentials
        expires_at = bundle.token_expires_at
        platform = discovery.candidates[0].platform
        self.pending.save(state["brand_id"], platform, {
            "workspace_id": state["workspace_id"],
            "user_id": state["user_id"],
            "locale": state.get("locale") or self.default_locale,
            "provider": provider,
            "access_token": bundle.access_token,
            "refresh_token": bundle.refresh_token,
            "token_expires_at": expires_at.isoformat() if expires_at else None,
            "scopes": list(bundle.scopes or []),
            "profile": discovery.profile,
            "candidates": [
                {
                    **candidate.to_public(),
                    "platform": candidate.platform,
                    "token_data": candidate.token_data,
                    "raw_profile": candidate.raw_profile,
                }
                for candidate in discovery.candidates
            ],
        })

    # ------------------------------------------------------------
    # Pending selection
    # ------------------------------------------------------------
    @staticmethod
    def selection_platform(provider: str) -> str:
        platforms = PROVIDER_PLATFORMS.get((provider or "").lower())
        if not platforms:
            raise NotFoundError(f"Unsupported provider: {provider}", code="PROVIDER_NOT_SUPPORTED")
        return platforms[0]

    def _load_pending(self, brand_id, platform: str, workspace_id) -> Optional[Dict[str, Any]]:
        doc = self.pending.load(brand_id, platform)
        if not doc or str(doc.get("workspace_id")) != str(workspace_id):
            return None
        return doc

    def get_pending_selection(self, brand_id, provider: str, workspace_id) -> Dict[str, Any]:
        """
        Candidates of the staged grant, or when nothing is staged the brand's
        connected accounts of that platform with their current publish flags.
        """
        self.accounts.require_brand(brand_id, workspace_id)
        platform = self.selection_platform(provider)
        doc = self._load_pending(brand_id, platform, workspace_id)
        if doc:
            return {**PendingSelection.public_view(doc), "has_pending": True}

        accounts = self.accounts.list_by_brand(brand_id, workspace_id, platform=platform)
        return {
            "brand_id": str(brand_id),
            "platform": platform,
            "profile": {},
            "candidates": [
                {k: a.get(k) for k in ("id", "platform_account_id", "display_name", "username",
                                       "external_avatar_url", "status", "can_publish")}
                for a in accounts
            ],
            "created_at": None,
            "has_pending": False,
        }

    def resolve_selection(self, brand_id, provider: str, selected_ids: List[str], workspace_id, user_id=None) -> List[Dict[str, Any]]:
        """
        Connect the chosen candidates of a pending selection (can_publish=True)
        and drop the selection. The plan limit is checked for all new accounts
        before anything is written.

        With nothing staged, the selection sets the publish flags of the
        brand's connected accounts instead; an empty list turns them all off.
        """
        log_tag = f"[callback_orchestrator.py][CallbackOrchestrator][resolve_selection][{provider}][brand:{brand_id}]"
        self.accounts.require_brand(brand_id, workspace_id)
        platform = self.selection_platform(provider)
        doc = self._load_pending(brand_id, platform, workspace_id)

        if doc is None:
            accounts = self.accounts.set_publish_selection(brand_id, platform, selected_ids, workspace_id)
            Log.info(f"{log_tag} no pending selection, publish flags updated accounts={len(accounts)}")
            return accounts

        if not selected_ids:
            raise ValidationError({"selected_ids": ["Select at least one account"]})

        try:
            picked = PendingSelection.pick_candidates(doc, selected_ids)
        except KeyError as e:
            raise NotFoundError(f"Selected account not found: {e.args[0]}", code="SELECTED_ACCOUNT_NOT_FOUND",
                                meta={"selected_id": e.args[0]})

        new_count = sum(
            1 for c in picked
            if not SocialAccount.find_by_platform_account(brand_id, c.get("platform") or platform, c["platform_account_id"])
        )
        if new_count:
            workspace = self.accounts.require_workspace(workspace_id)
            self.accounts.ensure_can_add(workspace, brand_id, platform, adding=new_count)

        accounts = []
        for candidate in picked:
            accounts.append(self.accounts.reconcile({
                "brand_id": str(brand_id),
                "platform": candidate.get("platform") or platform,
                "platform_account_id": candidate["platform_account_id"],
                "display_name": candidate.get("display_name"),
                "username": candidate.get("username"),
                "external_avatar_url": candidate.get("external_avatar_url"),
                "access_token": doc["access_token"],
                "refresh_token": doc.get("refresh_token"),
                "token_expires_at": doc.get("token_expires_at"),
                "scopes": doc.get("scopes") or [],
                "token_data": candidate.get("token_data") or {},
                "raw_profile": candidate.get("raw_profile") or {},
                "can_publish": True,
            }, workspace_id, acting_user_id=user_id))

        self.pending.delete(brand_id, platform)
        Log.info(f"{log_tag} resolved accounts={len(accounts)}")
        return accounts
