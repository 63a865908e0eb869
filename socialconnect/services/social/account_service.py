# socialconnect/services/social/account_service.py

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from marshmallow import ValidationError

from ...constants.service_code import (
    ACTIVITY_CONNECTED,
    ACTIVITY_DELETED,
    ACTIVITY_DISCONNECTED,
    ACTIVITY_RECONNECTED,
    ACTOR_INTEGRATION,
    ACTOR_USER,
    MANUAL_PUBLISH_PLATFORMS,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_REVOKED,
)
from ...models.base_model import utcnow
from ...models.social.social_account import SocialAccount
from ...schemas.social.oauth_schema import ReconcileInputSchema
from ...utils.logger import Log
from ...utils.social.token_utils import expires_at_from
from .errors import NotFoundError, PlanLimitError, TokenExchangeError
from .ports import ActivitySink, BrandDirectory, CacheInvalidator, PlanLimits


def default_can_publish(platform: str) -> bool:
    return platform not in MANUAL_PUBLISH_PLATFORMS


def brand_cache_key(brand_id) -> str:
    return f"brand:{brand_id}"


class SocialAccountService:
    """
    Sole writer of social_accounts.

    reconcile() is the create-or-update choke point used by every OAuth
    callback; the remaining operations cover the account lifecycle
    (expire, disconnect, token updates, delete) and the read side.
    """

    def __init__(
        self,
        brands: Optional[BrandDirectory] = None,
        plans: Optional[PlanLimits] = None,
        cache: Optional[CacheInvalidator] = None,
        activity: Optional[ActivitySink] = None,
    ):
        self.brands = brands or BrandDirectory()
        self.plans = plans or PlanLimits()
        self.cache = cache or CacheInvalidator()
        self.activity = activity or ActivitySink()

    # ------------------------------------------------------------
    # Tenancy
    # ------------------------------------------------------------
    def require_brand(self, brand_id, workspace_id) -> Dict[str, Any]:
        brand = self.brands.find_brand(brand_id)
        if not brand or str(brand.get("workspace_id")) != str(workspace_id):
            raise NotFoundError("Brand not found in this workspace", code="BRAND_NOT_FOUND",
                                meta={"brand_id": str(brand_id)})
        return brand

    def require_workspace(self, workspace_id) -> Dict[str, Any]:
        workspace = self.brands.find_workspace(workspace_id)
        if not workspace:
            raise NotFoundError("Workspace not found", code="WORKSPACE_NOT_FOUND",
                                meta={"workspace_id": str(workspace_id)})
        return workspace

    def _require_account(self, account_id, workspace_id=None) -> Dict[str, Any]:
        doc = SocialAccount.get_by_id(account_id)
        if not doc or (workspace_id is not None and str(doc.get("workspace_id")) != str(workspace_id)):
            raise NotFoundError("Social account not found", code="SOCIAL_ACCOUNT_NOT_FOUND",
                                meta={"account_id": str(account_id)})
        return doc

    # ------------------------------------------------------------
    # Fire-and-forget side effects
    # ------------------------------------------------------------
    def _invalidate_brand_cache(self, brand_id, log_tag: str):
        try:
            self.cache.invalidate(brand_cache_key(brand_id))
        except Exception as e:
            Log.warning(f"{log_tag} brand cache invalidation failed: {e}")

    def _emit_activity(self, event_type: str, doc: Dict[str, Any], acting_user_id, log_tag: str, payload=None):
        event = {
            "type": event_type,
            "workspace_id": doc.get("workspace_id"),
            "brand_id": doc.get("brand_id"),
            "actor_type": ACTOR_USER if acting_user_id else ACTOR_INTEGRATION,
            "actor_user_id": str(acting_user_id) if acting_user_id else None,
            "payload": {
                "social_account_id": str(doc["_id"]),
                "platform": doc.get("platform"),
                "platform_account_id": doc.get("platform_account_id"),
                "display_name": doc.get("display_name"),
                **(payload or {}),
            },
        }
        try:
            self.activity.log_activity(event)
        except Exception as e:
            Log.warning(f"{log_tag} activity log failed ({event_type}): {e}")

    # ------------------------------------------------------------
    # Plan limit
    # ------------------------------------------------------------
    def ensure_can_add(self, workspace: Dict[str, Any], brand_id, platform, adding: int = 1):
        """
        Raise PlanLimitError when adding `adding` new accounts for
        (brand_id, platform) would exceed the workspace plan.
        """
        plan = workspace.get("plan")
        current = SocialAccount.count_for_brand_platform(brand_id, platform)
        if not self.plans.can_add_account(plan, platform, current + adding - 1):
            limit = self.plans.describe_limit(plan)
            raise PlanLimitError(
                f"PLAN_LIMIT_REACHED: Maximum {limit} {platform} account(s) per brand allowed for {plan or 'FREE'} plan",
                meta={"limit": limit, "platform": platform, "current_count": current, "plan": plan},
            )

    # ------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------
    def reconcile(self, data: Dict[str, Any], workspace_id, acting_user_id=None) -> Dict[str, Any]:
        """
        Create or update the account for (brand_id, platform, platform_account_id).

          - existing: credentials/profile refreshed, status forced ACTIVE,
            errors cleared, can_publish only changed when given explicitly
          - new: plan limit checked, can_publish defaulted per platform
        """
        if isinstance(data.get("token_expires_at"), datetime):
            data = {**data, "token_expires_at": data["token_expires_at"].isoformat()}
        validated = ReconcileInputSchema().load(data)

        brand_id = validated["brand_id"]
        platform = validated["platform"]
        platform_account_id = validated["platform_account_id"]
        log_tag = f"[account_service.py][SocialAccountService][reconcile][{platform}:{platform_account_id}][brand:{brand_id}]"

        self.require_brand(brand_id, workspace_id)
        workspace = self.require_workspace(workspace_id)

        existing = SocialAccount.find_by_platform_account(brand_id, platform, platform_account_id)
        now = utcnow()

        fields: Dict[str, Any] = {
            "workspace_id": str(workspace_id),
            "display_name": validated.get("display_name"),
            "username": validated.get("username"),
            "external_avatar_url": validated.get("external_avatar_url"),
            "access_token": validated["access_token"],
            "refresh_token": validated.get("refresh_token"),
            "token_expires_at": validated.get("token_expires_at"),
            "scopes": validated.get("scopes") or [],
            "token_data": validated.get("token_data") or {},
            "raw_profile": validated.get("raw_profile") or {},
            "status": STATUS_ACTIVE,
            "last_synced_at": now,
            "last_error_code": None,
            "last_error_message": None,
        }

        if validated.get("can_publish") is not None:
            fields["can_publish"] = validated["can_publish"]
        elif not existing:
            fields["can_publish"] = default_can_publish(platform)

        if not existing:
            self.ensure_can_add(workspace, brand_id, platform)

        doc = SocialAccount.upsert_platform_account(
            brand_id,
            platform,
            platform_account_id,
            fields,
            on_insert={"created_by": str(acting_user_id) if acting_user_id else None},
        )

        Log.info(f"{log_tag} {'reconnected' if existing else 'connected'} account_id={doc['_id']}")

        self._invalidate_brand_cache(brand_id, log_tag)
        self._emit_activity(ACTIVITY_RECONNECTED if existing else ACTIVITY_CONNECTED, doc, acting_user_id, log_tag)

        return SocialAccount.to_dto(doc)

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------
    def mark_as_expired(self, account_id, error_code: str = "TOKEN_EXPIRED", error_message: Optional[str] = None) -> Dict[str, Any]:
        self._require_account(account_id)
        doc = SocialAccount.update_fields(account_id, {
            "status": STATUS_EXPIRED,
            "can_publish": False,
            "last_error_code": error_code or "TOKEN_EXPIRED",
            "last_error_message": error_message,
        })
        Log.info(f"[account_service.py][SocialAccountService][mark_as_expired] account_id={account_id} code={error_code}")
        self._invalidate_brand_cache(doc.get("brand_id"), "[account_service.py][mark_as_expired]")
        return SocialAccount.to_dto(doc)

    def disconnect(self, account_id, workspace_id, acting_user_id=None) -> Dict[str, Any]:
        self._require_account(account_id, workspace_id)
        log_tag = f"[account_service.py][SocialAccountService][disconnect][{account_id}]"

        doc = SocialAccount.update_fields(account_id, {
            "status": STATUS_REVOKED,
            "can_publish": False,
            "last_error_code": "DISCONNECTED",
            "last_error_message": None,
        })
        self._invalidate_brand_cache(doc.get("brand_id"), log_tag)
        self._emit_activity(ACTIVITY_DISCONNECTED, doc, acting_user_id, log_tag)
        return SocialAccount.to_dto(doc)

    def update_tokens(self, account_id, access_token: str, refresh_token: Optional[str] = None,
                      expires_in: Optional[int] = None, scopes: Optional[List[str]] = None) -> Dict[str, Any]:
        if not access_token:
            raise ValidationError({"access_token": ["access_token is required"]})
        self._require_account(account_id)

        fields: Dict[str, Any] = {
            "access_token": access_token,
            "status": STATUS_ACTIVE,
            "last_synced_at": utcnow(),
            "last_error_code": None,
            "last_error_message": None,
            "token_expires_at": expires_at_from(expires_in),
        }
        # Some platforms do not rotate the refresh token
        if refresh_token:
            fields["refresh_token"] = refresh_token
        if scopes:
            fields["scopes"] = scopes

        doc = SocialAccount.update_fields(account_id, fields)
        return SocialAccount.to_dto(doc)

    def refresh_account_token(self, account_id, token_client, workspace_id=None) -> Dict[str, Any]:
        """
        Refresh credentials through the platform's token client.
        A failed refresh marks the account EXPIRED (REFRESH_FAILED) and re-raises.
        """
        doc = self._require_account(account_id, workspace_id)
        account = SocialAccount.to_dto_with_tokens(doc)
        log_tag = f"[account_service.py][SocialAccountService][refresh_account_token][{account['platform']}][{account_id}]"

        try:
            bundle = token_client.refresh_access_token(account)
        except TokenExchangeError as e:
            Log.warning(f"{log_tag} refresh failed: {e.message}")
            self.mark_as_expired(account_id, "REFRESH_FAILED", e.message)
            raise

        Log.info(f"{log_tag} token refreshed")
        return self.update_tokens(
            account_id,
            bundle.access_token,
            refresh_token=bundle.refresh_token,
            expires_in=bundle.expires_in,
            scopes=bundle.scopes or None,
        )

    def set_publish_selection(self, brand_id, platform, selected_ids: List[str], workspace_id) -> List[Dict[str, Any]]:
        """
        Publish flags across the brand's connected accounts of one platform:
        selected ids (account id or platform account id) -> True, the rest -> False.
        """
        self.require_brand(brand_id, workspace_id)
        log_tag = f"[account_service.py][SocialAccountService][set_publish_selection][{platform}][brand:{brand_id}]"

        docs = SocialAccount.list_by_brand(brand_id, platform)
        wanted = {str(s) for s in selected_ids}
        known = {str(d["_id"]) for d in docs} | {str(d.get("platform_account_id")) for d in docs}
        for selected_id in selected_ids:
            if str(selected_id) not in known:
                raise NotFoundError(f"Selected account not found: {selected_id}", code="SELECTED_ACCOUNT_NOT_FOUND",
                                    meta={"selected_id": selected_id})

        accounts = []
        for doc in docs:
            selected = str(doc["_id"]) in wanted or str(doc.get("platform_account_id")) in wanted
            accounts.append(SocialAccount.to_dto(SocialAccount.update_fields(doc["_id"], {"can_publish": selected})))

        Log.info(f"{log_tag} selected={len(wanted)} total={len(accounts)}")
        self._invalidate_brand_cache(brand_id, log_tag)
        return accounts

    def delete(self, account_id, workspace_id, acting_user_id=None) -> bool:
        doc = self._require_account(account_id, workspace_id)
        log_tag = f"[account_service.py][SocialAccountService][delete][{account_id}]"

        deleted = SocialAccount.delete(account_id)
        if deleted:
            self._invalidate_brand_cache(doc.get("brand_id"), log_tag)
            self._emit_activity(ACTIVITY_DELETED, doc, acting_user_id, log_tag)
        return deleted

    # ------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------
    def list_by_brand(self, brand_id, workspace_id, platform=None) -> List[Dict[str, Any]]:
        self.require_brand(brand_id, workspace_id)
        return [SocialAccount.to_dto(d) for d in SocialAccount.list_by_brand(brand_id, platform)]

    def get_by_id(self, account_id, workspace_id) -> Dict[str, Any]:
        return SocialAccount.to_dto(self._require_account(account_id, workspace_id))

    def get_by_platform_account(self, brand_id, platform, platform_account_id) -> Optional[Dict[str, Any]]:
        doc = SocialAccount.find_by_platform_account(brand_id, platform, platform_account_id)
        return SocialAccount.to_dto(doc) if doc else None

    def get_active_accounts_for_brand(self, brand_id) -> List[Dict[str, Any]]:
        return [SocialAccount.to_dto(d) for d in SocialAccount.list_active_publishable(brand_id)]

    def get_with_tokens(self, account_id) -> Dict[str, Any]:
        """Internal only: decrypted credentials for publishing."""
        return SocialAccount.to_dto_with_tokens(self._require_account(account_id))
