# socialconnect/services/social/ports.py

"""
Collaborators the OAuth / publishing core talks to but does not own.

Each port is a small class with one or two methods; services receive them
through their constructors so tests can hand in fakes. The default adapters
below are backed by the Flask extensions (Mongo / Redis).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ...extensions.db import db, redis_connection
from ...models.base_model import id_query, utcnow
from ...models.social.brand import Brand, Workspace
from ...utils.logger import Log
from ...utils.plan import limits_map


# -------------------------------------------------------------------
# Brand / workspace lookup
# -------------------------------------------------------------------
class BrandDirectory:
    def find_brand(self, brand_id) -> Optional[Dict[str, Any]]:
        return Brand.get_by_id(brand_id)

    def find_workspace(self, workspace_id) -> Optional[Dict[str, Any]]:
        return Workspace.get_by_id(workspace_id)


# -------------------------------------------------------------------
# Plan limits (opaque decision service)
# -------------------------------------------------------------------
class PlanLimits:
    def get_plan_limits(self, plan) -> Dict[str, Any]:
        return limits_map.get_plan_limits(plan)

    def can_add_account(self, plan, platform, current_count) -> bool:
        return limits_map.can_add_social_account(plan, platform, current_count)

    def describe_limit(self, plan) -> str:
        return limits_map.describe_social_account_limit(plan)


# -------------------------------------------------------------------
# Cache invalidation
# -------------------------------------------------------------------
class CacheInvalidator:
    def __init__(self, connection=None):
        self._connection = connection

    def invalidate(self, key: str) -> None:
        conn = self._connection if self._connection is not None else redis_connection.get_connection()
        conn.delete(key)


# -------------------------------------------------------------------
# Activity / audit sink
# -------------------------------------------------------------------
class ActivitySink:
    collection_name = "activity_logs"

    def log_activity(self, event: Dict[str, Any]) -> None:
        """
        event: {type, workspace_id, brand_id, actor_type, actor_user_id?, payload}
        """
        db.get_collection(self.collection_name).insert_one({**event, "created_at": utcnow()})


# -------------------------------------------------------------------
# Media URL resolver
# -------------------------------------------------------------------
class MediaUrlResolver:
    collection_name = "media"

    def resolve_public_url(self, media_id) -> Optional[str]:
        if not media_id:
            return None
        doc = db.get_collection(self.collection_name).find_one({"_id": id_query(media_id)})
        if not doc:
            Log.info(f"[ports.py][MediaUrlResolver] media not found: {media_id}")
            return None
        url = doc.get("public_url") or doc.get("url")
        return url if isinstance(url, str) and url.startswith("https://") else None
