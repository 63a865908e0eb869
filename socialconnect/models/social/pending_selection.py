# socialconnect/models/social/pending_selection.py

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from ..base_model import utcnow
from ...extensions.db import redis_connection
from ...utils.crypt import encrypt_data, decrypt_data
from ...utils.logger import Log


DEFAULT_TTL_SECONDS = int(os.getenv("PENDING_SELECTION_TTL_SECONDS", 900))


def _safe_json_load(raw, default=None):
    if default is None:
        default = {}
    if raw is None:
        return default
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except ValueError:
        return default


class PendingSelection:
    """
    Short-lived staging record for a grant that exposes several publishable
    sub-accounts (e.g. a LinkedIn member plus the organizations they admin).

    Stored in Redis under pending_selection:<brand_id>:<platform> with a TTL;
    at most one live selection per (brand_id, platform), a newer callback
    overwrites the older one. Credentials are encrypted inside the payload.

    Payload:
      {
        "brand_id", "workspace_id", "platform", "user_id", "locale",
        "access_token", "refresh_token", "token_expires_at", "scopes",
        "profile": {...},
        "candidates": [{"id", "kind", "platform_account_id", "display_name", ...}],
        "created_at": iso
      }
    """

    KEY_PREFIX = "pending_selection"

    def __init__(self, connection=None, ttl_seconds: Optional[int] = None):
        self._connection = connection
        self.ttl_seconds = int(ttl_seconds or DEFAULT_TTL_SECONDS)

    @property
    def connection(self):
        return self._connection if self._connection is not None else redis_connection.get_connection()

    @classmethod
    def key(cls, brand_id, platform) -> str:
        return f"{cls.KEY_PREFIX}:{brand_id}:{platform}"

    def save(self, brand_id, platform, payload: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(payload)
        doc["brand_id"] = str(brand_id)
        doc["platform"] = platform
        doc["created_at"] = utcnow().isoformat()
        for field in ("access_token", "refresh_token"):
            if doc.get(field):
                doc[field] = encrypt_data(doc[field])

        self.connection.setex(self.key(brand_id, platform), self.ttl_seconds, json.dumps(doc, default=str))
        Log.info(f"[pending_selection.py][PendingSelection][save] brand={brand_id} platform={platform} candidates={len(doc.get('candidates') or [])}")
        return doc

    def load(self, brand_id, platform) -> Optional[Dict[str, Any]]:
        raw = self.connection.get(self.key(brand_id, platform))
        if not raw:
            return None

        doc = _safe_json_load(raw, default={})
        if not doc:
            return None

        for field in ("access_token", "refresh_token"):
            if doc.get(field):
                doc[field] = decrypt_data(doc[field])
        return doc

    def delete(self, brand_id, platform) -> bool:
        return bool(self.connection.delete(self.key(brand_id, platform)))

    @staticmethod
    def public_view(doc: Dict[str, Any]) -> Dict[str, Any]:
        """What the selection UI may see: no credentials."""
        return {
            "brand_id": doc.get("brand_id"),
            "platform": doc.get("platform"),
            "profile": {
                k: v for k, v in (doc.get("profile") or {}).items()
                if k in ("id", "name", "email", "picture", "display_name", "username")
            },
            "candidates": [
                {k: c.get(k) for k in ("id", "kind", "platform_account_id", "display_name", "username", "external_avatar_url")}
                for c in (doc.get("candidates") or [])
            ],
            "created_at": doc.get("created_at"),
        }

    @staticmethod
    def pick_candidates(doc: Dict[str, Any], selected_ids: List[str]) -> List[Dict[str, Any]]:
        """
        Map selected ids onto candidates. Accepts the candidate id
        (member:<id> / organization:<id>) or the bare platform account id.
        Unknown ids raise KeyError naming the id.
        """
        candidates = doc.get("candidates") or []
        by_id = {}
        for c in candidates:
            by_id[str(c.get("id"))] = c
            by_id.setdefault(str(c.get("platform_account_id")), c)

        picked: List[Dict[str, Any]] = []
        seen = set()
        for sid in selected_ids:
            c = by_id.get(str(sid))
            if c is None:
                raise KeyError(str(sid))
            if c["id"] in seen:
                continue
            seen.add(c["id"])
            picked.append(c)
        return picked
