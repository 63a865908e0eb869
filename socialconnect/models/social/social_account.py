# socialconnect/models/social/social_account.py

from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from ..base_model import BaseModel, utcnow
from ...constants.service_code import STATUS_ACTIVE
from ...utils.crypt import encrypt_data, decrypt_data
from ...utils.logger import Log


class SocialAccount(BaseModel):
    """
    One connected external identity per document, bound to one brand.

    Unique key:
      (brand_id, platform, platform_account_id)

    Examples:
      - Facebook Page:  platform="FACEBOOK",  platform_account_id="<PAGE_ID>"
      - Instagram:      platform="INSTAGRAM", platform_account_id="<IG_USER_ID>"
      - LinkedIn:       platform="LINKEDIN",  platform_account_id="<MEMBER_ID | ORG_ID>"
      - TikTok:         platform="TIKTOK",    platform_account_id="<OPEN_ID>"

    access_token / refresh_token are AES-GCM encrypted at rest and never leave
    this module except through to_dto_with_tokens().
    """

    collection_name = "social_accounts"

    # -------------------- Indexes --------------------

    @classmethod
    def ensure_indexes(cls):
        col = cls.collection()
        col.create_index(
            [("brand_id", ASCENDING), ("platform", ASCENDING), ("platform_account_id", ASCENDING)],
            unique=True,
            name="uniq_brand_platform_account",
        )
        col.create_index([("brand_id", ASCENDING), ("status", ASCENDING)])
        col.create_index([("workspace_id", ASCENDING)])

    # -------------------- Queries --------------------

    @staticmethod
    def _oid(account_id):
        if isinstance(account_id, ObjectId):
            return account_id
        if not account_id or not ObjectId.is_valid(str(account_id)):
            return None
        return ObjectId(str(account_id))

    @classmethod
    def get_by_id(cls, account_id) -> Optional[Dict[str, Any]]:
        oid = cls._oid(account_id)
        if oid is None:
            return None
        return cls.collection().find_one({"_id": oid})

    @classmethod
    def find_by_platform_account(cls, brand_id, platform, platform_account_id) -> Optional[Dict[str, Any]]:
        return cls.collection().find_one({
            "brand_id": str(brand_id),
            "platform": platform,
            "platform_account_id": str(platform_account_id),
        })

    @classmethod
    def count_for_brand_platform(cls, brand_id, platform) -> int:
        return cls.collection().count_documents({"brand_id": str(brand_id), "platform": platform})

    @classmethod
    def list_by_brand(cls, brand_id, platform=None) -> List[Dict[str, Any]]:
        query = {"brand_id": str(brand_id)}
        if platform:
            query["platform"] = platform
        return list(cls.collection().find(query).sort("created_at", DESCENDING))

    @classmethod
    def list_active_publishable(cls, brand_id) -> List[Dict[str, Any]]:
        return list(cls.collection().find({
            "brand_id": str(brand_id),
            "status": STATUS_ACTIVE,
            "can_publish": True,
        }).sort("created_at", ASCENDING))

    # -------------------- Write helpers --------------------

    @staticmethod
    def _encrypt_credentials(fields: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(fields)
        for key in ("access_token", "refresh_token"):
            if key in out:
                out[key] = encrypt_data(out[key]) if out[key] else None
        return out

    @classmethod
    def upsert_platform_account(cls, brand_id, platform, platform_account_id, fields: Dict[str, Any], on_insert: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Create-or-update keyed on the unique triple.

        Concurrent calls for the same triple converge on one document
        (last writer wins on the $set fields).
        """
        now = utcnow()
        key = {
            "brand_id": str(brand_id),
            "platform": platform,
            "platform_account_id": str(platform_account_id),
        }
        update = {
            "$set": {**cls._encrypt_credentials(fields), "updated_at": now},
            "$setOnInsert": {**(on_insert or {}), "created_at": now},
        }

        doc = cls.collection().find_one_and_update(
            key,
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        Log.info(f"[social_account.py][SocialAccount][upsert] {platform}:{platform_account_id} brand={brand_id}")
        return doc

    @classmethod
    def update_fields(cls, account_id, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = cls._oid(account_id)
        if oid is None:
            return None
        return cls.collection().find_one_and_update(
            {"_id": oid},
            {"$set": {**cls._encrypt_credentials(fields), "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    @classmethod
    def delete(cls, account_id) -> bool:
        oid = cls._oid(account_id)
        if oid is None:
            return False
        return cls.collection().delete_one({"_id": oid}).deleted_count > 0

    # -------------------- Projections --------------------

    @staticmethod
    def _iso(value):
        return value.isoformat() if hasattr(value, "isoformat") else value

    @classmethod
    def to_dto(cls, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Client-facing shape. Never includes credentials."""
        return {
            "id": str(doc["_id"]),
            "brand_id": doc.get("brand_id"),
            "workspace_id": doc.get("workspace_id"),
            "platform": doc.get("platform"),
            "platform_account_id": doc.get("platform_account_id"),
            "display_name": doc.get("display_name"),
            "username": doc.get("username"),
            "external_avatar_url": doc.get("external_avatar_url"),
            "status": doc.get("status"),
            "can_publish": bool(doc.get("can_publish")),
            "token_expires_at": cls._iso(doc.get("token_expires_at")),
            "scopes": doc.get("scopes") or [],
            "last_synced_at": cls._iso(doc.get("last_synced_at")),
            "last_error_code": doc.get("last_error_code"),
            "last_error_message": doc.get("last_error_message"),
            "created_at": cls._iso(doc.get("created_at")),
            "updated_at": cls._iso(doc.get("updated_at")),
        }

    @classmethod
    def to_dto_with_tokens(cls, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Internal shape for publishing / refresh: decrypted credentials + token_data."""
        dto = cls.to_dto(doc)
        dto["access_token"] = decrypt_data(doc["access_token"]) if doc.get("access_token") else None
        dto["refresh_token"] = decrypt_data(doc["refresh_token"]) if doc.get("refresh_token") else None
        dto["token_expires_at"] = doc.get("token_expires_at")
        dto["token_data"] = doc.get("token_data") or {}
        return dto
