# socialconnect/models/social/brand.py

from typing import Any, Dict, Optional

from ..base_model import BaseModel, id_query


class Brand(BaseModel):
    """
    Read-only view of the brands collection (owned by the brand service).
    Only the fields the OAuth flow needs: tenancy and slugs for redirects.
    """
    collection_name = "brands"

    @classmethod
    def get_by_id(cls, brand_id) -> Optional[Dict[str, Any]]:
        if not brand_id:
            return None
        doc = cls.collection().find_one({"_id": id_query(brand_id)})
        if not doc:
            return None
        return {
            "id": str(doc["_id"]),
            "workspace_id": str(doc.get("workspace_id")) if doc.get("workspace_id") is not None else None,
            "slug": doc.get("slug"),
            "name": doc.get("name"),
        }


class Workspace(BaseModel):
    collection_name = "workspaces"

    @classmethod
    def get_by_id(cls, workspace_id) -> Optional[Dict[str, Any]]:
        if not workspace_id:
            return None
        doc = cls.collection().find_one({"_id": id_query(workspace_id)})
        if not doc:
            return None
        return {
            "id": str(doc["_id"]),
            "slug": doc.get("slug"),
            "plan": doc.get("plan"),
        }
