# socialconnect/models/base_model.py

from datetime import datetime, timezone

from bson import ObjectId

from ..extensions.db import db


def utcnow():
    return datetime.now(timezone.utc)


def id_query(value):
    """
    Match an _id stored either as ObjectId or as a plain string
    (brands/workspaces created by other services use string ids).
    """
    value = str(value)
    if ObjectId.is_valid(value):
        return {"$in": [ObjectId(value), value]}
    return value


class BaseModel:
    """
    Shared collection access for the classmethod-style models.
    """
    collection_name = None

    @classmethod
    def collection(cls):
        if not cls.collection_name:
            raise RuntimeError(f"{cls.__name__}.collection_name is not set")
        return db.get_collection(cls.collection_name)
