# socialconnect/extensions/db.py

import os

from dotenv import load_dotenv
from pymongo import MongoClient
from redis import Redis

load_dotenv()


class MongoDB:
    """social_accounts, brands, workspaces, media and activity_logs live here."""

    def __init__(self):
        self.client = None
        self.db = None

    def init_app(self, app):
        uri = app.config.get("MONGO_URI") or os.getenv("MONGO_URI", "mongodb://localhost:27017")
        db_name = app.config.get("DB_NAME") or os.getenv("DB_NAME", "socialconnect")

        # tz_aware so token_expires_at comes back comparable with utcnow()
        self.client = MongoClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=int(app.config.get("MONGO_TIMEOUT_MS", 5000)),
            appname=app.config.get("APP_NAME"),
        )
        self.db = self.client[db_name]
        app.extensions["socialconnect.mongo"] = self

    def get_collection(self, name):
        if self.db is None:
            raise RuntimeError("MongoDB is not initialised; call db.init_app(app) first")
        return self.db[name]


class RedisConnection:
    """Pending selections, brand cache invalidation and the RQ publish queue."""

    def __init__(self):
        self.connection = None

    def init_app(self, app):
        url = app.config.get("REDIS_URL")
        if url:
            self.connection = Redis.from_url(url)
        else:
            self.connection = Redis(
                host=app.config.get("REDIS_HOST", "localhost"),
                port=int(app.config.get("REDIS_PORT", 6379)),
                db=int(app.config.get("REDIS_DB", 0)),
                password=app.config.get("REDIS_PASSWORD") or None,
            )
        app.extensions["socialconnect.redis"] = self

    def get_connection(self):
        if self.connection is None:
            raise RuntimeError("Redis is not initialised; call redis_connection.init_app(app) first")
        return self.connection


db = MongoDB()
redis_connection = RedisConnection()
