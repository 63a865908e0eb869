import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-aes-gcm")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("APP_LOG_DIR", "-")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")
os.environ["APP_ENV"] = "testing"

import fakeredis
import mongomock
import pytest
from flask_jwt_extended import create_access_token

from socialconnect import create_app
from socialconnect.config import PlatformConfig, TestingConfig
from socialconnect.extensions.db import db, redis_connection


WORKSPACE_ID = "ws-acme"
OTHER_WORKSPACE_ID = "ws-other"
BRAND_ID = "brand-main"
OTHER_BRAND_ID = "brand-foreign"
USER_ID = "user-1"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    db.db = mongomock.MongoClient()["socialconnect_test"]
    redis_connection.connection = fakeredis.FakeRedis()
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed(app):
    """One FREE workspace with a brand, plus a second tenant's brand."""
    db.get_collection("workspaces").insert_many([
        {"_id": WORKSPACE_ID, "slug": "acme", "plan": "FREE"},
        {"_id": OTHER_WORKSPACE_ID, "slug": "other", "plan": "PRO"},
    ])
    db.get_collection("brands").insert_many([
        {"_id": BRAND_ID, "workspace_id": WORKSPACE_ID, "slug": "main", "name": "Main"},
        {"_id": OTHER_BRAND_ID, "workspace_id": OTHER_WORKSPACE_ID, "slug": "foreign", "name": "Foreign"},
    ])
    return {"workspace_id": WORKSPACE_ID, "brand_id": BRAND_ID, "user_id": USER_ID}


def set_plan(plan, workspace_id=WORKSPACE_ID):
    db.get_collection("workspaces").update_one({"_id": workspace_id}, {"$set": {"plan": plan}})


@pytest.fixture
def auth_headers(app):
    token = create_access_token(identity=USER_ID, additional_claims={"user_id": USER_ID, "workspace_id": WORKSPACE_ID})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda *_: None)


def platform_config(provider, **overrides):
    values = {
        "provider": provider,
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": "https://api.example.com/social/oauth/callback?x=1",
        "scopes": ["scope.a", "scope.b"],
        "api_base_url": "https://api.example.test",
        "auth_url": "https://auth.example.test/authorize",
        "token_url": "https://auth.example.test/token",
    }
    values.update(overrides)
    return PlatformConfig(**values)


def account_input(platform="TIKTOK", platform_account_id="open-1", brand_id=BRAND_ID, **overrides):
    data = {
        "brand_id": brand_id,
        "platform": platform,
        "platform_account_id": platform_account_id,
        "display_name": "Creator",
        "username": "creator",
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "scopes": ["video.publish"],
        "token_data": {"open_id": platform_account_id},
    }
    data.update(overrides)
    return data
