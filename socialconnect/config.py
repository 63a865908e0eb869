from dotenv import load_dotenv
load_dotenv()  # Load environment variables from .env file

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class Config:
    """Base configuration class."""
    APP_NAME = os.getenv("APP_NAME", "Social Connect")

    SECRET_KEY = os.getenv("SECRET_KEY", "your_default_secret_key")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY") or SECRET_KEY
    DEBUG = os.getenv("FLASK_DEBUG", "False") == "True"
    TESTING = False

    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/socialconnect")
    DB_NAME = os.getenv("DB_NAME", "socialconnect")
    MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", 5000))

    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
    REDIS_DB = int(os.getenv("REDIS_DB", 0))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
    REDIS_URL = os.getenv("REDIS_URL")

    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
    ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]

    PENDING_SELECTION_TTL_SECONDS = int(os.getenv("PENDING_SELECTION_TTL_SECONDS", 900))


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    MONGO_URI = os.getenv("TEST_MONGO_URI", "mongodb://localhost:27017/socialconnect_test")
    DB_NAME = "socialconnect_test"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    MONGO_URI = os.getenv("PROD_MONGO_URI", Config.MONGO_URI)


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def load_config(app, config_class=None):
    load_dotenv()
    config_class = config_class or CONFIG_BY_ENV.get(os.getenv("APP_ENV", "development"), DevelopmentConfig)
    app.config.from_object(config_class)


# ========================================
# PLATFORM OAUTH / API CONFIGURATION
# ========================================

GRAPH_API_VERSION = os.getenv("GRAPH_API_VERSION", "v24.0")

PINTEREST_API_BASES = {
    "production": "https://api.pinterest.com",
    "sandbox": "https://api-sandbox.pinterest.com",
}

PLATFORM_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "facebook": {
        "auth_url": f"https://www.facebook.com/{GRAPH_API_VERSION}/dialog/oauth",
        "token_url": f"https://graph.facebook.com/{GRAPH_API_VERSION}/oauth/access_token",
        "api_base_url": f"https://graph.facebook.com/{GRAPH_API_VERSION}",
        "scopes": [
            "pages_show_list",
            "pages_read_engagement",
            "pages_manage_posts",
            "instagram_basic",
            "instagram_content_publish",
            "business_management",
        ],
        "env_prefix": "META",
    },
    "linkedin": {
        "auth_url": "https://www.linkedin.com/oauth/v2/authorization",
        "token_url": "https://www.linkedin.com/oauth/v2/accessToken",
        "api_base_url": "https://api.linkedin.com",
        "scopes": [
            "openid",
            "profile",
            "email",
            "w_member_social",
            "r_organization_social",
            "w_organization_social",
            "r_organization_admin",
        ],
        "env_prefix": "LINKEDIN",
    },
    "tiktok": {
        "auth_url": "https://www.tiktok.com/v2/auth/authorize/",
        "token_url": "https://open.tiktokapis.com/v2/oauth/token/",
        "api_base_url": "https://open.tiktokapis.com",
        "scopes": ["user.info.basic", "video.list", "video.upload", "video.publish"],
        "env_prefix": "TIKTOK",
    },
    "pinterest": {
        "auth_url": "https://www.pinterest.com/oauth/",
        "token_url": "https://api.pinterest.com/v5/oauth/token",
        "api_base_url": PINTEREST_API_BASES["production"],
        "scopes": ["user_accounts:read", "boards:read", "boards:write", "pins:read", "pins:write"],
        "env_prefix": "PINTEREST",
    },
    "x": {
        "auth_url": "https://twitter.com/i/oauth2/authorize",
        "token_url": "https://api.x.com/2/oauth2/token",
        "api_base_url": "https://api.x.com",
        "scopes": ["tweet.read", "tweet.write", "users.read", "media.write", "offline.access"],
        "env_prefix": "X",
    },
    "youtube": {
        "auth_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "api_base_url": "https://www.googleapis.com",
        "scopes": [
            "https://www.googleapis.com/auth/youtube.readonly",
            "https://www.googleapis.com/auth/youtube.upload",
        ],
        "env_prefix": "YOUTUBE",
    },
}


@dataclass
class PlatformConfig:
    provider: str
    client_id: Optional[str]
    client_secret: Optional[str]
    redirect_uri: Optional[str]
    scopes: List[str]
    api_base_url: str
    auth_url: str
    token_url: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


def load_platform_config(provider: str) -> PlatformConfig:
    """
    Build the PlatformConfig for one OAuth provider from <PREFIX>_* env vars.

      <PREFIX>_CLIENT_ID / _CLIENT_SECRET / _REDIRECT_URI   required to connect
      <PREFIX>_SCOPES                                      comma separated override
      <PREFIX>_API_BASE_URL                                API host override
    """
    defaults = PLATFORM_DEFAULTS.get(provider)
    if defaults is None:
        raise ValueError(f"Unsupported provider: {provider}")

    prefix = defaults["env_prefix"]

    scopes_env = os.getenv(f"{prefix}_SCOPES")
    scopes = [s.strip() for s in scopes_env.split(",") if s.strip()] if scopes_env else list(defaults["scopes"])

    api_base_url = defaults["api_base_url"]
    token_url = defaults["token_url"]
    extra: Dict[str, Any] = {}

    if provider == "pinterest":
        pinterest_env = (os.getenv("PINTEREST_ENV") or "production").strip().lower()
        api_base_url = PINTEREST_API_BASES.get(pinterest_env, PINTEREST_API_BASES["production"])
        token_url = f"{api_base_url}/v5/oauth/token"
        extra["environment"] = pinterest_env
    elif provider == "facebook":
        extra["app_id"] = os.getenv("META_APP_ID") or os.getenv("META_CLIENT_ID")
    elif provider == "tiktok":
        extra["sandbox"] = (os.getenv("TIKTOK_SANDBOX", "false").strip().lower() in ("1", "true", "yes"))

    return PlatformConfig(
        provider=provider,
        client_id=os.getenv(f"{prefix}_CLIENT_ID"),
        client_secret=os.getenv(f"{prefix}_CLIENT_SECRET"),
        redirect_uri=os.getenv(f"{prefix}_REDIRECT_URI"),
        scopes=scopes,
        api_base_url=(os.getenv(f"{prefix}_API_BASE_URL") or api_base_url).rstrip("/"),
        auth_url=defaults["auth_url"],
        token_url=token_url,
        extra=extra,
    )
