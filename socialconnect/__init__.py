import os

from flask import Flask
from flask_limiter.errors import RateLimitExceeded
from flask_smorest import Api
from marshmallow import ValidationError
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import load_config
from .extensions import cors, db, jwt, redis_connection
from .models.social.social_account import SocialAccount
from .routes import register_routes
from .services.social.errors import SocialError
from .utils.error_handlers import (
    handle_permission_error, handle_rate_limit, handle_social_error, handle_validation_error,
)
from .utils.extensions import limiter
from .utils.logger import Log


OPENAPI_SETTINGS = {
    "API_TITLE": "Social Connect API",
    "API_VERSION": "v1",
    "OPENAPI_VERSION": "3.0.3",
    "OPENAPI_URL_PREFIX": "/api",
    "OPENAPI_JSON_PATH": "openapi.json",
    "OPENAPI_SWAGGER_UI_PATH": "/docs",
    "OPENAPI_SWAGGER_UI_URL": "https://cdn.jsdelivr.net/npm/swagger-ui-dist/",
    "API_SPEC_OPTIONS": {
        "components": {
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        },
    },
}


def _init_extensions(app):
    db.init_app(app)
    redis_connection.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, origins=app.config.get("ALLOWED_ORIGINS") or "*")
    limiter.init_app(app)


def _register_error_handlers(app):
    app.errorhandler(ValidationError)(handle_validation_error)
    app.errorhandler(SocialError)(handle_social_error)
    app.errorhandler(PermissionError)(handle_permission_error)
    app.errorhandler(RateLimitExceeded)(handle_rate_limit)


def create_app(config_class=None):
    app = Flask(__name__)

    # one proxy (load balancer) in front: trust its X-Forwarded-* headers
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)

    load_config(app, config_class)
    for key, value in OPENAPI_SETTINGS.items():
        app.config.setdefault(key, value)

    api = Api(app)
    _init_extensions(app)
    _register_error_handlers(app)

    if not app.config.get("TESTING"):
        SocialAccount.ensure_indexes()
        Log.info(f"[socialconnect/__init__.py][create_app] indexes ensured env={os.getenv('APP_ENV', 'development')}")

    register_routes(app, api)
    return app
