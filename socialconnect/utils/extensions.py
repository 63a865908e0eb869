# socialconnect/utils/extensions.py

import os

from flask import has_request_context, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from .logger import Log


# Shared counters need Redis once more than one worker serves the API
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI") or os.getenv("REDIS_URL") or "memory://"

OAUTH_CALLBACK_LIMIT = os.getenv("OAUTH_CALLBACK_RATE_LIMIT", "30 per minute")
PUBLISH_LIMIT = os.getenv("PUBLISH_RATE_LIMIT", "60 per minute")


def client_ip():
    """Left-most X-Forwarded-For hop (ProxyFix already trusts one proxy), else the peer."""
    if not has_request_context():
        return "unknown"
    forwarded = request.headers.get("X-Forwarded-For", "")
    return forwarded.split(",")[0].strip() or get_remote_address() or "unknown"


def log_rate_limit_breach(request_limit):
    Log.warning(
        f"[extensions.py][rate_limit][ip:{client_ip()}] "
        f"limit={getattr(request_limit, 'limit', 'unknown')} key={getattr(request_limit, 'key', 'unknown')} "
        f"{request.method} {request.path}"
    )


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri=RATE_LIMIT_STORAGE_URI,
    on_breach=log_rate_limit_breach,
)
