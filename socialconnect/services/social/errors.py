# socialconnect/services/social/errors.py

from __future__ import annotations

from typing import Any, Dict, Optional


class SocialError(Exception):
    """
    Base for every error this service raises on purpose.

      code         machine readable (BRAND_NOT_FOUND, PLAN_LIMIT_REACHED, ...)
      message      human readable, safe to show to the user
      meta         extra context for logs / API responses
      status_code  key into HTTP_STATUS_CODES
    """
    default_code = "SOCIAL_ERROR"
    status_code = "BAD_REQUEST"

    def __init__(self, message: str, code: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.meta = meta or {}

    def __str__(self):
        return self.message


class NotFoundError(SocialError):
    default_code = "NOT_FOUND"
    status_code = "NOT_FOUND"


class PlanLimitError(SocialError):
    default_code = "PLAN_LIMIT_REACHED"
    status_code = "FORBIDDEN"


class InvalidStateError(SocialError):
    default_code = "INVALID_OAUTH_STATE"
    status_code = "BAD_REQUEST"


class ConfigurationError(SocialError):
    default_code = "PLATFORM_NOT_CONFIGURED"
    status_code = "INTERNAL_SERVER_ERROR"


# ---------------- OAuth / identity ----------------

class TokenExchangeError(SocialError):
    default_code = "TOKEN_EXCHANGE_FAILED"
    status_code = "BAD_GATEWAY"


class IdentityFetchError(SocialError):
    default_code = "IDENTITY_FETCH_FAILED"
    status_code = "BAD_GATEWAY"


# ---------------- Publishing ----------------

class PublicationError(SocialError):
    """Terminal publish failure. Do not retry."""
    default_code = "PUBLICATION_FAILED"
    status_code = "BAD_GATEWAY"


class RetryablePublicationError(PublicationError):
    """
    Transient publish failure (rate limit, media still processing).
    original_error keeps the platform payload so the caller can pick a backoff.
    """
    default_code = "PUBLICATION_RETRYABLE"
    status_code = "SERVICE_UNAVAILABLE"

    def __init__(self, message: str, original_error: Any = None, code: Optional[str] = None, meta=None):
        super().__init__(message, code=code, meta=meta)
        self.original_error = original_error


class TokenExpiredError(PublicationError):
    default_code = "TOKEN_EXPIRED"
    status_code = "UNAUTHORIZED"


class MediaUnresolvedError(PublicationError):
    default_code = "MEDIA_UNRESOLVED"
    status_code = "VALIDATION_ERROR"


class VerificationFailedError(PublicationError):
    default_code = "VERIFICATION_FAILED"
    status_code = "BAD_GATEWAY"

    def __init__(self, message: str, post_id: Optional[str] = None, code: Optional[str] = None, meta=None):
        super().__init__(message, code=code, meta={**(meta or {}), "post_id": post_id})
        self.post_id = post_id
