from marshmallow import ValidationError

from .json_response import prepared_response
from .logger import Log
from ..services.social.errors import SocialError


# Handle marshmallow ValidationError
def handle_validation_error(error: ValidationError):
    return prepared_response(
        False, "BAD_REQUEST", "Validation failed. Please check your inputs.",
        errors=error.messages, code="VALIDATION_ERROR",
    )


# Handle every SocialError subclass (NotFoundError, PlanLimitError, ...)
def handle_social_error(error: SocialError):
    Log.info(f"[error_handlers.py][handle_social_error] {error.code}: {error.message}")
    return prepared_response(
        False, error.status_code, error.message,
        errors=error.meta or None, code=error.code,
    )


def handle_permission_error(error):
    return prepared_response(False, "FORBIDDEN", str(error), code="FORBIDDEN")


def handle_rate_limit(e):
    # e.description contains whatever was passed as error_message=
    return prepared_response(
        False, "TOO_MANY_REQUESTS",
        e.description or "Too many requests, please try again later.",
        code="RATE_LIMITED",
    )
