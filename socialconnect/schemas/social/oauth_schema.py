# socialconnect/schemas/social/oauth_schema.py
from datetime import timezone

from marshmallow import Schema, fields, validate, validates_schema, ValidationError, EXCLUDE

from ...constants.service_code import PLATFORMS


class AuthorizeQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    brand_id = fields.Str(required=True, validate=validate.Length(min=1))
    locale = fields.Str(required=False, load_default=None, validate=validate.Length(min=2, max=10))


class CallbackQuerySchema(Schema):
    """Query string of an OAuth redirect. Everything optional: the orchestrator decides."""
    class Meta:
        unknown = EXCLUDE

    code = fields.Str(required=False, load_default=None)
    state = fields.Str(required=False, load_default=None)
    error = fields.Str(required=False, load_default=None)
    error_description = fields.Str(required=False, load_default=None)


class PendingQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    brand_id = fields.Str(required=True, validate=validate.Length(min=1))


class SelectionSchema(Schema):
    brand_id = fields.Str(required=True, validate=validate.Length(min=1))
    selected_ids = fields.List(fields.Str(validate=validate.Length(min=1)), required=True)


class AccountsQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    brand_id = fields.Str(required=True, validate=validate.Length(min=1))
    platform = fields.Str(required=False, load_default=None, validate=validate.OneOf(PLATFORMS))


class ReconcileInputSchema(Schema):
    """
    Input of SocialAccountService.reconcile().
    Malformed input is rejected, never coerced.
    """
    brand_id = fields.Str(required=True, validate=validate.Length(min=1))
    platform = fields.Str(required=True, validate=validate.OneOf(PLATFORMS))
    platform_account_id = fields.Str(required=True, validate=validate.Length(min=1, max=255))

    display_name = fields.Str(required=False, allow_none=True)
    username = fields.Str(required=False, allow_none=True)
    external_avatar_url = fields.Str(required=False, allow_none=True)

    access_token = fields.Str(required=True, validate=validate.Length(min=1))
    refresh_token = fields.Str(required=False, allow_none=True)
    token_expires_at = fields.AwareDateTime(required=False, allow_none=True, default_timezone=timezone.utc)
    scopes = fields.List(fields.Str(), required=False, load_default=list)

    token_data = fields.Dict(required=False, allow_none=True)
    raw_profile = fields.Dict(required=False, allow_none=True)
    can_publish = fields.Bool(required=False, allow_none=True)

    @validates_schema
    def validate_not_pending(self, data, **kwargs):
        if str(data.get("platform_account_id", "")).startswith("pending_"):
            raise ValidationError({"platform_account_id": ["pending_ ids are reserved"]})
