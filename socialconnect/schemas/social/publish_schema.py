# socialconnect/schemas/social/publish_schema.py
from marshmallow import Schema, fields, validate, validates_schema, ValidationError, INCLUDE

from ...constants.service_code import (
    CONTENT_TYPES,
    CONTENT_CAROUSEL,
    CONTENT_LINK,
    CONTENT_PHOTO,
    CONTENT_STORY,
    CONTENT_VIDEO,
    CONTENT_REEL,
    MEDIA_IMAGE,
    MEDIA_VIDEO,
)


class PublicationItemSchema(Schema):
    """
    One media reference. Either media_id (resolved through the media store)
    or an already public url.
    """
    class Meta:
        unknown = INCLUDE

    media_id = fields.Str(required=False, allow_none=True)
    url = fields.Str(required=False, allow_none=True)
    media_type = fields.Str(required=True, validate=validate.OneOf([MEDIA_IMAGE, MEDIA_VIDEO]))
    thumbnail_url = fields.Str(required=False, allow_none=True)
    alt_text = fields.Str(required=False, allow_none=True)

    @validates_schema
    def validate_reference(self, data, **kwargs):
        if not (data.get("media_id") or data.get("url")):
            raise ValidationError({"media_id": ["media_id or url is required"]})


class PublicationPayloadSchema(Schema):
    content_type = fields.Str(required=True, validate=validate.OneOf(CONTENT_TYPES))
    message = fields.Str(required=False, allow_none=True, load_default=None)
    title = fields.Str(required=False, allow_none=True, load_default=None)
    link = fields.Str(required=False, allow_none=True, load_default=None)
    items = fields.List(fields.Nested(PublicationItemSchema), required=False, load_default=list)
    privacy_level = fields.Str(required=False, allow_none=True, load_default=None)

    @validates_schema
    def validate_shape(self, data, **kwargs):
        content_type = data.get("content_type")
        items = data.get("items") or []

        if content_type == CONTENT_LINK and not data.get("link"):
            raise ValidationError({"link": ["link is required for LINK posts"]})

        if content_type in (CONTENT_PHOTO, CONTENT_VIDEO, CONTENT_STORY, CONTENT_REEL) and not items:
            raise ValidationError({"items": [f"{content_type} requires one media item"]})

        if content_type == CONTENT_PHOTO and items[0].get("media_type") != MEDIA_IMAGE:
            raise ValidationError({"items": ["PHOTO requires an IMAGE item"]})

        if content_type in (CONTENT_VIDEO, CONTENT_REEL) and items[0].get("media_type") != MEDIA_VIDEO:
            raise ValidationError({"items": [f"{content_type} requires a VIDEO item"]})

        if content_type == CONTENT_CAROUSEL and len(items) > 10:
            raise ValidationError({"items": ["CAROUSEL accepts at most 10 items"]})
