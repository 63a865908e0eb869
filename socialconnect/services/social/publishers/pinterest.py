# socialconnect/services/social/publishers/pinterest.py

from __future__ import annotations

import os
from typing import Any, Dict

from ....config import PINTEREST_API_BASES
from ....constants.service_code import MEDIA_IMAGE, MEDIA_VIDEO, PLATFORM_PINTEREST
from ....utils.logger import Log
from ..errors import PublicationError
from .base import PublisherBase, PublishResult


TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


class PinterestPublisher(PublisherBase):
    """POST /v5/pins on the board stored at connect time (token_data.board_id)."""

    platform = PLATFORM_PINTEREST

    def base_for(self, account: Dict[str, Any]) -> str:
        if self.api_base:
            return self.api_base
        env = (self.token_data(account).get("environment") or os.getenv("PINTEREST_ENV") or "production").lower()
        return PINTEREST_API_BASES.get(env, PINTEREST_API_BASES["production"])

    @classmethod
    def board_id(cls, account: Dict[str, Any]) -> str:
        board_id = cls.token_data(account).get("board_id")
        if not board_id:
            raise PublicationError("Pinterest account has no board; reconnect the account", code="MISSING_BOARD_ID")
        return str(board_id)

    def _create_pin(self, account: Dict[str, Any], payload: Dict[str, Any], media_source: Dict[str, Any], alt_text=None) -> PublishResult:
        body: Dict[str, Any] = {
            "board_id": self.board_id(account),
            "media_source": media_source,
        }
        if payload.get("title"):
            body["title"] = payload["title"][:TITLE_MAX_LENGTH]
        if payload.get("message"):
            body["description"] = payload["message"][:DESCRIPTION_MAX_LENGTH]
        if payload.get("link"):
            body["link"] = payload["link"]
        if alt_text:
            body["alt_text"] = alt_text

        data = self.request_json(
            "POST",
            f"{self.base_for(account)}/v5/pins",
            "Pinterest pin creation failed",
            headers={"Authorization": f"Bearer {account['access_token']}", "Content-Type": "application/json"},
            json=body,
        )
        pin_id = data.get("id")
        if not pin_id:
            raise PublicationError("Pinterest returned no pin id")

        Log.info(f"[publishers/pinterest.py][_create_pin] board={body['board_id']} pin={pin_id}")
        return PublishResult(post_id=str(pin_id), permalink=f"https://www.pinterest.com/pin/{pin_id}/")

    def publish_photo(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        item = self.first_item(payload)
        return self._create_pin(account, payload, {"source_type": "image_url", "url": self.resolve_item_url(item)},
                                alt_text=item.get("alt_text"))

    def publish_video(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        item = self.first_item(payload)
        source = {"source_type": "video_url", "url": self.resolve_item_url(item)}
        if item.get("thumbnail_url"):
            source["cover_image_url"] = item["thumbnail_url"]
        return self._create_pin(account, payload, source)

    def publish_carousel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        items = payload.get("items") or []
        if not items:
            raise PublicationError("Carousel payload must contain at least one item", code="CAROUSEL_EMPTY")

        images = [item for item in items if item.get("media_type") == MEDIA_IMAGE]
        if len(images) < len(items):
            Log.warning(f"[publishers/pinterest.py][publish_carousel] skipping {len(items) - len(images)} non-image item(s)")
        if not images:
            raise PublicationError("No valid photos uploaded for carousel", code="CAROUSEL_NO_VALID_ITEMS")

        if len(images) == 1:
            return self._create_pin(account, payload, {"source_type": "image_url", "url": self.resolve_item_url(images[0])})

        return self._create_pin(account, payload, {
            "source_type": "multiple_image_urls",
            "items": [
                {"url": self.resolve_item_url(item), "description": item.get("alt_text") or ""}
                for item in images
            ],
        })

    def publish_link(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        # a pin always needs an image; the link becomes the pin's destination
        items = [item for item in (payload.get("items") or []) if item.get("media_type") != MEDIA_VIDEO]
        if not items:
            raise PublicationError("Pinterest link pins require an image", code="MEDIA_REQUIRED")
        return self._create_pin(account, payload, {"source_type": "image_url", "url": self.resolve_item_url(items[0])})
