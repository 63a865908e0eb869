# socialconnect/services/social/publishers/instagram.py

from __future__ import annotations

from typing import Any, Dict, List

from ....constants.service_code import MEDIA_VIDEO, PLATFORM_INSTAGRAM
from ....utils.logger import Log
from ..errors import PublicationError, RetryablePublicationError, VerificationFailedError
from . import graph_api
from .base import PublishResult
from .graph_api import GraphPublisherBase


FINISHED_STATUSES = ("FINISHED", "PUBLISHED", "FINISHED_PROCESSING")
FAILED_STATUSES = ("ERROR", "FAILED", "EXPIRED")


class InstagramPublisher(GraphPublisherBase):
    """
    Instagram Content Publishing API: create a media container, wait for
    video containers to finish processing, media_publish, then verify.
    LINK posts are not supported.
    """

    platform = PLATFORM_INSTAGRAM

    @classmethod
    def ig_user_id(cls, account: Dict[str, Any]) -> str:
        ig_id = cls.token_data(account).get("instagram_account_id") or account.get("platform_account_id")
        if not ig_id:
            raise PublicationError("Missing Instagram Business Account ID", code="MISSING_IG_ACCOUNT_ID")
        return str(ig_id)

    # ------------------------------------------------------------
    # Container steps
    # ------------------------------------------------------------
    def _create_container(self, ig_id: str, params: Dict[str, Any], token: str, step: str) -> str:
        data = self.graph_post(f"/{ig_id}/media", params, token)
        graph_api.raise_for_graph_error(data, step)
        return data["id"]

    def _wait_container(self, container_id: str, token: str, context: str):
        graph_api.wait_for_status(
            container_id,
            lambda: self.graph_get(f"/{container_id}", {"fields": "status_code,status"}, token),
            FINISHED_STATUSES,
            FAILED_STATUSES,
            context=f"[{context}]",
        )

    def _publish_container(self, ig_id: str, container_id: str, token: str, what: str) -> PublishResult:
        data = self.graph_post(f"/{ig_id}/media_publish", {"creation_id": container_id}, token)
        graph_api.raise_for_graph_error(data, f"Failed to publish {what}")
        media_id = data["id"]

        permalink = ""
        try:
            details = self.graph_get(f"/{media_id}", {"fields": "permalink"}, token)
            permalink = details.get("permalink") or ""
        except RetryablePublicationError as e:
            Log.warning(f"[publishers/instagram.py][_publish_container] media={media_id} permalink lookup failed: {e}")

        verification = self.verify_instagram_media(media_id, token)
        if not verification.get("exists"):
            raise VerificationFailedError(
                f"Instagram {what} was not successfully published or is not accessible",
                post_id=media_id,
            )
        return PublishResult(post_id=media_id, permalink=verification.get("permalink") or permalink)

    # ------------------------------------------------------------
    # Content types
    # ------------------------------------------------------------
    def publish_photo(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        ig_id, token = self.ig_user_id(account), account["access_token"]
        image_url = self.resolve_item_url(self.first_item(payload))

        container_id = self._create_container(ig_id, {
            "image_url": image_url,
            "caption": payload.get("message"),
        }, token, "Failed to create IG media container")
        return self._publish_container(ig_id, container_id, token, "image")

    def publish_reel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        ig_id, token = self.ig_user_id(account), account["access_token"]
        item = self.first_item(payload)
        video_url = self.resolve_item_url(item)

        container_id = self._create_container(ig_id, {
            "media_type": "REELS",
            "video_url": video_url,
            "caption": payload.get("message"),
            "cover_url": item.get("thumbnail_url"),
            "share_to_feed": True,
        }, token, "Failed to create reel container")

        Log.info(f"[publishers/instagram.py][publish_reel] container={container_id} waiting for processing")
        self._wait_container(container_id, token, "REEL")
        return self._publish_container(ig_id, container_id, token, "reel")

    # Instagram only accepts feed videos as reels
    publish_video = publish_reel

    def publish_story(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        ig_id, token = self.ig_user_id(account), account["access_token"]
        item = self.first_item(payload)
        media_url = self.resolve_item_url(item)
        is_video = item.get("media_type") == MEDIA_VIDEO

        params = {"media_type": "STORIES"}
        params["video_url" if is_video else "image_url"] = media_url
        container_id = self._create_container(ig_id, params, token, "Failed to create story container")

        if is_video:
            self._wait_container(container_id, token, "STORY")
        return self._publish_container(ig_id, container_id, token, "story")

    def publish_carousel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        ig_id, token = self.ig_user_id(account), account["access_token"]
        items = payload.get("items") or []
        if not items:
            raise PublicationError("Carousel payload must contain at least one item", code="CAROUSEL_EMPTY")

        child_ids: List[str] = []
        for item in items:
            url = self.resolve_item_url(item)
            params: Dict[str, Any] = {"is_carousel_item": True}
            if item.get("media_type") == MEDIA_VIDEO:
                params.update({"video_url": url, "media_type": "VIDEO"})
            else:
                params["image_url"] = url

            child_id = self._create_container(ig_id, params, token, "Failed to create carousel child")
            if item.get("media_type") == MEDIA_VIDEO:
                self._wait_container(child_id, token, "CAROUSEL_CHILD")
            child_ids.append(child_id)

        container_id = self._create_container(ig_id, {
            "media_type": "CAROUSEL",
            "children": ",".join(child_ids),
            "caption": payload.get("message"),
        }, token, "Failed to create carousel container")
        return self._publish_container(ig_id, container_id, token, "carousel")
