# socialconnect/services/social/publishers/facebook.py

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import requests

from ....constants.service_code import MEDIA_IMAGE, MEDIA_VIDEO, PLATFORM_FACEBOOK
from ....utils.logger import Log
from ..errors import (
    MediaUnresolvedError,
    PublicationError,
    RetryablePublicationError,
    VerificationFailedError,
)
from . import graph_api
from .base import PublishResult, raise_for_http_error
from .graph_api import GraphPublisherBase


RESUMABLE_THRESHOLD_BYTES = 25 * 1024 * 1024


class FacebookPublisher(GraphPublisherBase):
    """
    Facebook Page publishing over the Graph API.

      PHOTO     /{page}/photos
      VIDEO     /{page}/videos (REEL is published the same way)
      CAROUSEL  unpublished /{page}/photos uploads -> /{page}/feed attached_media
      LINK      /{page}/feed
      STORY     /{page}/photo_stories or /{page}/video_stories
                (resumable upload for large videos, standard upload as fallback)

    Feed posts are verified after creation; stories have no permalink.
    """

    platform = PLATFORM_FACEBOOK

    def __init__(self, media_resolver=None, app_id: Optional[str] = None, api_base: Optional[str] = None):
        super().__init__(media_resolver, api_base)
        self.app_id = app_id if app_id is not None else (os.getenv("META_APP_ID") or os.getenv("FACEBOOK_APP_ID"))

    @classmethod
    def page_id(cls, account: Dict[str, Any]) -> str:
        page_id = cls.token_data(account).get("page_id") or account.get("platform_account_id")
        if not page_id:
            raise PublicationError("Missing Facebook Page ID", code="MISSING_PAGE_ID")
        return str(page_id)

    # ------------------------------------------------------------
    # Permalink / verification
    # ------------------------------------------------------------
    def _lookup_permalink(self, object_id: str, token: str) -> str:
        try:
            details = self.graph_get(f"/{object_id}", {"fields": "permalink_url,link"}, token)
        except RetryablePublicationError as e:
            Log.warning(f"[publishers/facebook.py][_lookup_permalink] object={object_id} lookup failed: {e}")
            return ""
        if details.get("error"):
            Log.warning(f"[publishers/facebook.py][_lookup_permalink] object={object_id} error={details['error'].get('message')}")
            return ""
        return details.get("permalink_url") or details.get("link") or ""

    def _verified_result(self, post_id: str, token: str, lookup_id: Optional[str] = None) -> PublishResult:
        verification = self.verify_facebook_post(post_id, token)
        if not verification.get("exists"):
            raise VerificationFailedError(
                "Facebook post was not successfully published or is not accessible",
                post_id=post_id,
            )
        permalink = verification.get("permalink") or self._lookup_permalink(lookup_id or post_id, token)
        return PublishResult(post_id=post_id, permalink=permalink)

    # ------------------------------------------------------------
    # Feed content
    # ------------------------------------------------------------
    def publish_photo(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        page_id, token = self.page_id(account), account["access_token"]
        image_url = self.resolve_item_url(self.first_item(payload))

        data = self.graph_post(f"/{page_id}/photos", {
            "url": image_url,
            "caption": payload.get("message"),
            "published": True,
        }, token)
        graph_api.raise_for_graph_error(data, "Failed to post FB photo")

        photo_id = data["id"]
        return self._verified_result(data.get("post_id") or photo_id, token, lookup_id=photo_id)

    def publish_video(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        page_id, token = self.page_id(account), account["access_token"]
        item = self.first_item(payload)
        video_url = self.resolve_item_url(item)

        data = self.graph_post(f"/{page_id}/videos", {
            "file_url": video_url,
            "description": payload.get("message"),
            "title": payload.get("title"),
            "thumb": item.get("thumbnail_url"),
            "published": True,
        }, token)
        graph_api.raise_for_graph_error(data, "Failed to post FB video")

        # videos are processed asynchronously, only the permalink is looked up
        video_id = data["id"]
        return PublishResult(post_id=video_id, permalink=self._lookup_permalink(video_id, token))

    def publish_link(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        page_id, token = self.page_id(account), account["access_token"]

        data = self.graph_post(f"/{page_id}/feed", {
            "link": payload.get("link"),
            "message": payload.get("message"),
        }, token)
        graph_api.raise_for_graph_error(data, "Failed to post FB link")
        return self._verified_result(data["id"], token)

    def publish_carousel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        page_id, token = self.page_id(account), account["access_token"]
        items = payload.get("items") or []
        if not items:
            raise PublicationError("Carousel payload must contain at least one item", code="CAROUSEL_EMPTY")

        photo_ids: List[str] = []
        for item in items:
            if item.get("media_type") != MEDIA_IMAGE:
                Log.warning(f"[publishers/facebook.py][publish_carousel] page={page_id} skipping non-image item {item.get('media_id') or item.get('url')}")
                continue

            url = self.resolve_item_url(item)
            upload = self.graph_post(f"/{page_id}/photos", {"url": url, "published": False}, token)
            graph_api.raise_for_graph_error(upload, "Failed to upload carousel photo")
            photo_ids.append(upload["id"])

        if not photo_ids:
            raise PublicationError("No valid photos uploaded for carousel", code="CAROUSEL_NO_VALID_ITEMS")

        Log.info(f"[publishers/facebook.py][publish_carousel] page={page_id} uploaded={len(photo_ids)}")
        data = self.graph_post(f"/{page_id}/feed", {
            "message": payload.get("message"),
            "attached_media": json.dumps([{"media_fbid": pid} for pid in photo_ids]),
        }, token)
        graph_api.raise_for_graph_error(data, "Failed to create FB carousel")
        return self._verified_result(data["id"], token)

    # ------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------
    def publish_story(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        page_id, token = self.page_id(account), account["access_token"]
        item = self.first_item(payload)
        media_url = self.resolve_item_url(item)

        if not media_url.startswith("https://"):
            raise MediaUnresolvedError("Media URL must be HTTPS for Facebook Stories", code="MEDIA_NOT_HTTPS")

        Log.info(f"[publishers/facebook.py][publish_story] page={page_id} media_type={item.get('media_type')}")
        if item.get("media_type") == MEDIA_VIDEO:
            return self.publish_video_story(page_id, media_url, token)
        return self.publish_photo_story(page_id, media_url, token)

    @staticmethod
    def _story_result(data: Dict[str, Any], step: str) -> PublishResult:
        if not graph_api.story_succeeded(data):
            graph_api.raise_for_graph_error(data, step, required=("id", "post_id", "success"))
        return PublishResult(post_id=str(data.get("post_id") or data.get("id") or ""), permalink="")

    def publish_photo_story(self, page_id: str, media_url: str, token: str) -> PublishResult:
        upload = self.graph_post(f"/{page_id}/photos", {"url": media_url, "published": False}, token)
        graph_api.raise_for_graph_error(upload, "Failed to upload photo for story")

        data = self.graph_post(f"/{page_id}/photo_stories", {"photo_id": upload["id"]}, token)
        return self._story_result(data, "Failed to post FB photo story")

    @staticmethod
    def get_file_info(media_url: str) -> Dict[str, Any]:
        name = urlsplit(media_url).path.rsplit("/", 1)[-1] or "video.mp4"
        try:
            resp = requests.head(media_url, allow_redirects=True, timeout=30)
        except requests.RequestException as e:
            Log.warning(f"[publishers/facebook.py][get_file_info] HEAD failed, using defaults: {e}")
            return {"size": 0, "type": "video/mp4", "name": name}

        try:
            size = int(resp.headers.get("Content-Length") or 0)
        except ValueError:
            size = 0
        return {"size": size, "type": resp.headers.get("Content-Type") or "video/mp4", "name": name}

    def publish_video_story(self, page_id: str, media_url: str, token: str) -> PublishResult:
        file_info = self.get_file_info(media_url)

        if file_info["size"] >= RESUMABLE_THRESHOLD_BYTES:
            if not self.app_id:
                Log.warning("[publishers/facebook.py][publish_video_story] META_APP_ID not configured, using standard upload")
            else:
                try:
                    return self.publish_video_story_resumable(page_id, media_url, file_info, token)
                except (PublicationError, requests.RequestException, ValueError) as e:
                    Log.warning(f"[publishers/facebook.py][publish_video_story] resumable upload failed, falling back: {e}")

        return self.publish_video_story_standard(page_id, media_url, token)

    def publish_video_story_resumable(self, page_id: str, media_url: str, file_info: Dict[str, Any], token: str) -> PublishResult:
        Log.info(f"[publishers/facebook.py][publish_video_story_resumable] page={page_id} size={file_info['size']}")

        session = self.graph_post(f"/{self.app_id}/uploads", {
            "file_name": file_info["name"],
            "file_length": file_info["size"],
            "file_type": file_info["type"],
        }, token)
        graph_api.raise_for_graph_error(session, "Failed to start resumable upload")
        session_id = str(session["id"]).replace("upload:", "")

        content = self.download_media(media_url)
        resp = requests.post(
            f"{self.api_base}/upload:{session_id}",
            headers={"Authorization": f"OAuth {token}", "file_offset": "0"},
            data=content,
            timeout=self.upload_timeout,
        )
        if resp.status_code >= 400:
            raise PublicationError(f"Resumable upload failed: HTTP {resp.status_code}")

        uploaded = resp.json()
        if uploaded.get("error"):
            raise PublicationError(f"Resumable upload error: {graph_api.extract_graph_error_message(uploaded['error'])}")
        file_handle = uploaded.get("h")
        if not file_handle:
            raise PublicationError("No file handle received from resumable upload")

        data = self.graph_post(f"/{page_id}/video_stories", {
            "upload_phase": "finish",
            "video_file_chunk": file_handle,
        }, token)
        return self._story_result(data, "Failed to create video story with file handle")

    def publish_video_story_standard(self, page_id: str, media_url: str, token: str) -> PublishResult:
        endpoint = f"/{page_id}/video_stories"

        start = self.graph_post(endpoint, {"upload_phase": "start"}, token)
        graph_api.raise_for_graph_error(start, "Failed to start video story upload", required=("video_id",))

        video_id = start["video_id"]
        upload_url = start.get("upload_url")
        if not upload_url:
            raise PublicationError("Facebook did not provide upload URL for video story")

        try:
            resp = requests.post(
                upload_url,
                headers={"Authorization": f"OAuth {token}", "file_url": media_url},
                timeout=self.upload_timeout,
            )
        except requests.RequestException as e:
            raise RetryablePublicationError(f"Failed to upload video to Facebook: {e}", original_error=str(e))
        raise_for_http_error(self.platform, resp, {}, "Failed to upload video to Facebook")

        finish = self.graph_post(endpoint, {"upload_phase": "finish", "video_id": video_id}, token)
        return self._story_result(finish, "Failed to finish video story")
