# socialconnect/services/social/publishers/tiktok.py

from __future__ import annotations

import os
from typing import Any, Dict, List

from ....constants.service_code import MEDIA_IMAGE, PLATFORM_TIKTOK
from ....utils.logger import Log
from ..errors import PublicationError, RetryablePublicationError, TokenExpiredError
from .base import PublisherBase, PublishResult
from .graph_api import wait_for_status


TIKTOK_API_BASE = (os.getenv("TIKTOK_API_BASE_URL") or "https://open.tiktokapis.com").rstrip("/")

VIDEO_INIT_DIRECT = "/v2/post/publish/video/init/"
VIDEO_INIT_INBOX = "/v2/post/publish/inbox/video/init/"
CONTENT_INIT = "/v2/post/publish/content/init/"
STATUS_FETCH = "/v2/post/publish/status/fetch/"

DONE_STATUSES = ("PUBLISH_COMPLETE", "SEND_TO_USER_INBOX", "PUBLISHED")
FAILED_STATUSES = ("FAILED", "PROCESSING_FAILED")

# Sandbox / unaudited apps may only upload to the creator's inbox
INBOX_FALLBACK_CODES = (
    "unaudited_client_can_only_post_to_private_accounts",
    "scope_not_authorized",
    "privacy_level_option_mismatch",
)
TOKEN_ERROR_CODES = ("access_token_invalid", "token_expired")
RETRYABLE_ERROR_CODES = ("rate_limit_exceeded", "spam_risk_too_many_pending_share", "internal_error")

DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024
TITLE_MAX_LENGTH = 2200


class TikTokPublisher(PublisherBase):
    """
    TikTok Content Posting API.

      VIDEO / REEL       video/init (PULL_FROM_URL or FILE_UPLOAD), inbox init for unaudited apps
      PHOTO / CAROUSEL   content/init with photo_images
      then               status/fetch until PUBLISH_COMPLETE or SEND_TO_USER_INBOX
    """

    platform = PLATFORM_TIKTOK
    default_api_base = TIKTOK_API_BASE

    def __init__(self, media_resolver=None, upload_source: str = None, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 api_base: str = None):
        super().__init__(media_resolver, api_base)
        self.upload_source = (upload_source or os.getenv("TIKTOK_UPLOAD_SOURCE") or "PULL_FROM_URL").upper()
        self.chunk_size = chunk_size

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json; charset=UTF-8"}

    def _post(self, path: str, body: Dict[str, Any], token: str, step: str) -> Dict[str, Any]:
        """TikTok wraps every answer in {data, error{code, message}}; code "ok" is success."""
        data = self.request_json("POST", f"{self.api_base}{path}", step, json=body, headers=self._headers(token))

        error = data.get("error") or {}
        code = error.get("code")
        if code and code != "ok":
            message = f"{step}: {error.get('message') or code}"
            meta = {"platform": self.platform, "step": step, "tiktok_code": code, "log_id": error.get("log_id")}
            if code in TOKEN_ERROR_CODES:
                raise TokenExpiredError(message, meta=meta)
            if code in RETRYABLE_ERROR_CODES:
                raise RetryablePublicationError(message, original_error=error, meta=meta)
            raise PublicationError(message, code=code.upper(), meta=meta)
        return data.get("data") or {}

    # ------------------------------------------------------------
    # Video
    # ------------------------------------------------------------
    def _post_info(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "title": (payload.get("message") or payload.get("title") or "")[:TITLE_MAX_LENGTH],
            "privacy_level": payload.get("privacy_level") or "SELF_ONLY",
            "disable_comment": False,
        }

    def _video_source(self, video_url: str, content: bytes = None) -> Dict[str, Any]:
        if content is None:
            return {"source": "PULL_FROM_URL", "video_url": video_url}
        size = len(content)
        chunk_size = min(self.chunk_size, size) or size
        return {
            "source": "FILE_UPLOAD",
            "video_size": size,
            "chunk_size": chunk_size,
            "total_chunk_count": max(1, size // chunk_size) if chunk_size else 1,
        }

    def upload_chunks(self, upload_url: str, content: bytes, chunk_size: int, total_chunks: int):
        """PUT the file in Content-Range chunks; the last chunk absorbs the remainder."""
        total = len(content)
        for index in range(total_chunks):
            start = index * chunk_size
            end = total if index == total_chunks - 1 else start + chunk_size
            self.request(
                "PUT",
                upload_url,
                f"Failed to upload TikTok video chunk {index + 1}/{total_chunks}",
                timeout=self.upload_timeout,
                data=content[start:end],
                headers={"Content-Type": "video/mp4", "Content-Range": f"bytes {start}-{end - 1}/{total}"},
            )

    def publish_video(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        token = account["access_token"]
        video_url = self.resolve_item_url(self.first_item(payload))
        content = self.download_media(video_url) if self.upload_source == "FILE_UPLOAD" else None
        source_info = self._video_source(video_url, content)

        try:
            init = self._post(VIDEO_INIT_DIRECT, {"post_info": self._post_info(payload), "source_info": source_info},
                              token, "TikTok video init failed")
        except PublicationError as e:
            if e.meta.get("tiktok_code") not in INBOX_FALLBACK_CODES and e.meta.get("status") != 403:
                raise
            Log.info(f"[publishers/tiktok.py][publish_video] direct post rejected ({e.message}), trying inbox upload")
            init = self._post(VIDEO_INIT_INBOX, {"source_info": source_info}, token, "TikTok inbox video init failed")

        publish_id = init.get("publish_id")
        if not publish_id:
            raise PublicationError("TikTok video init returned no publish_id")

        if content is not None:
            upload_url = init.get("upload_url")
            if not upload_url:
                raise PublicationError("TikTok video init returned no upload_url")
            self.upload_chunks(upload_url, content, source_info["chunk_size"], source_info["total_chunk_count"])

        return self._await_publish(account, publish_id, token)

    # ------------------------------------------------------------
    # Photo
    # ------------------------------------------------------------
    def _publish_photos(self, account: Dict[str, Any], payload: Dict[str, Any], items: List[Dict[str, Any]]) -> PublishResult:
        token = account["access_token"]
        urls = [self.resolve_item_url(item) for item in items]

        post_info = self._post_info(payload)
        post_info["description"] = post_info.pop("title")
        if payload.get("title"):
            post_info["title"] = payload["title"][:90]

        init = self._post(CONTENT_INIT, {
            "post_info": post_info,
            "source_info": {"source": "PULL_FROM_URL", "photo_cover_index": 0, "photo_images": urls},
            "post_mode": "DIRECT_POST",
            "media_type": "PHOTO",
        }, token, "TikTok photo init failed")

        publish_id = init.get("publish_id")
        if not publish_id:
            raise PublicationError("TikTok photo init returned no publish_id")
        return self._await_publish(account, publish_id, token)

    def publish_photo(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        return self._publish_photos(account, payload, [self.first_item(payload)])

    def publish_carousel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        items = payload.get("items") or []
        if not items:
            raise PublicationError("Carousel payload must contain at least one item", code="CAROUSEL_EMPTY")

        images = [item for item in items if item.get("media_type") == MEDIA_IMAGE]
        if len(images) < len(items):
            Log.warning(f"[publishers/tiktok.py][publish_carousel] skipping {len(items) - len(images)} non-image item(s)")
        if not images:
            raise PublicationError("No valid photos uploaded for carousel", code="CAROUSEL_NO_VALID_ITEMS")
        return self._publish_photos(account, payload, images)

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------
    def _await_publish(self, account: Dict[str, Any], publish_id: str, token: str) -> PublishResult:
        last: Dict[str, Any] = {}

        def check():
            last.clear()
            last.update(self._post(STATUS_FETCH, {"publish_id": publish_id}, token, "TikTok status fetch failed"))
            return {"status": last.get("status")}

        try:
            wait_for_status(publish_id, check, DONE_STATUSES, FAILED_STATUSES,
                            max_attempts=40, initial_wait=3.0, max_wait=10.0, context="[TIKTOK]")
        except PublicationError as e:
            if e.code != "PROCESSING_FAILED":
                raise
            raise PublicationError(f"TikTok publish failed: {last.get('fail_reason') or e.message}",
                                   meta={"publish_id": publish_id})

        post_ids = last.get("publicaly_available_post_id") or last.get("publicly_available_post_id") or []
        post_id = str(post_ids[0]) if post_ids else publish_id
        username = account.get("username")
        permalink = f"https://www.tiktok.com/@{username}/video/{post_id}" if post_ids and username else ""

        Log.info(f"[publishers/tiktok.py][_await_publish] publish_id={publish_id} status={last.get('status')}")
        return PublishResult(post_id=post_id, permalink=permalink)
