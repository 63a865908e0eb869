# socialconnect/services/social/publishers/youtube.py

from __future__ import annotations

import os
from typing import Any, Dict

from ....constants.service_code import PLATFORM_YOUTUBE
from ....utils.logger import Log
from ..errors import PublicationError
from .base import PublisherBase, PublishResult


YOUTUBE_UPLOAD_BASE = (os.getenv("YOUTUBE_UPLOAD_BASE") or "https://www.googleapis.com/upload/youtube/v3").rstrip("/")

PRIVACY_STATUSES = ("public", "unlisted", "private")
DEFAULT_CATEGORY_ID = "22"  # People & Blogs


class YouTubePublisher(PublisherBase):
    """Videos only: resumable session (Location header) then a single PUT of the bytes."""

    platform = PLATFORM_YOUTUBE
    default_api_base = YOUTUBE_UPLOAD_BASE

    @staticmethod
    def _privacy_status(payload: Dict[str, Any]) -> str:
        value = (payload.get("privacy_level") or "").lower()
        return value if value in PRIVACY_STATUSES else "public"

    def init_upload(self, token: str, payload: Dict[str, Any]) -> str:
        snippet = {
            "title": (payload.get("title") or payload.get("message") or "").strip()[:100] or "Untitled",
            "description": (payload.get("message") or "").strip()[:5000],
            "categoryId": DEFAULT_CATEGORY_ID,
        }
        resp = self.request(
            "POST",
            f"{self.api_base}/videos",
            "YouTube resumable upload init failed",
            params={"uploadType": "resumable", "part": "snippet,status"},
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=UTF-8",
                "X-Upload-Content-Type": "video/*",
            },
            json={"snippet": snippet, "status": {"privacyStatus": self._privacy_status(payload)}},
        )
        upload_url = resp.headers.get("Location")
        if not upload_url:
            raise PublicationError("YouTube resumable init succeeded but Location header missing")
        return upload_url

    def publish_video(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        token = account["access_token"]
        content = self.download_media(self.resolve_item_url(self.first_item(payload)))
        if not content:
            raise PublicationError("Downloaded media is empty", code="MEDIA_EMPTY")

        upload_url = self.init_upload(token, payload)
        resp = self.request(
            "PUT",
            upload_url,
            "YouTube video upload failed",
            timeout=self.upload_timeout,
            data=content,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "video/mp4"},
            allow_redirects=False,
        )
        # 308 means the session is incomplete; a single PUT must finish it
        if resp.status_code == 308:
            raise PublicationError("YouTube upload incomplete (308 Resume Incomplete)", code="UPLOAD_INCOMPLETE")

        video_id = (resp.json() or {}).get("id") if resp.content else None
        if not video_id:
            raise PublicationError("YouTube upload returned no video id")

        Log.info(f"[publishers/youtube.py][publish_video] account={account.get('id')} video={video_id}")
        return PublishResult(post_id=video_id, permalink=f"https://www.youtube.com/watch?v={video_id}")
