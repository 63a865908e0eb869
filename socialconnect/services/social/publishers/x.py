# socialconnect/services/social/publishers/x.py

from __future__ import annotations

import math
import os
from typing import Any, Dict, List

from ....constants.service_code import MEDIA_VIDEO, PLATFORM_X
from ....utils.logger import Log
from ..errors import PublicationError
from .base import PublisherBase, PublishResult
from .graph_api import wait_for_status


X_API_BASE = (os.getenv("X_PUBLISH_API_BASE") or "https://api.x.com/2").rstrip("/")

TWEET_MAX_MEDIA = 4
DEFAULT_CHUNK_SIZE = 2 * 1024 * 1024


class XPublisher(PublisherBase):
    """
    X API v2 with the OAuth 2.0 user token.

    Images go through the one-shot media upload; videos use
    initialize -> append -> finalize and poll STATUS until succeeded.
    The tweet is created last with the collected media ids.
    """

    platform = PLATFORM_X
    default_api_base = X_API_BASE

    def __init__(self, media_resolver=None, chunk_size: int = DEFAULT_CHUNK_SIZE, api_base: str = None):
        super().__init__(media_resolver, api_base)
        self.chunk_size = chunk_size

    @staticmethod
    def _auth(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    # ------------------------------------------------------------
    # Media upload
    # ------------------------------------------------------------
    def upload_image(self, content: bytes, token: str) -> str:
        data = self.request_json(
            "POST", f"{self.api_base}/media/upload", "X media upload failed",
            headers=self._auth(token),
            data={"media_category": "tweet_image"},
            files={"media": content},
        )
        media_id = (data.get("data") or {}).get("id")
        if not media_id:
            raise PublicationError("X media upload returned no media id")
        return str(media_id)

    def upload_video(self, content: bytes, token: str) -> str:
        total = len(content)
        if not total:
            raise PublicationError("Downloaded media is empty", code="MEDIA_EMPTY")

        init = self.request_json(
            "POST", f"{self.api_base}/media/upload/initialize", "X media INIT failed",
            headers=self._auth(token),
            json={"media_type": "video/mp4", "total_bytes": total, "media_category": "tweet_video"},
        )
        media_id = (init.get("data") or {}).get("id")
        if not media_id:
            raise PublicationError("X media INIT returned no media id")

        segments = int(math.ceil(total / float(self.chunk_size)))
        for index in range(segments):
            start = index * self.chunk_size
            self.request(
                "POST", f"{self.api_base}/media/upload/{media_id}/append",
                f"X media APPEND failed (segment {index})",
                timeout=self.upload_timeout,
                headers=self._auth(token),
                data={"segment_index": str(index)},
                files={"media": content[start:start + self.chunk_size]},
            )

        final = self.request_json("POST", f"{self.api_base}/media/upload/{media_id}/finalize",
                                  "X media FINALIZE failed", headers=self._auth(token))
        processing = (final.get("data") or {}).get("processing_info")
        if processing:
            wait_for_status(
                media_id,
                lambda: self._media_status(media_id, token),
                ("succeeded",),
                ("failed",),
                max_attempts=30,
                initial_wait=float(processing.get("check_after_secs") or 2),
                max_wait=10.0,
                context="[X]",
            )
        return str(media_id)

    def _media_status(self, media_id: str, token: str) -> Dict[str, Any]:
        data = self.request_json("GET", f"{self.api_base}/media/upload", "X media STATUS failed",
                                 headers=self._auth(token),
                                 params={"command": "STATUS", "media_id": media_id})
        info = (data.get("data") or {}).get("processing_info") or {}
        return {"status": (info.get("state") or "").lower(), "error": info.get("error")}

    def _upload_items(self, items: List[Dict[str, Any]], token: str) -> List[str]:
        media_ids = []
        for item in items[:TWEET_MAX_MEDIA]:
            content = self.download_media(self.resolve_item_url(item))
            if item.get("media_type") == MEDIA_VIDEO:
                media_ids.append(self.upload_video(content, token))
            else:
                media_ids.append(self.upload_image(content, token))
        return media_ids

    # ------------------------------------------------------------
    # Tweet
    # ------------------------------------------------------------
    def create_tweet(self, account: Dict[str, Any], text: str, media_ids: List[str] = None) -> PublishResult:
        body: Dict[str, Any] = {"text": text or ""}
        if media_ids:
            body["media"] = {"media_ids": media_ids}

        data = self.request_json("POST", f"{self.api_base}/tweets", "X create tweet failed",
                                 headers=self._auth(account["access_token"]), json=body)
        tweet_id = (data.get("data") or {}).get("id")
        if not tweet_id:
            raise PublicationError("X create tweet returned no id")

        username = account.get("username")
        permalink = f"https://x.com/{username}/status/{tweet_id}" if username else f"https://x.com/i/status/{tweet_id}"
        Log.info(f"[publishers/x.py][create_tweet] account={account.get('id')} tweet={tweet_id} media={len(media_ids or [])}")
        return PublishResult(post_id=str(tweet_id), permalink=permalink)

    def publish_photo(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        media_ids = self._upload_items([self.first_item(payload)], account["access_token"])
        return self.create_tweet(account, payload.get("message"), media_ids)

    publish_video = publish_photo

    def publish_carousel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        items = payload.get("items") or []
        if not items:
            raise PublicationError("Carousel payload must contain at least one item", code="CAROUSEL_EMPTY")
        if len(items) > TWEET_MAX_MEDIA:
            Log.warning(f"[publishers/x.py][publish_carousel] X allows {TWEET_MAX_MEDIA} media, dropping {len(items) - TWEET_MAX_MEDIA}")
        return self.create_tweet(account, payload.get("message"), self._upload_items(items, account["access_token"]))

    def publish_link(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        text = " ".join(part for part in (payload.get("message"), payload.get("link")) if part)
        return self.create_tweet(account, text)
