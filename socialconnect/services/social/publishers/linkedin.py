# socialconnect/services/social/publishers/linkedin.py

from __future__ import annotations

import os
from typing import Any, Dict, List
from urllib.parse import quote

from ....constants.service_code import MEDIA_IMAGE, MEDIA_VIDEO, PLATFORM_LINKEDIN
from ....utils.logger import Log
from ..errors import PublicationError
from .base import PublisherBase, PublishResult
from .graph_api import wait_for_status


LINKEDIN_API_BASE = (os.getenv("LINKEDIN_PUBLISH_API_BASE") or "https://api.linkedin.com/v2").rstrip("/")

RECIPES = {
    MEDIA_IMAGE: "urn:li:digitalmediaRecipe:feedshare-image",
    MEDIA_VIDEO: "urn:li:digitalmediaRecipe:feedshare-video",
}


class LinkedInPublisher(PublisherBase):
    """
    LinkedIn UGC posts for a member or an organization page.

    Media: assets?action=registerUpload -> PUT bytes -> wait AVAILABLE,
    then ugcPosts with the asset URNs. LINK is an ARTICLE share.
    """

    platform = PLATFORM_LINKEDIN
    default_api_base = LINKEDIN_API_BASE

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-Restli-Protocol-Version": "2.0.0",
            "Content-Type": "application/json",
        }

    @classmethod
    def author_urn(cls, account: Dict[str, Any]) -> str:
        urn = cls.token_data(account).get("author_urn")
        if urn:
            return urn
        return f"urn:li:person:{account.get('platform_account_id')}"

    # ------------------------------------------------------------
    # Media upload
    # ------------------------------------------------------------
    def upload_media(self, author: str, item: Dict[str, Any], token: str) -> str:
        media_type = item.get("media_type") or MEDIA_IMAGE
        url = self.resolve_item_url(item)

        register = self.request_json("POST", f"{self.api_base}/assets?action=registerUpload",
                                     "LinkedIn registerUpload failed", headers=self._headers(token), json={
            "registerUploadRequest": {
                "recipes": [RECIPES[media_type]],
                "owner": author,
                "serviceRelationships": [
                    {"relationshipType": "OWNER", "identifier": "urn:li:userGeneratedContent"}
                ],
            }
        })

        value = register.get("value") or {}
        mechanism = (value.get("uploadMechanism") or {}).get(
            "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"
        ) or {}
        upload_url, asset = mechanism.get("uploadUrl"), value.get("asset")
        if not upload_url or not asset:
            raise PublicationError("LinkedIn registerUpload returned no uploadUrl/asset")

        content = self.download_media(url)
        self.request("PUT", upload_url, "LinkedIn media upload failed", timeout=self.upload_timeout,
                     data=content, headers={"Authorization": f"Bearer {token}"})

        wait_for_status(
            asset,
            lambda: self._asset_status(asset, token),
            ("AVAILABLE",),
            ("CLIENT_ERROR", "SERVER_ERROR", "FAILED"),
            max_attempts=20,
            initial_wait=2.0,
            max_wait=10.0,
            context="[LINKEDIN]",
        )
        return asset

    def _asset_status(self, asset: str, token: str) -> Dict[str, Any]:
        asset_id = asset.split(":")[-1]
        data = self.request_json("GET", f"{self.api_base}/assets/{quote(asset_id, safe='')}",
                                 "LinkedIn asset status failed", headers=self._headers(token))
        recipes = data.get("recipes") or []
        return {"status": recipes[0].get("status") if recipes else data.get("status")}

    # ------------------------------------------------------------
    # UGC post
    # ------------------------------------------------------------
    def _share(self, account: Dict[str, Any], payload: Dict[str, Any], category: str, media: List[Dict[str, Any]]) -> PublishResult:
        token = account["access_token"]
        author = self.author_urn(account)

        share: Dict[str, Any] = {
            "shareCommentary": {"text": payload.get("message") or ""},
            "shareMediaCategory": category,
        }
        if media:
            share["media"] = media

        resp = self.request("POST", f"{self.api_base}/ugcPosts", "LinkedIn ugcPosts failed",
                            headers=self._headers(token), json={
            "author": author,
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": share},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
        })

        post_urn = resp.headers.get("x-restli-id") or resp.headers.get("X-RestLi-Id")
        if not post_urn:
            post_urn = (resp.json() or {}).get("id") if resp.content else None
        if not post_urn:
            raise PublicationError("LinkedIn ugcPosts returned no post id")

        Log.info(f"[publishers/linkedin.py][_share] author={author} post={post_urn} category={category}")
        return PublishResult(post_id=post_urn, permalink=f"https://www.linkedin.com/feed/update/{post_urn}/")

    def _media_share(self, account, payload, items, category) -> PublishResult:
        token = account["access_token"]
        author = self.author_urn(account)
        media = [
            {
                "status": "READY",
                "media": self.upload_media(author, item, token),
                "description": {"text": item.get("alt_text") or ""},
                "title": {"text": payload.get("title") or ""},
            }
            for item in items
        ]
        return self._share(account, payload, category, media)

    def publish_photo(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        return self._media_share(account, payload, [self.first_item(payload)], "IMAGE")

    def publish_video(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        return self._media_share(account, payload, [self.first_item(payload)], "VIDEO")

    def publish_carousel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        items = payload.get("items") or []
        if not items:
            raise PublicationError("Carousel payload must contain at least one item", code="CAROUSEL_EMPTY")

        images = [item for item in items if item.get("media_type") == MEDIA_IMAGE]
        if len(images) < len(items):
            Log.warning(f"[publishers/linkedin.py][publish_carousel] skipping {len(items) - len(images)} non-image item(s)")
        if not images:
            raise PublicationError("No valid photos uploaded for carousel", code="CAROUSEL_NO_VALID_ITEMS")
        return self._media_share(account, payload, images, "IMAGE")

    def publish_link(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        article = {"status": "READY", "originalUrl": payload.get("link")}
        if payload.get("title"):
            article["title"] = {"text": payload["title"]}
        return self._share(account, payload, "ARTICLE", [article])
