# socialconnect/services/social/publishers/base.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from ....constants.service_code import (
    CONTENT_CAROUSEL,
    CONTENT_LINK,
    CONTENT_PHOTO,
    CONTENT_REEL,
    CONTENT_STORY,
    CONTENT_VIDEO,
)
from ....utils.logger import Log
from ..errors import (
    MediaUnresolvedError,
    PublicationError,
    RetryablePublicationError,
    TokenExpiredError,
)
from ..ports import MediaUrlResolver


RETRYABLE_HTTP_STATUSES = (408, 425, 429, 500, 502, 503, 504)


@dataclass
class PublishResult:
    post_id: str
    permalink: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"post_id": self.post_id, "permalink": self.permalink or ""}


def response_json(resp: requests.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {"raw": (resp.text or "")[:1500]}
    return data if isinstance(data, dict) else {"data": data}


def rest_error_message(data: Dict[str, Any], fallback: str) -> str:
    err = data.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or err.get("code") or fallback)
    for key in ("message", "detail", "title", "error_description"):
        if data.get(key):
            return str(data[key])
    if isinstance(err, str) and err:
        return err
    if data.get("raw"):
        return str(data["raw"])[:300]
    return fallback


def raise_for_http_error(platform: str, resp: requests.Response, data: Dict[str, Any], step: str):
    """
    Classify a non-2xx REST answer:
      401            -> TokenExpiredError
      429 / 5xx      -> RetryablePublicationError
      anything else  -> PublicationError
    """
    if resp.status_code < 400:
        return

    message = f"{step}: {rest_error_message(data, f'HTTP {resp.status_code}')}"
    meta = {"platform": platform, "status": resp.status_code, "step": step}
    Log.info(f"[publishers/base.py][{platform}][{step}] http={resp.status_code} error={message}")

    if resp.status_code == 401:
        raise TokenExpiredError(message, meta=meta)
    if resp.status_code in RETRYABLE_HTTP_STATUSES:
        raise RetryablePublicationError(message, original_error=data, meta=meta)
    raise PublicationError(message, meta=meta)


class PublisherBase:
    """
    publish(account, payload) -> PublishResult

    `account` is SocialAccount.to_dto_with_tokens(); `payload` a loaded
    PublicationPayloadSchema dict. Subclasses implement publish_<content_type>
    for what the platform supports; anything else is a terminal error.
    """

    platform: str = "UNKNOWN"
    default_api_base: str = ""
    timeout: int = 30
    upload_timeout: int = 300

    HANDLERS = {
        CONTENT_PHOTO: "publish_photo",
        CONTENT_VIDEO: "publish_video",
        CONTENT_CAROUSEL: "publish_carousel",
        CONTENT_LINK: "publish_link",
        CONTENT_STORY: "publish_story",
        CONTENT_REEL: "publish_reel",
    }

    def __init__(self, media_resolver: Optional[MediaUrlResolver] = None, api_base: Optional[str] = None):
        self.media_resolver = media_resolver or MediaUrlResolver()
        self.api_base = (api_base or self.default_api_base).rstrip("/")

    def publish(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        content_type = payload.get("content_type")
        handler = getattr(self, self.HANDLERS.get(content_type, ""), None)
        if handler is None:
            raise PublicationError(
                f"{self.platform} does not support {content_type} content",
                code="CONTENT_TYPE_NOT_SUPPORTED",
            )

        token = account.get("access_token")
        if not token:
            raise TokenExpiredError(f"{self.platform} account has no access token", code="MISSING_ACCESS_TOKEN")

        Log.info(f"[publishers/base.py][{self.__class__.__name__}][publish] account={account.get('id')} content_type={content_type}")
        return handler(account, payload)

    def publish_reel(self, account: Dict[str, Any], payload: Dict[str, Any]) -> PublishResult:
        handler = getattr(self, "publish_video", None)
        if handler is None:
            raise PublicationError(f"{self.platform} does not support REEL content", code="CONTENT_TYPE_NOT_SUPPORTED")
        return handler(account, payload)

    # ------------------------------------------------------------
    # Media
    # ------------------------------------------------------------
    def resolve_item_url(self, item: Dict[str, Any]) -> str:
        url = item.get("url")
        if not url:
            url = self.media_resolver.resolve_public_url(item.get("media_id"))
        if not url:
            raise MediaUnresolvedError(
                f"Cannot get public URL for media: {item.get('media_id')}",
                meta={"media_id": item.get("media_id")},
            )
        return url

    def resolve_items(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [{**item, "url": self.resolve_item_url(item)} for item in items]

    def first_item(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        items = payload.get("items") or []
        if not items:
            raise PublicationError(f"{payload.get('content_type')} requires one media item", code="MEDIA_REQUIRED")
        return items[0]

    # ------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------
    def request(self, method: str, url: str, step: str, timeout: Optional[int] = None, **kwargs) -> requests.Response:
        """Send one REST call; network failures are retryable, HTTP errors classified."""
        try:
            resp = requests.request(method, url, timeout=timeout or self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RetryablePublicationError(f"{step}: {e}", original_error=str(e))
        raise_for_http_error(self.platform, resp, response_json(resp) if resp.status_code >= 400 else {}, step)
        return resp

    def request_json(self, method: str, url: str, step: str, **kwargs) -> Dict[str, Any]:
        return response_json(self.request(method, url, step, **kwargs))

    def download_media(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=self.upload_timeout)
        except requests.RequestException as e:
            raise RetryablePublicationError(f"Failed to download media: {e}", original_error=str(e))
        if resp.status_code >= 400:
            raise MediaUnresolvedError(f"Failed to download media: HTTP {resp.status_code}", meta={"url": url})
        return resp.content

    @staticmethod
    def token_data(account: Dict[str, Any]) -> Dict[str, Any]:
        return account.get("token_data") or {}
