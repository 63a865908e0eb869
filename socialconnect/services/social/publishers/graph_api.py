# socialconnect/services/social/publishers/graph_api.py

"""
Shared Graph API plumbing for the Facebook and Instagram publishers:
requests, error classification, status polling and post-publish checks.

graph_get / graph_post never raise on HTTP errors: Graph answers with an
{"error": {...}} envelope and callers decide through raise_for_graph_error.
"""

from __future__ import annotations

import os
import time
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from ....config import GRAPH_API_VERSION
from ....utils.logger import Log
from ..errors import PublicationError, RetryablePublicationError, TokenExpiredError
from .base import PublisherBase


GRAPH_API_BASE = (os.getenv("GRAPH_API_BASE") or f"https://graph.facebook.com/{GRAPH_API_VERSION}").rstrip("/")

GRAPH_TIMEOUT = 30

# Application / user / page request limits, rate limit
RETRYABLE_ERROR_CODES = (4, 17, 32, 613, 80001)

RETRYABLE_MESSAGE_PATTERNS = (
    "medya yayınlanmaya hazır değil",
    "not ready",
    "media is not ready",
    "please wait",
    "lütfen bekle",
    "processing",
    "in progress",
    "hazır değil",
)

TOKEN_EXPIRED_CODE = 190
OBJECT_NOT_FOUND_CODE = 100


# ------------------------------------------------------------
# Requests
# ------------------------------------------------------------
def _graph_json(resp: requests.Response, endpoint: str, method: str) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        data = {"error": {"message": f"Graph API returned a non JSON body (HTTP {resp.status_code})", "code": None}}
    if not isinstance(data, dict):
        data = {"data": data}

    if resp.status_code >= 400:
        Log.warning(f"[graph_api.py][{method}] endpoint={endpoint} http={resp.status_code} error={(data.get('error') or {}).get('message')}")
    return data


def _send(method: str, endpoint: str, base: Optional[str] = None, **kwargs) -> requests.Response:
    try:
        return requests.request(method, f"{base or GRAPH_API_BASE}{endpoint}", timeout=GRAPH_TIMEOUT, **kwargs)
    except requests.RequestException as e:
        raise RetryablePublicationError(f"Graph API network error on {endpoint}: {e}", original_error=str(e))


def graph_get(endpoint: str, params: Optional[Dict[str, Any]], access_token: str, base: Optional[str] = None) -> Dict[str, Any]:
    query = {**(params or {}), "access_token": access_token}
    return _graph_json(_send("GET", endpoint, base, params=query), endpoint, "GET")


def graph_post(endpoint: str, params: Optional[Dict[str, Any]], access_token: str, base: Optional[str] = None) -> Dict[str, Any]:
    form = {"access_token": access_token}
    for key, value in (params or {}).items():
        if value is None:
            continue
        form[key] = str(value).lower() if isinstance(value, bool) else value
    return _graph_json(_send("POST", endpoint, base, data=form), endpoint, "POST")


# ------------------------------------------------------------
# Errors
# ------------------------------------------------------------
def extract_graph_error_message(error: Optional[Dict[str, Any]]) -> str:
    if not error:
        return "Unknown error"
    return error.get("error_user_msg") or error.get("message") or f"Graph API error (code: {error.get('code')})"


def is_retryable_error(error: Optional[Dict[str, Any]]) -> bool:
    if not error:
        return False
    if error.get("code") in RETRYABLE_ERROR_CODES:
        return True
    message = (error.get("error_user_msg") or error.get("message") or "").lower()
    return any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS)


def raise_for_graph_error(data: Dict[str, Any], step: str, required: Iterable[str] = ("id",)):
    """
    Raise when `data` carries a Graph error or lacks every `required` key.

      code 190            -> TokenExpiredError
      rate limit / busy   -> RetryablePublicationError (original error attached)
      anything else       -> PublicationError
    """
    error = data.get("error")
    if not error and any(data.get(key) for key in required):
        return

    message = f"{step}: {extract_graph_error_message(error)}"
    meta = {"step": step, "graph_error": error}
    if error and error.get("code") == TOKEN_EXPIRED_CODE:
        raise TokenExpiredError(message, meta=meta)
    if is_retryable_error(error):
        raise RetryablePublicationError(message, original_error=error, meta=meta)
    raise PublicationError(message, meta=meta)


def story_succeeded(data: Dict[str, Any]) -> bool:
    return not data.get("error") and bool(data.get("id") or data.get("post_id") or data.get("success") is True)


# ------------------------------------------------------------
# Polling
# ------------------------------------------------------------
def wait_for_status(
    entity_id: str,
    status_checker: Callable[[], Dict[str, Any]],
    target_statuses: Iterable[str],
    error_statuses: Iterable[str],
    max_attempts: int = 60,
    initial_wait: float = 3.0,
    max_wait: float = 15.0,
    backoff: float = 1.5,
    context: str = "",
) -> str:
    """
    Poll `status_checker` until it reports a target status.

    An error status is terminal (PublicationError); running out of attempts
    while still processing is retryable.
    """
    targets = set(target_statuses)
    errors = set(error_statuses)
    wait = initial_wait
    last_status = "UNKNOWN"

    for attempt in range(1, max_attempts + 1):
        try:
            response = status_checker() or {}
        except RetryablePublicationError as e:
            Log.warning(f"[graph_api.py][wait_for_status]{context} entity={entity_id} attempt={attempt} check failed: {e}")
            response = {}

        last_status = response.get("status_code") or response.get("status") or last_status
        if response.get("error"):
            Log.warning(f"[graph_api.py][wait_for_status]{context} entity={entity_id} attempt={attempt} error={response['error']}")

        if last_status in targets:
            Log.info(f"[graph_api.py][wait_for_status]{context} entity={entity_id} status={last_status} attempts={attempt}")
            return last_status

        if last_status in errors:
            raise PublicationError(
                f"Entity processing failed with status: {last_status}",
                code="PROCESSING_FAILED",
                meta={"entity_id": entity_id, "status": last_status},
            )

        if attempt < max_attempts:
            time.sleep(wait)
            wait = min(wait * backoff, max_wait)

    raise RetryablePublicationError(
        f"Entity processing did not complete within timeout. Current status: {last_status}",
        original_error={"entity_id": entity_id, "status": last_status},
    )


# ------------------------------------------------------------
# Post-publish verification
# ------------------------------------------------------------
def _verification_lookup(object_id: str, fields: str, access_token: str, base: Optional[str], context: str) -> Dict[str, Any]:
    """The object already exists on the platform here, so a transport failure is an unknown answer."""
    try:
        return graph_get(f"/{object_id}", {"fields": fields}, access_token, base)
    except RetryablePublicationError as e:
        Log.warning(f"[graph_api.py][{context}] object={object_id} lookup failed: {e}")
        return {}


def verify_facebook_post_published(post_id: str, access_token: str, max_attempts: int = 3, delay: float = 2.0,
                                   base: Optional[str] = None) -> Dict[str, Any]:
    for attempt in range(1, max_attempts + 1):
        data = _verification_lookup(post_id, "id,permalink_url", access_token, base, "verify_facebook_post_published")
        error = data.get("error")

        if not error and (data.get("id") == post_id or data.get("post_id") == post_id):
            Log.info(f"[graph_api.py][verify_facebook_post_published] post={post_id} verified attempts={attempt}")
            return {"exists": True, "permalink": data.get("permalink_url") or data.get("permalink")}

        if error and error.get("code") == OBJECT_NOT_FOUND_CODE:
            Log.warning(f"[graph_api.py][verify_facebook_post_published] post={post_id} not found")
            return {"exists": False}

        if attempt < max_attempts:
            time.sleep(delay)

    return {"exists": False}


def _is_field_not_supported(error: Dict[str, Any]) -> bool:
    message = (error.get("message") or "").lower()
    subcode = str(error.get("error_subcode") or "")
    return (
        "nonexisting field" in message
        or "shadowigmedia" in message
        or ("does not support" in message and "field" in message)
        or (error.get("code") == OBJECT_NOT_FOUND_CODE and subcode == "33")
    )


def verify_instagram_post_published(media_id: str, access_token: str, max_attempts: int = 3, delay: float = 2.0,
                                    base: Optional[str] = None) -> Dict[str, Any]:
    """
    Carousels and stories reject some fields; a field error means the
    media exists, only "does not exist" counts as missing.
    """
    for attempt in range(1, max_attempts + 1):
        data = _verification_lookup(media_id, "id,permalink", access_token, base, "verify_instagram_post_published")
        error = data.get("error")

        if not error and data.get("id"):
            return {"exists": True, "permalink": data.get("permalink"), "status": data.get("status_code")}

        if error:
            if _is_field_not_supported(error):
                return {"exists": True, "permalink": None}

            if error.get("code") == OBJECT_NOT_FOUND_CODE:
                message = (error.get("message") or "").lower()
                if "does not exist" in message or ("cannot be loaded" in message and "missing permissions" in message):
                    Log.warning(f"[graph_api.py][verify_instagram_post_published] media={media_id} not found")
                    return {"exists": False}
                return {"exists": True, "permalink": None}

        if attempt < max_attempts:
            time.sleep(delay)

    return {"exists": False}


# ------------------------------------------------------------
# Publisher base
# ------------------------------------------------------------
class GraphPublisherBase(PublisherBase):
    """Publisher bound to one Graph API base URL."""

    default_api_base = GRAPH_API_BASE

    def graph_get(self, endpoint: str, params: Optional[Dict[str, Any]], access_token: str) -> Dict[str, Any]:
        return graph_get(endpoint, params, access_token, self.api_base)

    def graph_post(self, endpoint: str, params: Optional[Dict[str, Any]], access_token: str) -> Dict[str, Any]:
        return graph_post(endpoint, params, access_token, self.api_base)

    def verify_facebook_post(self, post_id: str, access_token: str) -> Dict[str, Any]:
        return verify_facebook_post_published(post_id, access_token, base=self.api_base)

    def verify_instagram_media(self, media_id: str, access_token: str) -> Dict[str, Any]:
        return verify_instagram_post_published(media_id, access_token, base=self.api_base)
