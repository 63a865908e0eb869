# socialconnect/extensions/queue.py

from __future__ import annotations

import os
from typing import Any, Optional

from rq import Queue, Retry

from .db import redis_connection


# -------------------------------------------------------------------
# Queue names / defaults
# -------------------------------------------------------------------

PUBLISH_QUEUE_NAME = (os.getenv("RQ_PUBLISH_QUEUE") or "publish").strip() or "publish"

RQ_DEFAULT_TIMEOUT = int(os.getenv("RQ_DEFAULT_TIMEOUT", "600"))          # seconds
RQ_DEFAULT_RESULT_TTL = int(os.getenv("RQ_DEFAULT_RESULT_TTL", "3600"))   # seconds
RQ_DEFAULT_FAILURE_TTL = int(os.getenv("RQ_DEFAULT_FAILURE_TTL", "86400"))# seconds

# Backoff for RetryablePublicationError (rate limits, media still processing)
PUBLISH_RETRY_MAX = int(os.getenv("PUBLISH_RETRY_MAX", "3"))
PUBLISH_RETRY_INTERVALS = [30, 120, 300]


def get_queue(name: Optional[str] = None) -> Queue:
    qn = (name or "").strip() or PUBLISH_QUEUE_NAME
    return Queue(qn, connection=redis_connection.get_connection(), default_timeout=RQ_DEFAULT_TIMEOUT)


def enqueue(func: str, *args: Any, queue_name: Optional[str] = None, retry: Optional[Retry] = None, **kwargs: Any):
    """
    Enqueue with consistent defaults.

    Example:
      enqueue(
        "socialconnect.tasks.social.publish_job.publish_to_account",
        account_id, payload,
        retry=Retry(max=3, interval=[30, 120, 300]),
      )
    """
    q = get_queue(queue_name)
    return q.enqueue(
        func,
        *args,
        **kwargs,
        job_timeout=RQ_DEFAULT_TIMEOUT,
        result_ttl=RQ_DEFAULT_RESULT_TTL,
        failure_ttl=RQ_DEFAULT_FAILURE_TTL,
        retry=retry,
    )


def publish_retry_policy() -> Retry:
    return Retry(max=PUBLISH_RETRY_MAX, interval=PUBLISH_RETRY_INTERVALS[:PUBLISH_RETRY_MAX])
