# socialconnect/tasks/social/publish_job.py

from __future__ import annotations

from typing import Any, Dict

from marshmallow import ValidationError

from ...services.social.errors import RetryablePublicationError, SocialError
from ...services.social.publish_service import SocialPublishService
from ...utils.logger import Log
from ..appctx import run_in_app_context


def _publish(account_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    log_tag = f"[publish_job.py][publish_to_account][{account_id}]"
    Log.info(f"{log_tag} starting content_type={(payload or {}).get('content_type')}")

    try:
        result = SocialPublishService().publish(account_id, payload)
    except RetryablePublicationError as e:
        # RQ's Retry policy re-attempts the job
        Log.warning(f"{log_tag} retryable failure: {e.message}")
        raise
    except SocialError as e:
        Log.error(f"{log_tag} terminal failure code={e.code}: {e.message}")
        return {
            "success": False,
            "account_id": str(account_id),
            "code": e.code,
            "message": e.message,
            "meta": e.meta,
        }
    except ValidationError as e:
        Log.error(f"{log_tag} invalid payload: {e.messages}")
        return {
            "success": False,
            "account_id": str(account_id),
            "code": "VALIDATION_FAILED",
            "message": "Invalid publication payload",
            "meta": {"errors": e.messages},
        }

    Log.info(f"{log_tag} done post_id={result.get('post_id')}")
    return {"success": True, **result}


def publish_to_account(account_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    RQ entry point:
      enqueue("socialconnect.tasks.social.publish_job.publish_to_account",
              account_id, payload, retry=publish_retry_policy())
    """
    return run_in_app_context(_publish, account_id, payload)
