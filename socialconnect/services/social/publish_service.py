# socialconnect/services/social/publish_service.py

from __future__ import annotations

from typing import Any, Dict, Optional

from ...constants.service_code import STATUS_ACTIVE
from ...schemas.social.publish_schema import PublicationPayloadSchema
from ...utils.logger import Log
from ...utils.social.token_utils import is_token_expired, is_token_expiring_soon
from .account_service import SocialAccountService
from .errors import PublicationError, TokenExchangeError, TokenExpiredError
from .oauth.registry import get_token_client, provider_for_platform
from .ports import MediaUrlResolver
from .publishers.registry import get_publisher


class SocialPublishService:
    """Load the account with credentials, validate the payload, dispatch to the platform publisher."""

    def __init__(
        self,
        account_service: Optional[SocialAccountService] = None,
        media_resolver: Optional[MediaUrlResolver] = None,
        publisher_factory=None,
        token_client_factory=None,
    ):
        self.accounts = account_service or SocialAccountService()
        self.media_resolver = media_resolver or MediaUrlResolver()
        self.publisher_factory = publisher_factory or get_publisher
        self.token_client_factory = token_client_factory or get_token_client

    def _fresh_account(self, account: Dict[str, Any], log_tag: str) -> Dict[str, Any]:
        """
        Refresh credentials that expire within the next minutes when the
        account holds a refresh token; an already expired token without one
        is terminal.
        """
        if not is_token_expiring_soon(account):
            return account

        account_id = account["id"]
        if account.get("refresh_token"):
            client = self.token_client_factory(provider_for_platform(account.get("platform")))
            try:
                self.accounts.refresh_account_token(account_id, client)
            except TokenExchangeError as e:
                raise TokenExpiredError(f"Token refresh failed: {e.message}", code="REFRESH_FAILED")
            Log.info(f"{log_tag} token refreshed before publishing")
            return self.accounts.get_with_tokens(account_id)

        if is_token_expired(account):
            self.accounts.mark_as_expired(account_id, "TOKEN_EXPIRED", "Access token has expired")
            raise TokenExpiredError("Access token has expired; reconnect the account")

        return account

    def publish(self, account_id, payload: Dict[str, Any]) -> Dict[str, Any]:
        account = self.accounts.get_with_tokens(account_id)
        platform = account.get("platform")
        log_tag = f"[publish_service.py][SocialPublishService][publish][{platform}][{account_id}]"

        if account.get("status") != STATUS_ACTIVE:
            raise PublicationError(
                f"Social account is {account.get('status')}; reconnect it before publishing",
                code="ACCOUNT_NOT_ACTIVE",
                meta={"account_id": str(account_id), "status": account.get("status")},
            )
        if not account.get("can_publish"):
            raise PublicationError(
                "Publishing is not enabled for this social account",
                code="ACCOUNT_CANNOT_PUBLISH",
                meta={"account_id": str(account_id)},
            )

        data = PublicationPayloadSchema().load(payload)
        account = self._fresh_account(account, log_tag)
        publisher = self.publisher_factory(platform, media_resolver=self.media_resolver)

        try:
            result = publisher.publish(account, data)
        except TokenExpiredError as e:
            Log.warning(f"{log_tag} platform rejected credentials: {e.message}")
            self.accounts.mark_as_expired(account_id, "TOKEN_EXPIRED", e.message)
            raise

        Log.info(f"{log_tag} published post_id={result.post_id}")
        return {"platform": platform, "account_id": str(account_id), **result.to_dict()}
