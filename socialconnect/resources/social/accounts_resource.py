# socialconnect/resources/social/accounts_resource.py

from flask import g, request
from flask.views import MethodView
from flask_smorest import Blueprint

from ...decorators.auth_decorator import token_required
from ...extensions.queue import enqueue, publish_retry_policy
from ...schemas.social.oauth_schema import AccountsQuerySchema
from ...schemas.social.publish_schema import PublicationPayloadSchema
from ...services.social.account_service import SocialAccountService
from ...services.social.oauth.registry import get_token_client, provider_for_platform
from ...services.social.publish_service import SocialPublishService
from ...utils.extensions import PUBLISH_LIMIT, client_ip, limiter
from ...utils.helpers import make_log_tag
from ...utils.json_response import prepared_response
from ...utils.logger import Log


blp_social_accounts = Blueprint("social_accounts", __name__, description="Connected social accounts")

PUBLISH_JOB = "socialconnect.tasks.social.publish_job.publish_to_account"


@blp_social_accounts.route("/social/accounts", methods=["GET"])
class SocialAccountsResource(MethodView):
    @token_required
    @blp_social_accounts.arguments(AccountsQuerySchema, location="query")
    def get(self, query):
        user = g.current_user
        accounts = SocialAccountService().list_by_brand(query["brand_id"], user["workspace_id"], query.get("platform"))
        return prepared_response(True, "OK", "Social accounts retrieved", data={"accounts": accounts})


@blp_social_accounts.route("/social/accounts/<string:account_id>", methods=["GET", "DELETE"])
class SocialAccountResource(MethodView):
    @token_required
    def get(self, account_id):
        account = SocialAccountService().get_by_id(account_id, g.current_user["workspace_id"])
        return prepared_response(True, "OK", "Social account retrieved", data=account)

    @token_required
    def delete(self, account_id):
        user = g.current_user
        SocialAccountService().delete(account_id, user["workspace_id"], acting_user_id=user["user_id"])
        Log.info(make_log_tag("accounts_resource.py", "SocialAccountResource", "delete", client_ip(),
                              user["user_id"], user["workspace_id"], account=account_id))
        return prepared_response(True, "OK", "Social account deleted")


@blp_social_accounts.route("/social/accounts/<string:account_id>/disconnect", methods=["POST"])
class SocialAccountDisconnectResource(MethodView):
    @token_required
    def post(self, account_id):
        user = g.current_user
        account = SocialAccountService().disconnect(account_id, user["workspace_id"], acting_user_id=user["user_id"])
        return prepared_response(True, "OK", "Social account disconnected", data=account)


@blp_social_accounts.route("/social/accounts/<string:account_id>/refresh", methods=["POST"])
class SocialAccountRefreshResource(MethodView):
    @token_required
    def post(self, account_id):
        workspace_id = g.current_user["workspace_id"]
        service = SocialAccountService()

        account = service.get_by_id(account_id, workspace_id)
        client = get_token_client(provider_for_platform(account["platform"]))
        refreshed = service.refresh_account_token(account_id, client, workspace_id=workspace_id)
        return prepared_response(True, "OK", "Social account token refreshed", data=refreshed)


@blp_social_accounts.route("/social/accounts/<string:account_id>/publish", methods=["POST"])
class SocialAccountPublishResource(MethodView):
    decorators = [limiter.limit(PUBLISH_LIMIT)]

    @token_required
    @blp_social_accounts.arguments(PublicationPayloadSchema)
    def post(self, payload, account_id):
        user = g.current_user
        log_tag = make_log_tag(
            "accounts_resource.py", "SocialAccountPublishResource", "post", client_ip(),
            user["user_id"], user["workspace_id"], account=account_id,
        )

        # tenancy check before anything is queued
        SocialAccountService().get_by_id(account_id, user["workspace_id"])

        if request.args.get("sync", "").lower() in ("1", "true", "yes"):
            result = SocialPublishService().publish(account_id, payload)
            Log.info(f"{log_tag} published inline post_id={result.get('post_id')}")
            return prepared_response(True, "OK", "Published", data=result)

        job = enqueue(PUBLISH_JOB, account_id, payload, retry=publish_retry_policy())
        Log.info(f"{log_tag} queued job_id={job.id}")
        return prepared_response(True, "ACCEPTED", "Publication queued", data={"job_id": job.id})
