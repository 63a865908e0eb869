# socialconnect/resources/social/oauth_resource.py

from flask import g, redirect
from flask.views import MethodView
from flask_smorest import Blueprint

from ...decorators.auth_decorator import token_required
from ...schemas.social.oauth_schema import (
    AuthorizeQuerySchema,
    CallbackQuerySchema,
    PendingQuerySchema,
    SelectionSchema,
)
from ...services.social.callback_orchestrator import CallbackOrchestrator
from ...utils.extensions import OAUTH_CALLBACK_LIMIT, client_ip, limiter
from ...utils.helpers import make_log_tag
from ...utils.json_response import prepared_response
from ...utils.logger import Log


blp_social_oauth = Blueprint("social_oauth", __name__, description="Social account OAuth connection")


# -------------------------------------------------------------------
# GET /social/oauth/<provider>/authorize
# -------------------------------------------------------------------
@blp_social_oauth.route("/social/oauth/<string:provider>/authorize", methods=["GET"])
class OAuthAuthorizeResource(MethodView):
    @token_required
    @blp_social_oauth.arguments(AuthorizeQuerySchema, location="query")
    def get(self, query, provider):
        user = g.current_user
        log_tag = make_log_tag(
            "oauth_resource.py", "OAuthAuthorizeResource", "get", client_ip(),
            user["user_id"], user["workspace_id"], query["brand_id"], provider=provider,
        )

        authorize_url = CallbackOrchestrator().build_authorize_url(
            provider,
            query["brand_id"],
            user["workspace_id"],
            user["user_id"],
            locale=query.get("locale"),
        )
        Log.info(f"{log_tag} authorize url issued")
        return prepared_response(True, "OK", "Authorization URL generated", data={"authorize_url": authorize_url})


# -------------------------------------------------------------------
# GET /social/oauth/<provider>/callback (public, platform redirect)
# -------------------------------------------------------------------
@blp_social_oauth.route("/social/oauth/<string:provider>/callback", methods=["GET"])
class OAuthCallbackResource(MethodView):
    decorators = [limiter.limit(OAUTH_CALLBACK_LIMIT)]

    @blp_social_oauth.arguments(CallbackQuerySchema, location="query")
    def get(self, query, provider):
        outcome = CallbackOrchestrator().handle_callback(
            provider,
            query.get("code"),
            query.get("state"),
            error=query.get("error"),
            error_description=query.get("error_description"),
        )
        Log.info(
            f"[oauth_resource.py][OAuthCallbackResource][get][{provider}][ip:{client_ip()}] "
            f"outcome={outcome.status}"
        )
        return redirect(outcome.redirect_url, code=302)


# -------------------------------------------------------------------
# GET /social/oauth/<provider>/pending
# -------------------------------------------------------------------
@blp_social_oauth.route("/social/oauth/<string:provider>/pending", methods=["GET"])
class OAuthPendingSelectionResource(MethodView):
    @token_required
    @blp_social_oauth.arguments(PendingQuerySchema, location="query")
    def get(self, query, provider):
        user = g.current_user
        pending = CallbackOrchestrator().get_pending_selection(query["brand_id"], provider, user["workspace_id"])
        return prepared_response(True, "OK", "Pending selection retrieved", data=pending)


# -------------------------------------------------------------------
# POST /social/oauth/<provider>/selection
# -------------------------------------------------------------------
@blp_social_oauth.route("/social/oauth/<string:provider>/selection", methods=["POST"])
class OAuthSelectionResource(MethodView):
    @token_required
    @blp_social_oauth.arguments(SelectionSchema)
    def post(self, body, provider):
        user = g.current_user
        log_tag = make_log_tag(
            "oauth_resource.py", "OAuthSelectionResource", "post", client_ip(),
            user["user_id"], user["workspace_id"], body["brand_id"], provider=provider,
        )

        accounts = CallbackOrchestrator().resolve_selection(
            body["brand_id"],
            provider,
            body["selected_ids"],
            user["workspace_id"],
            user_id=user["user_id"],
        )
        Log.info(f"{log_tag} selection saved for {len(accounts)} account(s)")
        return prepared_response(True, "OK", "Selection saved", data={"accounts": accounts})
