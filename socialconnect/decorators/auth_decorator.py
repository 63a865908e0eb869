# socialconnect/decorators/auth_decorator.py

from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_smorest import abort

from ..utils.logger import Log


def token_required(f):
    """
    Require a Bearer access token; the claims carry user_id and workspace_id.
    Sets g.current_user = {"user_id", "workspace_id"}.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        verify_jwt_in_request()
        claims = get_jwt() or {}

        user_id = claims.get("user_id") or get_jwt_identity()
        workspace_id = claims.get("workspace_id")
        if not user_id or not workspace_id:
            Log.info("[auth_decorator.py][token_required] token without user_id/workspace_id claims")
            abort(401, message="Invalid access token")

        g.current_user = {"user_id": str(user_id), "workspace_id": str(workspace_id)}
        return f(*args, **kwargs)

    return decorated
