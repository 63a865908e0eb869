# socialconnect/extensions/__init__.py

from flask_cors import CORS
from flask_jwt_extended import JWTManager

from ..utils.json_response import prepared_response
from .db import db, redis_connection

jwt = JWTManager()
cors = CORS()


# JWT failures use the same envelope as every other error
@jwt.unauthorized_loader
def _missing_token(reason):
    return prepared_response(False, "UNAUTHORIZED", reason, code="AUTH_TOKEN_MISSING")


@jwt.invalid_token_loader
def _invalid_token(reason):
    return prepared_response(False, "UNAUTHORIZED", reason, code="AUTH_TOKEN_INVALID")


@jwt.expired_token_loader
def _expired_token(jwt_header, jwt_payload):
    return prepared_response(False, "UNAUTHORIZED", "Access token has expired", code="AUTH_TOKEN_EXPIRED")


__all__ = ["jwt", "cors", "db", "redis_connection"]
