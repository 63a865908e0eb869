# socialconnect/utils/json_response.py

from flask import jsonify

from ..constants.service_code import HTTP_STATUS_CODES


def resolve_status(status_key):
    """HTTP_STATUS_CODES key ("NOT_FOUND") or a plain int -> int."""
    if isinstance(status_key, int):
        return status_key
    return HTTP_STATUS_CODES.get(status_key, HTTP_STATUS_CODES["INTERNAL_SERVER_ERROR"])


def prepared_response(success, status_key, message, data=None, errors=None, code=None):
    """
    Envelope shared by every JSON endpoint:
      {"success", "status_code", "message", "code"?, "data"?, "errors"?}
    Optional members are dropped when None.
    """
    status = resolve_status(status_key)
    body = {"success": success, "status_code": status, "message": str(message)}

    for key, value in (("code", code), ("data", data), ("errors", errors)):
        if value is not None:
            body[key] = value

    return jsonify(body), status
