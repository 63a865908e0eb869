# socialconnect/services/social/state_codec.py

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

from .errors import InvalidStateError


REQUIRED_STATE_FIELDS = ("brand_id", "workspace_id", "user_id")
OPTIONAL_STATE_FIELDS = ("locale", "code_verifier")


def normalize_state(payload: Dict[str, Any]) -> Dict[str, str]:
    """
    The canonical form a state payload travels in: ids become strings,
    optional fields that are None are omitted and unknown keys are dropped.
    decode_state(encode_state(p)) == normalize_state(p).
    """
    for key in REQUIRED_STATE_FIELDS:
        if not payload.get(key):
            raise InvalidStateError(f"Cannot encode OAuth state without {key}")

    data = {key: str(payload[key]) for key in REQUIRED_STATE_FIELDS}
    for key in OPTIONAL_STATE_FIELDS:
        if payload.get(key) is not None:
            data[key] = str(payload[key])
    return data


def encode_state(payload: Dict[str, Any]) -> str:
    """
    {brand_id, workspace_id, user_id, locale?, code_verifier?} -> URL-safe token.

    Only the normalized payload is encoded, so credentials can never leak
    into the redirect.
    """
    data = normalize_state(payload)
    raw = json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_state(token: str) -> Dict[str, Any]:
    if not token or not isinstance(token, str):
        raise InvalidStateError("Missing OAuth state")

    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeError):
        raise InvalidStateError("Invalid OAuth state")

    if not isinstance(data, dict):
        raise InvalidStateError("Invalid OAuth state")

    missing = [key for key in REQUIRED_STATE_FIELDS if not isinstance(data.get(key), str) or not data.get(key)]
    if missing:
        raise InvalidStateError(f"Invalid OAuth state: missing {', '.join(missing)}")

    decoded = {key: data[key] for key in REQUIRED_STATE_FIELDS}
    for key in OPTIONAL_STATE_FIELDS:
        if isinstance(data.get(key), str):
            decoded[key] = data[key]
    return decoded
