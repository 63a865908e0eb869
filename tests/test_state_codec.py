import base64
import json

import pytest

from socialconnect.services.social.errors import InvalidStateError
from socialconnect.services.social.state_codec import decode_state, encode_state, normalize_state


def test_round_trip_keeps_known_fields_only():
    token = encode_state({
        "brand_id": "b1",
        "workspace_id": "w1",
        "user_id": "u1",
        "locale": "en",
        "code_verifier": "verifier",
        "access_token": "must-not-travel",
    })

    assert "=" not in token
    assert decode_state(token) == {
        "brand_id": "b1",
        "workspace_id": "w1",
        "user_id": "u1",
        "locale": "en",
        "code_verifier": "verifier",
    }


def test_decoded_state_is_the_normalized_payload():
    payload = {"brand_id": 42, "workspace_id": "w1", "user_id": "u1", "locale": None}

    assert normalize_state(payload) == {"brand_id": "42", "workspace_id": "w1", "user_id": "u1"}
    assert decode_state(encode_state(payload)) == normalize_state(payload)


def test_encode_requires_tenancy_fields():
    with pytest.raises(InvalidStateError):
        encode_state({"brand_id": "b1", "workspace_id": "w1"})


@pytest.mark.parametrize("token", ["", "bm90LWpzb24", base64.urlsafe_b64encode(b"[1, 2]").decode()])
def test_corrupted_state_is_rejected(token):
    with pytest.raises(InvalidStateError):
        decode_state(token)


def test_state_missing_workspace_is_rejected():
    raw = base64.urlsafe_b64encode(json.dumps({"brand_id": "b1", "user_id": "u1"}).encode()).decode()
    with pytest.raises(InvalidStateError) as exc:
        decode_state(raw)
    assert "workspace_id" in exc.value.message
