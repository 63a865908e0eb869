import base64
import logging
from datetime import datetime, timedelta, timezone

import pytest

from socialconnect.utils.crypt import decrypt_data, encrypt_data
from socialconnect.utils.helpers import make_log_tag, redact_tokens, strip_query_string, truncate
from socialconnect.utils.logger import TokenRedactingFilter
from socialconnect.utils.social.token_utils import (
    expires_at_from,
    is_token_expired,
    is_token_expiring_soon,
    parse_token_expiry,
)


def test_redact_tokens_covers_query_json_and_headers():
    assert redact_tokens("refresh_token=r-1&grant_type=refresh_token") == "refresh_token=[redacted]&grant_type=refresh_token"
    assert redact_tokens('{"access_token": "EAAB123", "expires_in": 60}') == '{"access_token": "[redacted]", "expires_in": 60}'
    assert redact_tokens("Authorization: Bearer abcdefghijkl") == "Authorization: Bearer [redacted]"
    assert redact_tokens(None) == ""


def test_log_records_are_redacted():
    record = logging.LogRecord("socialconnect", logging.INFO, __file__, 1, "exchange failed body=%s", ("access_token=abc",), None)

    assert TokenRedactingFilter().filter(record) is True
    assert record.getMessage() == "exchange failed body=access_token=[redacted]"


def test_log_tag_and_url_helpers():
    tag = make_log_tag("oauth_resource.py", "OAuthAuthorizeResource", "get", ip="1.2.3.4", brand_id="b1", provider="tiktok")
    assert tag == "[oauth_resource.py][OAuthAuthorizeResource][get][ip:1.2.3.4][brand:b1][provider:tiktok]"

    assert strip_query_string("https://api.example.com/cb?x=1#f") == "https://api.example.com/cb"
    assert truncate("abcdef", 5) == "ab..."


def test_token_expiry_helpers():
    now = datetime.now(timezone.utc)

    assert parse_token_expiry("2030-01-01T00:00:00Z") == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert parse_token_expiry(datetime(2030, 1, 1)).tzinfo is timezone.utc
    assert parse_token_expiry("yesterday") is None

    assert is_token_expired({"token_expires_at": now - timedelta(seconds=5)}) is True
    assert is_token_expired({"token_expires_at": None}) is False
    assert is_token_expiring_soon({"token_expires_at": now + timedelta(minutes=3)}) is True
    assert is_token_expiring_soon({"token_expires_at": now + timedelta(hours=2)}) is False

    assert expires_at_from(0) is None
    assert expires_at_from("3600", now=now) == now + timedelta(hours=1)


def test_credentials_round_trip_and_reject_tampering():
    sealed = encrypt_data("access-1")
    assert sealed != encrypt_data("access-1")
    assert decrypt_data(sealed) == "access-1"

    raw = bytearray(base64.b64decode(sealed))
    raw[-1] ^= 1
    with pytest.raises(ValueError):
        decrypt_data(base64.b64encode(bytes(raw)).decode())
