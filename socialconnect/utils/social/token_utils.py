# socialconnect/utils/social/token_utils.py

from datetime import datetime, timedelta, timezone

# Publishing refreshes credentials that expire inside this window
REFRESH_WINDOW_MINUTES = 10


def parse_token_expiry(val):
    """
    token_expires_at as stored or received -> aware UTC datetime, or None.
    Accepts datetimes (naive ones are UTC, as Mongo returns them), ISO
    strings with or without "Z", and unix timestamps in seconds.
    """
    if not val:
        return None

    if isinstance(val, datetime):
        return val if val.tzinfo else val.replace(tzinfo=timezone.utc)

    if isinstance(val, str):
        try:
            parsed = datetime.fromisoformat(val.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    try:
        return datetime.fromtimestamp(float(val), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def expires_at_from(expires_in, now=None):
    """Platform "expires_in" seconds -> absolute expiry; None when absent or not positive."""
    try:
        seconds = int(expires_in or 0)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=seconds)


def token_seconds_left(account: dict):
    """None when the platform gave no expiry (long-lived tokens)."""
    expires_at = parse_token_expiry(account.get("token_expires_at"))
    if expires_at is None:
        return None
    return (expires_at - datetime.now(timezone.utc)).total_seconds()


def is_token_expired(account: dict) -> bool:
    left = token_seconds_left(account)
    return left is not None and left <= 0


def is_token_expiring_soon(account: dict, minutes: int = REFRESH_WINDOW_MINUTES) -> bool:
    left = token_seconds_left(account)
    return left is not None and left <= minutes * 60
