import re
from urllib.parse import urlsplit, urlunsplit


_TOKEN_PAIR = re.compile(r"((?:access|refresh|id)_token|code_verifier|client_secret)=[^&\s]+", re.IGNORECASE)
_TOKEN_JSON = re.compile(r"(\"(?:access|refresh|id)_token\"\s*:\s*\")[^\"]+", re.IGNORECASE)
_AUTH_HEADER = re.compile(r"\b(Bearer|OAuth)\s+[A-Za-z0-9._~+/=-]{8,}")


def make_log_tag(file, resource, method, ip=None, user_id=None, workspace_id=None, brand_id=None, **kwargs):
    log_tag = (
        f"[{file}]"
        f"[{resource}]"
        f"[{method}]"
    )
    if ip:
        log_tag += f"[ip:{ip}]"
    if user_id:
        log_tag += f"[user:{user_id}]"
    if workspace_id:
        log_tag += f"[workspace:{workspace_id}]"
    if brand_id:
        log_tag += f"[brand:{brand_id}]"

    # Append extra context fields
    for key, value in kwargs.items():
        log_tag += f"[{key}:{value}]"

    return log_tag


def strip_query_string(url):
    """
    https://app.example.com/cb?x=1#frag -> https://app.example.com/cb
    """
    if not url:
        return url
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def redact_tokens(text):
    """
    access_token=abc        -> access_token=[redacted]
    "refresh_token": "abc"  -> "refresh_token": "[redacted]"
    Bearer abc...           -> Bearer [redacted]
    """
    text = _TOKEN_PAIR.sub(r"\1=[redacted]", str(text or ""))
    text = _TOKEN_JSON.sub(r"\1[redacted]", text)
    return _AUTH_HEADER.sub(r"\1 [redacted]", text)


def truncate(value, limit=200):
    text = str(value or "")
    return text if len(text) <= limit else text[: limit - 3] + "..."
