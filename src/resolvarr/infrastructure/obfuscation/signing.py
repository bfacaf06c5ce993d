"""Request signing for the MovieBox mobile API (HMAC-MD5)."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from urllib.parse import parse_qsl, urlsplit

_ACCEPT = "application/json"
_CONTENT_TYPE = "application/json; charset=utf-8"


def md5_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data).hexdigest()  # noqa: S324


def canonical_url(url: str) -> str:
    """Path plus query parameters sorted by key (values decoded)."""
    parts = urlsplit(url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    params.sort(key=lambda kv: kv[0])
    qs = "&".join(f"{k}={v}" for k, v in params)
    return f"{parts.path}?{qs}" if qs else parts.path


def canonical_request(url: str, method: str, body: str, timestamp: int) -> str:
    body_hash = ""
    body_length = ""
    if body:
        raw = body.encode("utf-8")
        body_length = str(len(raw))
        body_hash = md5_hex(raw)
    return "\n".join(
        [
            method.upper(),
            _ACCEPT,
            _CONTENT_TYPE,
            body_length,
            str(timestamp),
            body_hash,
            canonical_url(url),
        ]
    )


def client_token(timestamp: int) -> str:
    return f"{timestamp},{md5_hex(str(timestamp)[::-1])}"


def sign_request(
    key_b64: str,
    url: str,
    method: str = "GET",
    body: str = "",
    *,
    timestamp: int | None = None,
) -> dict[str, str]:
    """Build the ``x-tr-signature`` / ``x-client-token`` header pair.

    Args:
        key_b64: Base64 HMAC key.
        url: Full request URL (query is canonicalised).
        method: HTTP method.
        body: Raw request body, empty for GET.
        timestamp: Milliseconds since epoch; defaults to now.
    """
    ts = timestamp if timestamp is not None else int(time.time() * 1000)
    key = base64.b64decode(key_b64)
    digest = hmac.new(
        key, canonical_request(url, method, body, ts).encode("utf-8"), hashlib.md5
    ).digest()
    signature = base64.b64encode(digest).decode("ascii")
    return {
        "x-tr-signature": f"{ts}|2|{signature}",
        "x-client-token": client_token(ts),
    }
