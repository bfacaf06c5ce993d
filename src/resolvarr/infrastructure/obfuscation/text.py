"""Text-level obfuscation codecs: base64, ROT13 and the redirect payload stack.

Pure functions, no I/O.
"""

from __future__ import annotations

import base64
import binascii
import codecs
import json
from typing import Any


def b64encode(text: str) -> str:
    """UTF-8 encode *text* and return its standard base64 form."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def b64decode(data: str) -> str:
    """Decode base64 (standard or url-safe alphabet, padding optional).

    Payloads that are not valid UTF-8 are returned as a latin-1 binary
    string, mirroring browser ``atob``.

    Raises:
        ValueError: If *data* is not base64.
    """
    cleaned = data.strip().replace("-", "+").replace("_", "/")
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(cleaned, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def rot13(text: str) -> str:
    """ROT13 over ASCII letters; everything else passes through."""
    return codecs.encode(text, "rot_13")


def decode_redirect_payload(payload: str) -> dict[str, Any]:
    """Undo the redirect-page stack: b64 -> b64 -> rot13 -> b64 -> JSON.

    Used by the 4KHDHub/HDHub4u intermediate pages. The returned object
    usually carries ``o`` (base64 target URL) and optionally ``data`` +
    ``blog_url``.

    Raises:
        ValueError: On any malformed layer.
    """
    decoded = b64decode(rot13(b64decode(b64decode(payload))))
    obj = json.loads(decoded)
    if not isinstance(obj, dict):
        raise ValueError("redirect payload is not a JSON object")
    return obj
