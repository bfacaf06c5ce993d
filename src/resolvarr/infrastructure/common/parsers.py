"""Parsing utilities for sizes and file names."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlsplit

_SIZE_RE = re.compile(r"([\d.,]+)\s*([KMGT]?B)", re.IGNORECASE)
_CD_FILENAME_RE = re.compile(
    r"filename\*?=(?:UTF-8'')?[\"']?([^\"';]+)[\"']?", re.IGNORECASE
)

_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}


def parse_size_to_bytes(size_str: str | None) -> int:
    """Parse "4.5 GB" / "500MB" / "1,024 KB" / "1234" to bytes. 0 if unknown."""
    if not size_str:
        return 0

    size_str = size_str.strip()
    if size_str.isdigit():
        return int(size_str)

    match = _SIZE_RE.search(size_str)
    if not match:
        return 0
    try:
        value = float(match.group(1).replace(",", ""))
    except ValueError:
        return 0
    return int(value * _MULTIPLIERS.get(match.group(2).upper(), 1))


def parse_size_to_mb(size_str: str | None) -> float:
    return parse_size_to_bytes(size_str) / 1024**2


def format_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``2.1 GB``. Empty string for 0."""
    if num_bytes <= 0:
        return ""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.2f}".rstrip("0").rstrip(".") + f" {unit}"
        value /= 1024
    return f"{value:.2f}".rstrip("0").rstrip(".") + " TB"


def extract_size(text: str) -> str:
    """First ``<number> <unit>`` size token in *text*, normalised."""
    match = re.search(r"([\d.,]+)\s*([KMGT]B)", text or "", re.IGNORECASE)
    if not match:
        return ""
    return f"{match.group(1)} {match.group(2).upper()}"


def filename_from_content_disposition(header: str | None) -> str:
    if not header:
        return ""
    match = _CD_FILENAME_RE.search(header)
    return unquote(match.group(1)).strip() if match else ""


def filename_from_url(url: str) -> str:
    path = urlsplit(url).path
    name = path.rsplit("/", 1)[-1] if path else ""
    return unquote(name)


def encode_filename_spaces(url: str) -> str:
    """Percent-encode spaces in the last path segment (worker/R2 links)."""
    head, sep, tail = url.rpartition("/")
    if not sep:
        return url.replace(" ", "%20")
    return f"{head}/{tail.replace(' ', '%20')}"
