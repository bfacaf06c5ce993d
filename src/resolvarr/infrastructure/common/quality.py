"""Quality and codec extraction from release names and labels.

Pure functions. ``guessit`` is used as the last resort for screen size
detection on raw file names.
"""

from __future__ import annotations

import re

from guessit import guessit

_HEIGHT_RE = re.compile(r"(\d{3,4})[pP]")
_QUALITY_TAG_RE = re.compile(r"(480p|720p|1080p|2160p|4k)", re.IGNORECASE)
_KBPS_RE = re.compile(r"(\d+)k")
_EMOJI_RE = re.compile(r"[\u00a9\u00ae\u2000-\u3300\U0001F000-\U0001FFFF]")

_SCREEN_SIZE_HEIGHT: dict[str, int] = {
    "4320p": 4320,
    "2160p": 2160,
    "1440p": 1440,
    "1080p": 1080,
    "1080i": 1080,
    "720p": 720,
    "576p": 576,
    "480p": 480,
    "360p": 360,
}


def quality_rank(quality: str | None) -> float:
    """Numeric rank of a quality string (higher is better, 0 = unknown).

    Resolutions map to their height; CAM/TS style tags rank below any
    resolution and ``ORG`` (original upload) ranks above 4K.
    """
    if not quality:
        return 0
    q = quality.lower()

    for needle, rank in (
        ("4k", 2160),
        ("2160", 2160),
        ("1440", 1440),
        ("1080", 1080),
        ("720", 720),
        ("576", 576),
        ("480", 480),
        ("360", 360),
        ("240", 240),
    ):
        if needle in q:
            return rank

    kbps = _KBPS_RE.search(q)
    if kbps:
        return int(kbps.group(1)) / 1000

    if "hd" in q:
        return 720
    if "sd" in q:
        return 480
    if "cam" in q:
        return 100
    if "ts" in q or "telesync" in q:
        return 200
    if "scr" in q:
        return 300
    if "r5" in q or "r6" in q:
        return 400
    if "org" in q:
        return 4320
    return 0


def height_from_text(text: str | None, default: int | None = None) -> int | None:
    """First ``<digits>p`` height in *text* (``4K`` counts as 2160)."""
    if not text:
        return default
    m = _HEIGHT_RE.search(text)
    if m:
        return int(m.group(1))
    if "4k" in text.lower():
        return 2160
    return default


def extract_quality(text: str | None) -> str:
    """Quality tag (``480p`` ... ``2160p``/``4k``) or ``"Unknown"``."""
    if not text:
        return "Unknown"
    m = _QUALITY_TAG_RE.search(text)
    return m.group(1) if m else "Unknown"


def quality_from_filename(file_name: str | None) -> str | None:
    """Screen size of a release/file name via guessit, e.g. ``"1080p"``."""
    if not file_name:
        return None
    height = height_from_text(file_name)
    if height:
        return f"{height}p"
    screen_size = guessit(file_name).get("screen_size")
    if screen_size in _SCREEN_SIZE_HEIGHT:
        return f"{_SCREEN_SIZE_HEIGHT[screen_size]}p"
    return None


def label_quality(label: str | None) -> str:
    """Map an API quality label to ``ORG``/``2160p``/.../``360p``."""
    if not label:
        return "ORG"
    low = str(label).lower()
    if "1080" in low:
        return "1080p"
    if "720" in low:
        return "720p"
    if "480" in low:
        return "480p"
    if "360" in low:
        return "360p"
    if "2160" in low or "4k" in low or "uhd" in low:
        return "2160p"
    if "hd" in low:
        return "720p"
    if "sd" in low:
        return "480p"
    return "ORG"


def tech_details(text: str | None) -> list[str]:
    """Short encode tags shown next to a size: 10-bit / HEVC / HDR."""
    if not text:
        return []
    low = text.lower()
    details = []
    if "10bit" in low:
        details.append("10-bit")
    if "hevc" in low or "x265" in low:
        details.append("HEVC")
    if "hdr" in low:
        details.append("HDR")
    return details


def codec_details(text: str | None) -> list[str]:
    """Video/audio codec and HDR tags found in a release name."""
    if not text:
        return []
    low = text.lower()
    found: list[str] = []

    def add(tag: str) -> None:
        if tag not in found:
            found.append(tag)

    if "dolby vision" in low or "dovi" in low or ".dv." in low:
        add("DV")
    if "hdr10+" in low or "hdr10plus" in low:
        add("HDR10+")
    elif "hdr" in low:
        add("HDR")
    if "sdr" in low:
        add("SDR")

    if "av1" in low:
        add("AV1")
    elif "h265" in low or "x265" in low or "hevc" in low:
        add("H.265")
    elif "h264" in low or "x264" in low or "avc" in low:
        add("H.264")

    if "atmos" in low:
        add("Atmos")
    if "truehd" in low or "true-hd" in low:
        add("TrueHD")
    if "dts-hd ma" in low or "dtshdma" in low or "dts-hdhr" in low:
        add("DTS-HD MA")
    elif "dts-hd" in low:
        add("DTS-HD")
    elif "dts" in low:
        add("DTS")

    if "eac3" in low or "e-ac-3" in low or "dd+" in low or "ddplus" in low:
        add("EAC3")
    elif "ac3" in low or ("dd" in low and "ddp" not in low):
        add("AC3")

    if "aac" in low:
        add("AAC")
    if "opus" in low:
        add("Opus")
    if "mp3" in low:
        add("MP3")

    if "10bit" in low or "10-bit" in low:
        add("10-bit")
    elif "8bit" in low or "8-bit" in low:
        add("8-bit")
    return found


def clean_quality(full_text: str | None) -> str:
    """Condense a verbose quality header into ``"1080p | HEVC | HDR"`` form."""
    if not full_text or full_text == "Unknown Quality":
        return "Unknown Quality"

    cleaned = _EMOJI_RE.sub("", full_text).strip()
    text = cleaned.lower()
    parts: list[str] = []

    if "2160p" in text or "4k" in text:
        parts.append("4K")
    elif "1080p" in text:
        parts.append("1080p")
    elif "720p" in text:
        parts.append("720p")
    elif "480p" in text:
        parts.append("480p")

    if "hevc" in text or "x265" in text:
        parts.append("HEVC")
    elif "x264" in text:
        parts.append("x264")

    if "hdr" in text:
        parts.append("HDR")
    if "dolby vision" in text or "dovi" in text or re.search(r"\bdv\b", text):
        parts.append("DV")
    if "10bit" in text:
        parts.append("10-bit")
    if "imax" in text:
        parts.append("IMAX")
    if "bluray" in text or "blu-ray" in text:
        parts.append("BluRay")
    if "dual audio" in text or ("hindi" in text and "english" in text):
        parts.append("Dual Audio")

    if parts:
        return " | ".join(parts)

    for pattern in (
        r"(\d{3,4}p.*?(?:x264|x265|hevc).*?)[\[\(]",
        r"(\d{3,4}p.*?)[\[\(]",
        r"((?:720p|1080p|2160p|4k).*?)$",
    ):
        m = re.search(pattern, cleaned, re.IGNORECASE)
        if m and len(m.group(1).strip()) < 100:
            return re.sub("x265", "HEVC", m.group(1).strip(), flags=re.IGNORECASE)

    if len(cleaned) > 80:
        cleaned = cleaned[:77] + "..."
    return re.sub("x265", "HEVC", cleaned, flags=re.IGNORECASE)
