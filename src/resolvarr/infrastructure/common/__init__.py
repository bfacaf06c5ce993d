"""Common infrastructure utilities."""

from __future__ import annotations

from .parsers import format_size, parse_size_to_bytes, parse_size_to_mb
from .quality import quality_rank

__all__ = [
    "format_size",
    "parse_size_to_bytes",
    "parse_size_to_mb",
    "quality_rank",
]
