"""Link resolution chains: one resolver per redirector host plus the registry."""

from __future__ import annotations

from ._chain import finalize, is_redirector_url, run_chain, sniff_filename, validate_url
from .base import ChainResolver
from .febbox_quota import CookieChoice, select_best_cookie
from .registry import LinkResolverRegistry, build_default_registry

__all__ = [
    "ChainResolver",
    "CookieChoice",
    "LinkResolverRegistry",
    "build_default_registry",
    "finalize",
    "is_redirector_url",
    "run_chain",
    "select_best_cookie",
    "sniff_filename",
    "validate_url",
]
