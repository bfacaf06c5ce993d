"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "resolvarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 30.0,
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        "proxy": None,
        "max_retries": 3,
        "backoff_base": 1.0,
        "rate_limit_rps": 5.0,
        "validate_links": False,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./.cache/resolvarr",
        "backend": "diskcache",
        "ttl_seconds": 3600,
    },
    "tmdb": {
        "api_key": None,
    },
    "providers": {
        "enabled": None,  # None = every registered provider
        "moviebox_key": None,
        "default_region": "USA7",
        "max_link_depth": 4,
        "domain_sources": None,
    },
    "aggregator": {
        "provider_timeout_seconds": 45.0,
        "min_quality": None,
    },
}
