from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, CacheConfig, EnvOverrides

_SECTION_KEYS: set[str] = {"http", "logging", "cache", "tmdb", "providers", "aggregator"}

# Flat key (env var / CLI option) -> (section, key inside section).
_FLAT_MAP: dict[str, tuple[str, str]] = {
    "http_timeout_seconds": ("http", "timeout_seconds"),
    "http_user_agent": ("http", "user_agent"),
    "http_proxy": ("http", "proxy"),
    "validate_links": ("http", "validate_links"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "cache_dir": ("cache", "dir"),
    "cache_ttl_seconds": ("cache", "ttl_seconds"),
    "tmdb_api_key": ("tmdb", "api_key"),
    "providers_enabled": ("providers", "enabled"),
    "moviebox_key": ("providers", "moviebox_key"),
    "default_region": ("providers", "default_region"),
    "provider_timeout_seconds": ("aggregator", "provider_timeout_seconds"),
    "min_quality": ("aggregator", "min_quality"),
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*; non-dict values replace."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, Mapping):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _normalize_layer(data: Mapping[str, Any]) -> dict[str, Any]:
    """Bring a layer (defaults/YAML/ENV/CLI) into the sectioned shape."""
    out: dict[str, Any] = {}

    for section in _SECTION_KEYS:
        if section in data and isinstance(data[section], Mapping):
            out[section] = dict(data[section])

    for key in ("app_name", "environment"):
        if key in data:
            out[key] = data[key]

    for flat_key, (section, section_key) in _FLAT_MAP.items():
        if flat_key in data:
            out.setdefault(section, {})
            out[section][section_key] = data[flat_key]

    return out


def _cache_env_layer() -> dict[str, Any]:
    """``CACHE_*`` variables, only those actually set."""
    fields = CacheConfig.model_fields
    settings = CacheConfig()
    provided = settings.model_fields_set
    layer: dict[str, Any] = {}
    for name in provided:
        key = fields[name].alias or name
        layer[key] = getattr(settings, name)
    return {"cache": layer} if layer else {}


def _read_yaml_config(config_path: Path) -> dict[str, Any]:
    raw = config_path.read_text(encoding="utf-8")
    parsed = yaml.safe_load(raw)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """Load configuration with strict precedence.

    defaults < YAML file < env vars (``.env`` included) < CLI overrides.
    Creates no files or directories.
    """
    cli_overrides = cli_overrides or {}

    # .env participates as part of the env layer.
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    base = _normalize_layer(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        _deep_merge(base, _normalize_layer(_read_yaml_config(config_path)))

    _deep_merge(base, _cache_env_layer())
    _deep_merge(base, _normalize_layer(EnvOverrides().to_update_dict()))
    _deep_merge(base, _normalize_layer(cli_overrides))

    return AppConfig.model_validate(base)
