"""
Configuration Loader (``agency_config.loader``).

Responsibility
--------------
Loads the YAML configuration set, applies ``AGENCY_*`` environment
overrides, and parses the result into ``agency_config.schema`` dataclasses.
Runtime callers go through ``agency_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective (post-override) configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unsupported default currency or non-positive limits  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from agency_config.schema import (
    AppConfig,
    CurrencyConfig,
    DatabaseConfig,
    EmailConfig,
    LoggingConfig,
    PaginationConfig,
    RbacConfig,
)

SUPPORTED_CURRENCY_CODES = frozenset({"EGP", "SAR", "AED", "USD", "EUR"})

# env var -> (section, key, caster)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "AGENCY_DATABASE_URL": ("database", "url", str),
    "AGENCY_RATES_BASE_URL": ("currency", "base_url", str),
    "AGENCY_RATES_TIMEOUT": ("currency", "timeout_seconds", float),
    "AGENCY_RESEND_API_KEY": ("email", "api_key", str),
    "AGENCY_EMAIL_FROM": ("email", "from_address", str),
    "AGENCY_LOG_LEVEL": ("logging", "level", str),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Return a copy of ``data`` with AGENCY_* environment values applied."""
    env = os.environ if environ is None else environ
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in data.items()}
    for var, (section, key, caster) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = caster(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from exc
        merged.setdefault(section, {})[key] = value
    return merged


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
    )


def parse_currency(data: dict[str, Any]) -> CurrencyConfig:
    default_currency = str(data.get("default_currency", "EGP")).upper()
    if default_currency not in SUPPORTED_CURRENCY_CODES:
        raise ValueError(f"Unsupported default currency: {default_currency!r}")
    ttl = int(data.get("cache_ttl_seconds", 43200))
    timeout = float(data.get("timeout_seconds", 10))
    if ttl <= 0 or timeout <= 0:
        raise ValueError("currency.cache_ttl_seconds and timeout_seconds must be positive")
    return CurrencyConfig(
        base_url=data["base_url"],
        cache_ttl_seconds=ttl,
        timeout_seconds=timeout,
        default_currency=default_currency,
    )


def parse_email(data: dict[str, Any]) -> EmailConfig:
    return EmailConfig(
        api_url=data.get("api_url", EmailConfig.api_url),
        api_key=data.get("api_key") or "",
        from_address=data.get("from_address") or "",
        company_name=data.get("company_name", EmailConfig.company_name),
        timeout_seconds=float(data.get("timeout_seconds", 10)),
    )


def parse_pagination(data: dict[str, Any]) -> PaginationConfig:
    default_limit = int(data.get("default_limit", 10))
    max_limit = int(data.get("max_limit", 100))
    if default_limit <= 0 or max_limit <= 0 or default_limit > max_limit:
        raise ValueError(
            f"Invalid pagination limits: default={default_limit}, max={max_limit}"
        )
    return PaginationConfig(default_limit=default_limit, max_limit=max_limit)


def parse_rbac(data: dict[str, Any]) -> RbacConfig:
    permissions: dict[str, frozenset[str]] = {}
    for permission, roles in data.items():
        if not isinstance(roles, list):
            raise ValueError(f"rbac.{permission} must be a list of roles")
        permissions[str(permission)] = frozenset(str(r).lower() for r in roles)
    return RbacConfig(role_permissions=permissions)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> AppConfig:
    """
    Parse a fully merged configuration dict into ``AppConfig``.

    Raises:
        KeyError: if ``database`` / ``currency`` sections or their required
            keys are missing.
        ValueError: on invalid values.
    """
    return AppConfig(
        config_id=data.get("config_id", "agency-default"),
        version=int(data.get("version", 1)),
        database=parse_database(data["database"]),
        currency=parse_currency(data["currency"]),
        email=parse_email(data.get("email") or {}),
        pagination=parse_pagination(data.get("pagination") or {}),
        logging=LoggingConfig(level=str((data.get("logging") or {}).get("level", "INFO")).upper()),
        rbac=parse_rbac(data.get("rbac") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path, environ: Mapping[str, str] | None = None) -> AppConfig:
    return parse_config(apply_env_overrides(load_yaml_file(path), environ))
