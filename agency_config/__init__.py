"""
agency_config -- single public entrypoint for application configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the parsed dataclasses they
    need; none of them read files or environment variables directly.

Architecture position:
    Configuration.  Sits beside ``agency_kernel`` and below
    ``agency_services`` / ``agency_modules``.  The kernel MUST NEVER import
    from ``agency_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``KeyError`` / ``ValueError`` -- missing or invalid settings.

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``config_loaded``
    log entry with the config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from agency_config.loader import compute_checksum, load_config
from agency_config.schema import (
    AppConfig,
    CurrencyConfig,
    DatabaseConfig,
    EmailConfig,
    LoggingConfig,
    PaginationConfig,
    RbacConfig,
)
from agency_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """
    Load, override and parse the active configuration.

    Args:
        config_path: YAML file to load.  Defaults to ``sets/default.yaml``.
        environ: Environment mapping for overrides.  Defaults to ``os.environ``.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path, environ)
    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "path": str(path),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "compute_checksum",
    "AppConfig",
    "CurrencyConfig",
    "DatabaseConfig",
    "EmailConfig",
    "LoggingConfig",
    "PaginationConfig",
    "RbacConfig",
    "DEFAULT_CONFIG_PATH",
]
