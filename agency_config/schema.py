"""
Application configuration schema.

Frozen dataclasses parsed from the YAML configuration set by
``agency_config.loader``.  Defaults mirror ``sets/default.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 20


@dataclass(frozen=True)
class CurrencyConfig:
    base_url: str
    cache_ttl_seconds: int = 43200
    timeout_seconds: float = 10.0
    default_currency: str = "EGP"


@dataclass(frozen=True)
class EmailConfig:
    api_url: str = "https://api.resend.com/emails"
    api_key: str = ""
    from_address: str = ""
    company_name: str = "Glitci"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class PaginationConfig:
    default_limit: int = 10
    max_limit: int = 100


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class RbacConfig:
    """Permission name -> roles allowed to perform it."""

    role_permissions: dict[str, frozenset[str]] = field(default_factory=dict)

    def roles_for(self, permission: str) -> frozenset[str]:
        return self.role_permissions.get(permission, frozenset())


@dataclass(frozen=True)
class AppConfig:
    config_id: str
    version: int
    database: DatabaseConfig
    currency: CurrencyConfig
    email: EmailConfig
    pagination: PaginationConfig
    logging: LoggingConfig
    rbac: RbacConfig
    checksum: str = ""
