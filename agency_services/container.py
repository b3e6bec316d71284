"""
agency_services.container -- Shared infrastructure built from configuration.

Responsibility:
    Turns an ``AppConfig`` into the long-lived collaborators every module
    service is constructed with: the exchange rate client and its cache,
    the conversion service, the email sender and the authorizer.  Each is
    created exactly once per container.

Architecture position:
    Services.  Reads ``agency_config`` dataclasses and composes kernel
    services.  Module services are not created here (agency_services must
    not import agency_modules); pass the container's attributes when
    constructing them.

Usage:
    container = build_container()
    session_factory = container.init_database()
    ledger = TransactionService(
        session_factory(), container.conversion, container.clock, container.authorizer
    )
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from sqlalchemy.orm import Session, sessionmaker

from agency_config import AppConfig, get_active_config
from agency_kernel.db.engine import get_session_factory, init_engine_from_url
from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.query import Pagination
from agency_kernel.logging_config import configure_logging, get_logger
from agency_kernel.services.currency_conversion import CurrencyConversionService
from agency_kernel.services.exchange_rates import (
    ExchangeRateCache,
    ExchangeRateClient,
    HttpRateProvider,
)
from agency_services.notifications import EmailSender, ResendEmailSender
from agency_services.rbac import Authorizer

logger = get_logger("services.container")


class ServiceContainer:
    """
    Single-instance holder for configured infrastructure.

    Guarantees:
        - Every collaborator shares the same Clock.
        - The rate cache lives as long as the container, so conversions
          across requests reuse fetched rates until the configured TTL.

    Non-goals:
        - Does NOT own sessions or transaction boundaries.
    """

    def __init__(
        self,
        config: AppConfig,
        clock: Clock | None = None,
        http: Any = None,
        email_sender: EmailSender | None = None,
    ) -> None:
        self.config = config
        self.clock = clock or SystemClock()

        currency = config.currency
        self.rate_client = ExchangeRateClient(
            HttpRateProvider(
                base_url=currency.base_url,
                timeout=currency.timeout_seconds,
                http=http,
            ),
            ExchangeRateCache(self.clock, ttl_seconds=currency.cache_ttl_seconds),
        )
        self.conversion = CurrencyConversionService(self.rate_client)
        self.email_sender = email_sender or ResendEmailSender.from_config(config.email, http=http)
        self.authorizer = Authorizer.from_config(config.rbac)
        self.company_name = config.email.company_name

        logger.info(
            "service_container_built",
            extra={
                "config_id": config.config_id,
                "checksum": config.checksum,
                "rate_cache_ttl_seconds": currency.cache_ttl_seconds,
            },
        )

    def pagination(self, page: Any = None, limit: Any = None) -> Pagination:
        """Page request clamped to the configured limits."""
        settings = self.config.pagination
        return Pagination.of(
            page,
            limit,
            max_limit=settings.max_limit,
            default_limit=settings.default_limit,
        )

    def init_database(self) -> sessionmaker[Session]:
        """Initialise the engine from the database settings."""
        database = self.config.database
        init_engine_from_url(database.url, echo=database.echo, pool_size=database.pool_size)
        return get_session_factory()


def build_container(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    clock: Clock | None = None,
    http: Any = None,
) -> ServiceContainer:
    """Load the active configuration, configure logging and build the container."""
    config = get_active_config(config_path, environ)
    configure_logging(level=config.logging.level)
    return ServiceContainer(config, clock=clock, http=http)
