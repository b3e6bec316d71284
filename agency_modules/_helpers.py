"""
Shared helpers for module services.

Used by agency_modules/*/service.py to own the transaction boundary: commit
on success, roll back on any failure, and translate persistence-layer
constraint violations into domain conflicts.  ``write_context`` binds the
acting user, the target entity and a correlation id into the log context
for the duration of a write.

Architecture: Modules layer. Imports only from agency_kernel.
"""

from __future__ import annotations

import functools
import inspect
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agency_kernel.exceptions import AgencyError, DuplicateKeyError, ReferencedRecordError
from agency_kernel.logging_config import LogContext, get_logger

logger = get_logger("modules.helpers")

F = TypeVar("F", bound=Callable[..., Any])

_UNIQUE_MARKERS = ("unique constraint", "duplicate key", "uniqueviolation")
_FOREIGN_KEY_MARKERS = ("foreign key constraint", "foreignkeyviolation")


def _constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    # SQLite reports columns instead: "UNIQUE constraint failed: users.email"
    text = str(exc.orig)
    if ":" in text:
        return text.split(":", 1)[1].strip() or None
    return None


def translate_integrity_error(exc: IntegrityError) -> AgencyError | None:
    """
    Map a backend IntegrityError to a domain conflict.

    Returns None when the violation is neither a unique nor a foreign key
    violation, in which case the caller re-raises the original error.
    """
    text = f"{type(exc.orig).__name__} {exc.orig}".lower()
    if any(marker in text for marker in _UNIQUE_MARKERS):
        return DuplicateKeyError(_constraint_name(exc), str(exc.orig))
    if any(marker in text for marker in _FOREIGN_KEY_MARKERS):
        return ReferencedRecordError(str(exc.orig))
    return None


@contextmanager
def unit_of_work(session: Session, operation: str, **fields: Any) -> Iterator[Session]:
    """
    Run the body as one transaction.

    Commits when the body returns.  On any exception the session is rolled
    back, a ``<operation>_rolled_back`` warning is logged, and the error is
    re-raised (IntegrityError translated when recognised).
    """
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        translated = translate_integrity_error(exc)
        logger.warning(
            f"{operation}_rolled_back",
            extra={**fields, "reason": type(translated or exc).__name__},
        )
        if translated is None:
            raise
        raise translated from exc
    except Exception as exc:
        session.rollback()
        logger.warning(
            f"{operation}_rolled_back",
            extra={**fields, "reason": type(exc).__name__},
        )
        raise


def write_context(entity_param: str | None = None) -> Callable[[F], F]:
    """
    Bind the log context for one write operation.

    Every log line emitted while the wrapped method runs carries a
    correlation id (kept when the caller already set one), the id of the
    ``actor`` argument and, when ``entity_param`` names an argument, the id
    of the entity being written.  Creates call ``LogContext.set(entity_id=...)``
    once the new row has an id; the binding is undone when the method exits.
    """

    def decorator(func: F) -> F:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            arguments = signature.bind_partial(*args, **kwargs).arguments
            actor = arguments.get("actor")
            entity = arguments.get(entity_param) if entity_param else None
            with LogContext.bind(
                correlation_id=LogContext.get_all().get("correlation_id") or uuid4(),
                actor_id=getattr(actor, "id", None),
                entity_id=entity,
            ):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
