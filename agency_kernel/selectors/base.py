"""
Module: agency_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: display projections are frozen dataclasses, not
      ORM instances.  Lookups used for validation may return the model row.
    - Session ownership: selectors do NOT create their own sessions.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from agency_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
