"""
Module: agency_kernel.models.client
Responsibility: ORM persistence for the agency's clients.  A client owns
    projects and is the counterparty of client_payment income transactions.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from agency_kernel.db.base import TrackedBase


class Client(TrackedBase):
    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_client_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Client {self.name}>"
