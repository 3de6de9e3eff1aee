"""
Client model - an external customer of a tenant.
Clients have no password; they reach the portal through magic links.
"""

from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import TenantBase

if TYPE_CHECKING:
    from app.models.tenant import Tenant


class Client(TenantBase):
    """A client of a tenant, identified by name and E.164 phone."""

    __tablename__ = "clients"

    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_e164: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="clients")

    @property
    def display_name(self) -> str:
        return self.name or self.company_name or "Client"

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', phone='{self.phone_e164}')>"
