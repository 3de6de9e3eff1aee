"""
Tenant model - represents a company running its own storefront and client portal.
Each tenant has isolated data and configurable settings.
"""

import uuid
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import String, Boolean, JSON, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.client import Client


class Tenant(Base, TimestampMixin):
    """
    A company tenant.
    All data is isolated per tenant.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Identity
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    country_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=True)

    # Relationships - use lazy="raise" to prevent accidental lazy loading in async context
    users: Mapped[List["User"]] = relationship("User", back_populates="tenant", lazy="raise")
    clients: Mapped[List["Client"]] = relationship("Client", back_populates="tenant", lazy="raise")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', slug='{self.slug}')>"
