"""
User model with role-based access control.
Users are tenant operators (owners, admins, staff) of the admin dashboard.
"""

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Enum as SQLEnum, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.tenant import Tenant


USER_ROLES = ("owner", "admin", "staff", "viewer")
LINK_MANAGER_ROLES = ("owner", "admin", "staff")


class User(Base, TimestampMixin):
    """
    A user belonging to a tenant with role-based permissions.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Identity
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    role: Mapped[str] = mapped_column(
        SQLEnum(*USER_ROLES, name="user_role"),
        default="staff",
    )

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="users")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def name(self) -> str:
        """Full name from first_name and last_name."""
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p) or self.email

    @property
    def can_manage_links(self) -> bool:
        return self.role in LINK_MANAGER_ROLES
