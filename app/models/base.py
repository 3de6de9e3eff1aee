"""
Base models with common fields for all entities.
Includes multi-tenant support via TenantBase.
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, declared_attr

# BIGINT primary keys; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class TimestampMixin:
    """Mixin adding created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TenantBase(Base, TimestampMixin):
    """
    Base class for all tenant-scoped models.
    Every row belongs to a specific tenant for data isolation.
    Uses UUID for tenant_id to match existing tenants table.
    """

    __abstract__ = True

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    @declared_attr
    def tenant_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
