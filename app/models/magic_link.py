"""
Magic link model - capability granting a client scoped, time-boxed,
revocable, usage-limited access to the client portal.

Only the SHA-256 of the raw token is stored. Rows are never deleted:
revoked and expired links stay for audit.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger, DateTime, ForeignKey, Index, Integer, JSON, String, Text, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class LinkScope(str, enum.Enum):
    """Capabilities a magic link may grant. Independent of each other."""
    VIEW = "view"
    PAY = "pay"
    TRACK = "track"
    CREATE = "create"


DEFAULT_LINK_SCOPES = [LinkScope.VIEW.value, LinkScope.PAY.value, LinkScope.TRACK.value]


class MagicLink(Base, TimestampMixin):
    """A client magic link."""

    __tablename__ = "client_magic_links"

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
    client_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Resource the link was issued for; NULL = tenant-wide within scopes
    quotation_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    scopes: Mapped[list] = mapped_column(JSON, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # null = unlimited
    use_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    last_accessed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Snapshots taken at issuance; later edits to the client are not reflected
    client_name_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    client_phone_snapshot: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("uq_client_magic_links_token_hash", "token_hash", unique=True),
    )

    def has_scope(self, scope: LinkScope | str) -> bool:
        value = scope.value if isinstance(scope, LinkScope) else scope
        return value in (self.scopes or [])

    def __repr__(self) -> str:
        return f"<MagicLink(id={self.id}, client_id={self.client_id}, scopes={self.scopes})>"
