"""
Quotation model - a sourcing request priced by the tenant for one client.
"""

from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, DECIMAL, ForeignKey, Integer, JSON, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import TenantBase

if TYPE_CHECKING:
    from app.models.client import Client


QUOTATION_STATUSES = ("pending", "quoted", "approved", "confirmed", "rejected", "cancelled")


class Quotation(TenantBase):
    """A quotation for a product sourcing request."""

    __tablename__ = "quotations"

    client_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Human-readable reference, e.g. QT-2026-0042
    reference: Mapped[str] = mapped_column(String(30), nullable=False)

    # Request
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    destination_country: Mapped[str] = mapped_column(Text, nullable=False)
    destination_city: Mapped[str] = mapped_column(Text, nullable=False)
    shipping_method: Mapped[str] = mapped_column(String(30), default="TBD", nullable=False)
    service_type: Mapped[str] = mapped_column(String(50), default="Product Inquiry", nullable=False)
    product_images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    variant_specs: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing (filled by the tenant)
    price_options: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    selected_option: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    status: Mapped[str] = mapped_column(
        SQLEnum(*QUOTATION_STATUSES, name="quotation_status_enum"),
        default="pending",
        nullable=False,
    )

    # Relationships
    client: Mapped["Client"] = relationship("Client", lazy="raise")

    def __repr__(self) -> str:
        return f"<Quotation(id={self.id}, reference='{self.reference}', status='{self.status}')>"
