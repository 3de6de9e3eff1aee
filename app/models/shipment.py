"""
Shipment model - tracking record for the goods of a quotation.
"""

from datetime import date
from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, Date, ForeignKey, JSON, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import TenantBase

if TYPE_CHECKING:
    from app.models.quotation import Quotation


SHIPMENT_STATUSES = ("preparing", "in_transit", "customs", "delivered", "exception")


class Shipment(TenantBase):
    """A shipment of the goods ordered through a quotation."""

    __tablename__ = "shipments"

    quotation_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    carrier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    origin: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        SQLEnum(*SHIPMENT_STATUSES, name="shipment_status_enum"),
        default="preparing",
        nullable=False,
    )
    estimated_delivery: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # [{"at": iso, "status": str, "location": str, "note": str}]
    tracking_events: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Relationships
    quotation: Mapped["Quotation"] = relationship("Quotation", lazy="raise")

    def __repr__(self) -> str:
        return f"<Shipment(id={self.id}, tracking='{self.tracking_number}', status='{self.status}')>"
