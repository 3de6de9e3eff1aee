"""
Payment models - tenant payment methods and client payments.

BankAccount / CryptoWallet: where a client may send money (shown in the portal).
Payment: a payment made (or declared) by a client against a quotation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger, Boolean, DateTime, DECIMAL, ForeignKey, Integer, String, Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import TenantBase


PAYMENT_STATUSES = ("pending", "confirmed", "rejected", "refunded")
PAYMENT_METHODS = ("bank_transfer", "crypto", "card", "cash")


class BankAccount(TenantBase):
    """A bank account published to clients for transfers."""

    __tablename__ = "bank_accounts"

    bank_name: Mapped[str] = mapped_column(Text, nullable=False)
    account_holder: Mapped[str] = mapped_column(Text, nullable=False)
    iban: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    swift_bic: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<BankAccount(id={self.id}, bank='{self.bank_name}')>"


class CryptoWallet(TenantBase):
    """A crypto wallet address published to clients."""

    __tablename__ = "crypto_wallets"

    currency: Mapped[str] = mapped_column(String(10), nullable=False)  # USDT, BTC...
    network: Mapped[str] = mapped_column(String(30), nullable=False)  # TRC20, ERC20...
    address: Mapped[str] = mapped_column(Text, nullable=False)
    label: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<CryptoWallet(id={self.id}, currency='{self.currency}', network='{self.network}')>"


class Payment(TenantBase):
    """A client payment linked to one quotation."""

    __tablename__ = "payments"

    client_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quotation_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("quotations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    method: Mapped[str] = mapped_column(
        SQLEnum(*PAYMENT_METHODS, name="payment_method_enum"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        SQLEnum(*PAYMENT_STATUSES, name="payment_status_enum"),
        default="pending",
        nullable=False,
    )
    reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    proof_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, status='{self.status}')>"
