"""
SQLAlchemy models for the client portal.
Tenant-scoped models inherit from TenantBase for multi-tenant isolation.
"""

from app.models.base import Base, TenantBase, TimestampMixin
from app.models.tenant import Tenant
from app.models.user import User
from app.models.client import Client
from app.models.quotation import Quotation
from app.models.payment import BankAccount, CryptoWallet, Payment
from app.models.shipment import Shipment
from app.models.magic_link import MagicLink, LinkScope

__all__ = [
    "Base",
    "TenantBase",
    "TimestampMixin",
    "Tenant",
    "User",
    "Client",
    "Quotation",
    # Payments
    "BankAccount",
    "CryptoWallet",
    "Payment",
    "Shipment",
    # Magic links
    "MagicLink",
    "LinkScope",
]
