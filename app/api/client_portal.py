"""
Client portal endpoints - no authentication, access via magic link.

Every route lives under /c/{token}. The PortalLink dependency resolves and
validates the link; each handler then:
    1. checks the scope it needs (and the quotation the link is bound to),
    2. checks any client-supplied tenant/client ids against the link,
    3. runs its query filtered by the link's tenant_id and client_id,
    4. records the use and commits, together with any write it made.

Identity comes from the link record only. Any denial surfaces as the same
403 response (see app.main).
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError

from app.api.deps import DbSession, PortalLink
from app.exceptions import LinkDenied, StoreUnavailable
from app.models.magic_link import LinkScope, MagicLink
from app.models.payment import BankAccount, CryptoWallet, Payment
from app.models.quotation import Quotation
from app.models.shipment import Shipment
from app.models.tenant import Tenant
from app.services.access_tracker import AccessTracker
from app.services.link_validator import (
    as_utc,
    check_assertions,
    require_resource,
    require_scope,
    require_tenant_wide,
)
from app.services.magic_links import store_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/c/{token}", tags=["Client Portal"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class QuotationCreateRequest(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=500)
    product_url: Optional[str] = Field(None, max_length=2000)
    quantity: int = Field(1, ge=1)
    destination_country: str = Field(..., min_length=1, max_length=100)
    destination_city: str = Field(..., min_length=1, max_length=100)
    shipping_method: str = Field("TBD", max_length=30)
    product_images: List[str] = Field(default_factory=list)
    variant_specs: Optional[dict] = None
    notes: Optional[str] = None
    # Optional assertions, checked against the link
    tenant_id: Optional[uuid.UUID] = None
    client_id: Optional[int] = None


class QuotationUpdateRequest(BaseModel):
    status: Optional[Literal["approved", "confirmed", "rejected"]] = None
    selected_option: Optional[int] = Field(None, ge=0)


class PaymentDeclareRequest(BaseModel):
    """A client declaring a manual transfer made against a quotation."""
    quotation_id: int
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    method: Literal["bank_transfer", "crypto"]
    reference: Optional[str] = Field(None, max_length=255)
    proof_url: Optional[str] = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _iso(value: Optional[datetime | date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value.isoformat()


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def quotation_to_dict(q: Quotation) -> dict:
    return {
        "id": q.id,
        "reference": q.reference,
        "product_name": q.product_name,
        "product_url": q.product_url,
        "quantity": q.quantity,
        "destination_country": q.destination_country,
        "destination_city": q.destination_city,
        "shipping_method": q.shipping_method,
        "service_type": q.service_type,
        "product_images": q.product_images or [],
        "variant_specs": q.variant_specs,
        "notes": q.notes,
        "price_options": q.price_options or [],
        "selected_option": q.selected_option,
        "total_amount": _money(q.total_amount),
        "currency": q.currency,
        "status": q.status,
        "created_at": _iso(q.created_at),
    }


def shipment_to_dict(s: Shipment, quotation_reference: str, product_name: str) -> dict:
    return {
        "id": s.id,
        "quotation_id": s.quotation_id,
        "quotation_reference": quotation_reference,
        "product_name": product_name,
        "carrier": s.carrier,
        "tracking_number": s.tracking_number,
        "shipping_method": s.shipping_method,
        "origin": s.origin,
        "destination": s.destination,
        "status": s.status,
        "estimated_delivery": _iso(s.estimated_delivery),
        "tracking_events": s.tracking_events or [],
        "created_at": _iso(s.created_at),
    }


def payment_to_dict(p: Payment) -> dict:
    return {
        "id": p.id,
        "quotation_id": p.quotation_id,
        "amount": _money(p.amount),
        "currency": p.currency,
        "method": p.method,
        "status": p.status,
        "reference": p.reference,
        "paid_at": _iso(p.paid_at),
        "created_at": _iso(p.created_at),
    }


async def _record_use_and_commit(db, link: MagicLink) -> None:
    """Count the use and commit it with the operation. Fail closed."""
    try:
        await AccessTracker(store_for(db)).on_success(link)
        await db.commit()
    except (LinkDenied, StoreUnavailable):
        await db.rollback()
        raise
    except DBAPIError as e:
        await db.rollback()
        raise StoreUnavailable("Commit of portal operation failed") from e


async def _get_client_quotation(db, link: MagicLink, quotation_id: int) -> Quotation:
    result = await db.execute(
        select(Quotation).where(
            Quotation.id == quotation_id,
            Quotation.tenant_id == link.tenant_id,
            Quotation.client_id == link.client_id,
        )
    )
    quotation = result.scalar_one_or_none()
    if not quotation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quotation not found")
    return quotation


async def _next_quotation_reference(db, tenant_id: uuid.UUID) -> str:
    year = datetime.now(timezone.utc).year
    result = await db.execute(
        select(func.count(Quotation.id)).where(
            Quotation.tenant_id == tenant_id,
            Quotation.reference.like(f"QT-{year}-%"),
        )
    )
    return f"QT-{year}-{result.scalar_one() + 1:04d}"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/validate")
async def validate_link(
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
    client_id: Optional[int] = Query(None),
):
    """Capability summary for the portal shell. Any valid link may call it."""
    check_assertions(link, tenant_id=tenant_id, client_id=client_id)

    result = await db.execute(select(Tenant).where(Tenant.id == link.tenant_id))
    tenant = result.scalar_one()

    data = {
        "link_id": str(link.id),
        "tenant_name": tenant.name or "Company",
        "tenant_slug": tenant.slug,
        "tenant_logo_url": tenant.logo_url,
        "client_name": link.client_name_snapshot,
        "client_phone": link.client_phone_snapshot,
        "scopes": list(link.scopes or []),
        "quotation_id": link.quotation_id,
        "expires_at": _iso(link.expires_at),
    }

    await _record_use_and_commit(db, link)
    return {"data": data}


@router.get("/quotations")
async def list_quotations(
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
    client_id: Optional[int] = Query(None),
):
    """Quotations of the link's client (only the bound one for quotation links)."""
    require_scope(link, LinkScope.VIEW)
    check_assertions(link, tenant_id=tenant_id, client_id=client_id)

    query = select(Quotation).where(
        Quotation.tenant_id == link.tenant_id,
        Quotation.client_id == link.client_id,
    )
    if link.quotation_id is not None:
        query = query.where(Quotation.id == link.quotation_id)
    query = query.order_by(Quotation.created_at.desc(), Quotation.id.desc())

    result = await db.execute(query)
    quotations = [quotation_to_dict(q) for q in result.scalars().all()]

    await _record_use_and_commit(db, link)
    return {"quotations": quotations}


@router.get("/quotations/{quotation_id}")
async def get_quotation(
    quotation_id: int,
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
):
    require_scope(link, LinkScope.VIEW)
    require_resource(link, quotation_id)
    check_assertions(link, tenant_id=tenant_id)

    quotation = await _get_client_quotation(db, link, quotation_id)
    data = quotation_to_dict(quotation)

    await _record_use_and_commit(db, link)
    return {"quotation": data}


@router.patch("/quotations/{quotation_id}")
async def update_quotation(
    quotation_id: int,
    body: QuotationUpdateRequest,
    link: PortalLink,
    db: DbSession,
):
    """Approve, confirm or reject a quotation, or pick one of its price options."""
    require_scope(link, LinkScope.VIEW)
    require_resource(link, quotation_id)

    quotation = await _get_client_quotation(db, link, quotation_id)

    if body.status is None and body.selected_option is None:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    if body.selected_option is not None:
        options = quotation.price_options or []
        if body.selected_option >= len(options):
            raise HTTPException(status_code=400, detail="selected_option is out of range")
        quotation.selected_option = body.selected_option

    if body.status is not None:
        quotation.status = body.status

    await db.flush()
    data = quotation_to_dict(quotation)

    await _record_use_and_commit(db, link)
    logger.info(f"Quotation {quotation.id} updated from portal link {link.id} (status={quotation.status})")
    return {"message": "Quotation updated successfully", "quotation": data}


@router.post("/quotations", status_code=201)
async def create_quotation(
    body: QuotationCreateRequest,
    link: PortalLink,
    db: DbSession,
):
    """Create a quotation request on behalf of the link's client."""
    require_scope(link, LinkScope.CREATE)
    require_tenant_wide(link)
    check_assertions(link, tenant_id=body.tenant_id, client_id=body.client_id)

    quotation = Quotation(
        tenant_id=link.tenant_id,
        client_id=link.client_id,
        reference=await _next_quotation_reference(db, link.tenant_id),
        product_name=body.product_name,
        product_url=body.product_url,
        quantity=body.quantity,
        destination_country=body.destination_country,
        destination_city=body.destination_city,
        shipping_method=body.shipping_method,
        service_type="Product Inquiry",
        product_images=body.product_images,
        variant_specs=body.variant_specs,
        notes=body.notes,
        price_options=[],
        status="pending",
    )
    db.add(quotation)
    await db.flush()
    await db.refresh(quotation)
    data = quotation_to_dict(quotation)

    await _record_use_and_commit(db, link)
    logger.info(f"Quotation {quotation.reference} created from portal link {link.id}")
    return {"message": "Quotation created successfully", "quotation": data}


@router.get("/payment-methods")
async def list_payment_methods(
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
):
    """Active bank accounts and crypto wallets of the tenant."""
    require_scope(link, LinkScope.PAY)
    check_assertions(link, tenant_id=tenant_id)

    result = await db.execute(
        select(BankAccount)
        .where(BankAccount.tenant_id == link.tenant_id, BankAccount.is_active == True)
        .order_by(BankAccount.sort_order, BankAccount.id)
    )
    bank_accounts = [
        {
            "id": b.id,
            "bank_name": b.bank_name,
            "account_holder": b.account_holder,
            "iban": b.iban,
            "account_number": b.account_number,
            "swift_bic": b.swift_bic,
            "currency": b.currency,
            "instructions": b.instructions,
        }
        for b in result.scalars().all()
    ]

    result = await db.execute(
        select(CryptoWallet)
        .where(CryptoWallet.tenant_id == link.tenant_id, CryptoWallet.is_active == True)
        .order_by(CryptoWallet.sort_order, CryptoWallet.id)
    )
    crypto_wallets = [
        {
            "id": w.id,
            "currency": w.currency,
            "network": w.network,
            "address": w.address,
            "label": w.label,
        }
        for w in result.scalars().all()
    ]

    await _record_use_and_commit(db, link)
    return {"bank_accounts": bank_accounts, "crypto_wallets": crypto_wallets}


@router.get("/payments")
async def list_payments(
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
    client_id: Optional[int] = Query(None),
):
    require_scope(link, LinkScope.PAY)
    check_assertions(link, tenant_id=tenant_id, client_id=client_id)

    query = select(Payment).where(
        Payment.tenant_id == link.tenant_id,
        Payment.client_id == link.client_id,
    )
    if link.quotation_id is not None:
        query = query.where(Payment.quotation_id == link.quotation_id)
    query = query.order_by(Payment.created_at.desc(), Payment.id.desc())

    result = await db.execute(query)
    payments = [payment_to_dict(p) for p in result.scalars().all()]

    await _record_use_and_commit(db, link)
    return {"payments": payments}


@router.post("/payments", status_code=201)
async def declare_payment(
    body: PaymentDeclareRequest,
    link: PortalLink,
    db: DbSession,
):
    """
    Record a pending manual payment (bank transfer or crypto) declared by
    the client. The tenant confirms it from the dashboard.
    """
    require_scope(link, LinkScope.PAY)
    require_resource(link, body.quotation_id)

    quotation = await _get_client_quotation(db, link, body.quotation_id)

    payment = Payment(
        tenant_id=link.tenant_id,
        client_id=link.client_id,
        quotation_id=quotation.id,
        amount=body.amount,
        currency=(body.currency or quotation.currency).upper(),
        method=body.method,
        status="pending",
        reference=body.reference,
        proof_url=body.proof_url,
    )
    db.add(payment)
    await db.flush()
    await db.refresh(payment)
    data = payment_to_dict(payment)

    await _record_use_and_commit(db, link)
    logger.info(f"Payment {payment.id} declared for quotation {quotation.id} from portal link {link.id}")
    return {"message": "Payment recorded", "payment": data}


@router.get("/shipping")
async def list_shipments(
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
    client_id: Optional[int] = Query(None),
):
    """Shipments of the client's quotations."""
    require_scope(link, LinkScope.TRACK)
    check_assertions(link, tenant_id=tenant_id, client_id=client_id)

    query = (
        select(Shipment, Quotation.reference, Quotation.product_name)
        .join(Quotation, Shipment.quotation_id == Quotation.id)
        .where(
            Shipment.tenant_id == link.tenant_id,
            Quotation.tenant_id == link.tenant_id,
            Quotation.client_id == link.client_id,
        )
    )
    if link.quotation_id is not None:
        query = query.where(Shipment.quotation_id == link.quotation_id)
    query = query.order_by(Shipment.created_at.desc(), Shipment.id.desc())

    result = await db.execute(query)
    shipments = [shipment_to_dict(s, ref, name) for s, ref, name in result.all()]

    await _record_use_and_commit(db, link)
    return {"shipments": shipments}


@router.get("/shipping/{shipment_id}")
async def get_shipment(
    shipment_id: int,
    link: PortalLink,
    db: DbSession,
    tenant_id: Optional[uuid.UUID] = Query(None),
):
    """One shipment with its tracking events."""
    require_scope(link, LinkScope.TRACK)
    check_assertions(link, tenant_id=tenant_id)

    result = await db.execute(
        select(Shipment, Quotation.reference, Quotation.product_name)
        .join(Quotation, Shipment.quotation_id == Quotation.id)
        .where(
            Shipment.id == shipment_id,
            Shipment.tenant_id == link.tenant_id,
            Quotation.tenant_id == link.tenant_id,
            Quotation.client_id == link.client_id,
        )
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipment not found")

    shipment, reference, product_name = row
    require_resource(link, shipment.quotation_id)
    data = shipment_to_dict(shipment, reference, product_name)

    await _record_use_and_commit(db, link)
    return {"shipment": data}
