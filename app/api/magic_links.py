"""
Magic link management endpoints (tenant operators).

Issue, list, inspect and revoke client portal links. The raw token is
returned once, by the issuance endpoint, and cannot be recovered later.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select

from app.api.deps import DbSession, LinkManager, TenantId
from app.exceptions import IssuanceError
from app.models.client import Client
from app.models.magic_link import LinkScope, MagicLink
from app.models.quotation import Quotation
from app.services.link_validator import as_utc, link_status
from app.services.magic_links import issue_link, revoke_link, store_for

router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class MagicLinkIssueRequest(BaseModel):
    """Issue a magic link for a client, optionally bound to one quotation."""
    client_id: int
    scopes: Optional[List[LinkScope]] = Field(None, description="Defaults to view, pay, track")
    expires_in_days: Optional[int] = Field(None, ge=0, description="0 = already expired")
    max_uses: Optional[int] = Field(None, ge=1, description="null = unlimited")
    quotation_id: Optional[int] = None


class IssuedClientInfo(BaseModel):
    name: str
    phone: Optional[str] = None


class MagicLinkIssueResponse(BaseModel):
    link_id: str
    url: str
    raw_token: str
    expires_at: str
    max_uses: Optional[int] = None
    scopes: List[str]
    quotation_id: Optional[int] = None
    client: IssuedClientInfo


class MagicLinkResponse(BaseModel):
    """Link as seen by operators. Never includes the token or its hash."""
    id: str
    client_id: int
    quotation_id: Optional[int] = None
    scopes: List[str]
    status: str
    expires_at: str
    revoked_at: Optional[str] = None
    max_uses: Optional[int] = None
    use_count: int
    last_accessed_at: Optional[str] = None
    client_name: str
    client_phone: Optional[str] = None
    created_by: Optional[str] = None
    created_at: str


class RevokeResponse(BaseModel):
    success: bool = True


# ============================================================================
# Helper functions
# ============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value else None


def magic_link_to_response(link: MagicLink, now: datetime) -> MagicLinkResponse:
    return MagicLinkResponse(
        id=str(link.id),
        client_id=link.client_id,
        quotation_id=link.quotation_id,
        scopes=list(link.scopes or []),
        status=link_status(link, now),
        expires_at=_iso(link.expires_at),
        revoked_at=_iso(link.revoked_at),
        max_uses=link.max_uses,
        use_count=link.use_count,
        last_accessed_at=_iso(link.last_accessed_at),
        client_name=link.client_name_snapshot,
        client_phone=link.client_phone_snapshot,
        created_by=str(link.created_by) if link.created_by else None,
        created_at=_iso(link.created_at) or "",
    )


async def _get_link_or_404(db, tenant_id: uuid.UUID, link_id: uuid.UUID) -> MagicLink:
    link = await store_for(db).get(tenant_id, link_id)
    if not link:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Magic link not found")
    return link


# ============================================================================
# Endpoints
# ============================================================================

@router.post("", response_model=MagicLinkIssueResponse, status_code=201)
async def create_magic_link(
    data: MagicLinkIssueRequest,
    db: DbSession,
    tenant_id: TenantId,
    user: LinkManager,
):
    """
    Issue a magic link for a client of the current tenant.

    The response is the only place the raw token ever appears.
    """
    result = await db.execute(
        select(Client).where(Client.id == data.client_id, Client.tenant_id == tenant_id)
    )
    client = result.scalar_one_or_none()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    if data.quotation_id is not None:
        result = await db.execute(
            select(Quotation.id).where(
                Quotation.id == data.quotation_id,
                Quotation.tenant_id == tenant_id,
                Quotation.client_id == client.id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise HTTPException(status_code=404, detail="Quotation not found")

    try:
        issued = await issue_link(
            db,
            client=client,
            scopes=data.scopes,
            expires_in_days=data.expires_in_days,
            max_uses=data.max_uses,
            quotation_id=data.quotation_id,
            created_by=user.id,
        )
    except IssuanceError as e:
        raise HTTPException(status_code=400, detail=e.message)

    await db.commit()

    link = issued.link
    return MagicLinkIssueResponse(
        link_id=str(link.id),
        url=issued.url,
        raw_token=issued.raw_token,
        expires_at=_iso(link.expires_at),
        max_uses=link.max_uses,
        scopes=list(link.scopes),
        quotation_id=link.quotation_id,
        client=IssuedClientInfo(
            name=link.client_name_snapshot,
            phone=link.client_phone_snapshot,
        ),
    )


@router.get("", response_model=List[MagicLinkResponse])
async def list_magic_links(
    db: DbSession,
    tenant_id: TenantId,
    user: LinkManager,
    client_id: Optional[int] = Query(None, description="Filter by client"),
    quotation_id: Optional[int] = Query(None, description="Filter by quotation"),
):
    """List magic links of the current tenant, newest first."""
    links = await store_for(db).list_links(
        tenant_id,
        client_id=client_id,
        quotation_id=quotation_id,
    )
    now = datetime.now(timezone.utc)
    return [magic_link_to_response(link, now) for link in links]


@router.get("/{link_id}", response_model=MagicLinkResponse)
async def get_magic_link(
    link_id: uuid.UUID,
    db: DbSession,
    tenant_id: TenantId,
    user: LinkManager,
):
    """Get one magic link with its current status."""
    link = await _get_link_or_404(db, tenant_id, link_id)
    return magic_link_to_response(link, datetime.now(timezone.utc))


@router.post("/{link_id}/revoke", response_model=RevokeResponse)
async def revoke_magic_link(
    link_id: uuid.UUID,
    db: DbSession,
    tenant_id: TenantId,
    user: LinkManager,
):
    """
    Revoke a magic link. Idempotent: succeeds whether or not the link
    was already revoked. A revoked link can never be re-enabled.
    """
    link = await _get_link_or_404(db, tenant_id, link_id)
    await revoke_link(db, link=link)
    await db.commit()
    return RevokeResponse()
