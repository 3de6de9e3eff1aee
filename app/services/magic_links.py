"""
Magic link service - issue and revoke client portal links.

Called by the operator endpoints. db.commit() is the caller's responsibility.
The raw token leaves this module once, inside IssuedLink, and is never stored.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.exceptions import IssuanceError, StoreUnavailable, TokenHashConflict
from app.models.client import Client
from app.models.magic_link import DEFAULT_LINK_SCOPES, LinkScope, MagicLink
from app.services import link_tokens
from app.services.link_store import LinkStore

logger = logging.getLogger(__name__)

PORTAL_PREFIX = "c"


@dataclass
class IssuedLink:
    link: MagicLink
    raw_token: str
    url: str


def build_link_url(raw_token: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"{settings.public_portal_url}/{PORTAL_PREFIX}/{raw_token}"


def normalize_scopes(scopes: Optional[Iterable[str]], *, quotation_scoped: bool) -> list[str]:
    """
    Deduplicate and order requested scopes.
    Quotation-scoped links cannot create new quotations.
    """
    if scopes is None:
        scopes = DEFAULT_LINK_SCOPES

    requested = set()
    for scope in scopes:
        try:
            requested.add(LinkScope(scope).value)
        except ValueError:
            raise IssuanceError(f"Invalid scope: {scope}")

    if not requested:
        raise IssuanceError("At least one valid scope must be provided")
    if quotation_scoped and LinkScope.CREATE.value in requested:
        raise IssuanceError("Quotation links cannot grant the 'create' scope")

    return [s.value for s in LinkScope if s.value in requested]


def store_for(db: AsyncSession, settings: Optional[Settings] = None) -> LinkStore:
    settings = settings or get_settings()
    return LinkStore(
        db,
        retry_attempts=settings.store_retry_attempts,
        retry_backoff_seconds=settings.store_retry_backoff_seconds,
    )


async def issue_link(
    db: AsyncSession,
    *,
    client: Client,
    scopes: Optional[Iterable[str]] = None,
    expires_in_days: Optional[int] = None,
    max_uses: Optional[int] = None,
    quotation_id: Optional[int] = None,
    created_by: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> IssuedLink:
    """
    Create a magic link for a client of the tenant.

    The tenant is always the client's tenant. On a token hash collision
    a fresh token is drawn, up to settings.issuance_max_attempts times.
    """
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)

    if not client.phone_e164:
        raise IssuanceError("Client must have a phone number (E.164 format) to receive a magic link")
    if client.is_banned:
        raise IssuanceError("Client is banned")

    if expires_in_days is None:
        expires_in_days = (
            settings.quotation_link_default_days if quotation_id is not None
            else settings.magic_link_default_days
        )
    if expires_in_days < 0 or expires_in_days > settings.magic_link_max_days:
        raise IssuanceError(f"expires_in_days must be between 0 and {settings.magic_link_max_days}")
    if max_uses is not None and max_uses < 1:
        raise IssuanceError("max_uses must be at least 1")

    link_scopes = normalize_scopes(scopes, quotation_scoped=quotation_id is not None)

    # Plain values: a conflict rollback expires loaded ORM objects
    tenant_id = client.tenant_id
    client_id = client.id
    name_snapshot = client.display_name
    phone_snapshot = client.phone_e164
    expires_at = now + timedelta(days=expires_in_days)

    store = store_for(db, settings)
    for attempt in range(settings.issuance_max_attempts):
        raw_token, token_hash = link_tokens.generate()
        link = MagicLink(
            tenant_id=tenant_id,
            client_id=client_id,
            quotation_id=quotation_id,
            token_hash=token_hash,
            scopes=link_scopes,
            expires_at=expires_at,
            max_uses=max_uses,
            use_count=0,
            client_name_snapshot=name_snapshot,
            client_phone_snapshot=phone_snapshot,
            created_by=created_by,
        )
        try:
            await store.insert(link)
        except TokenHashConflict:
            logger.warning(
                f"Token hash collision on issuance (attempt {attempt + 1}/{settings.issuance_max_attempts})"
            )
            continue

        logger.info(
            f"Issued magic link {link.id} for client {client_id} "
            f"(tenant {tenant_id}, scopes={link_scopes}, quotation={quotation_id})"
        )
        return IssuedLink(link=link, raw_token=raw_token, url=build_link_url(raw_token, settings))

    raise StoreUnavailable("Could not allocate a unique magic link token")


async def revoke_link(
    db: AsyncSession,
    *,
    link: MagicLink,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Revoke a link. Revoking an already revoked link is a no-op."""
    now = now or datetime.now(timezone.utc)
    revoked = await store_for(db, settings).mark_revoked(link.tenant_id, link.id, now)
    if revoked:
        logger.info(f"Revoked magic link {link.id} (tenant {link.tenant_id})")
    else:
        logger.info(f"Magic link {link.id} was already revoked")
