"""
Magic link validator - pure decision over one record.

Evaluated fresh on every request. Decision order (first match wins):
    not found -> revoked -> expired -> exhausted -> allow

Scope and resource checks are separate: they apply per operation and
never touch use_count.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.exceptions import DenialReason, LinkDenied
from app.models.magic_link import LinkScope, MagicLink


@dataclass(frozen=True)
class LinkDecision:
    allowed: bool
    reason: Optional[DenialReason] = None
    link: Optional[MagicLink] = None

    def raise_for_denial(self) -> MagicLink:
        """Return the link on ALLOW, raise LinkDenied otherwise."""
        if not self.allowed:
            raise LinkDenied(self.reason, link_id=self.link.id if self.link else None)
        return self.link


def as_utc(value: datetime) -> datetime:
    """Some drivers (SQLite) hand back naive datetimes; they are stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def evaluate(link: Optional[MagicLink], now: datetime) -> LinkDecision:
    if link is None:
        return LinkDecision(False, DenialReason.NOT_FOUND)
    if link.revoked_at is not None:
        return LinkDecision(False, DenialReason.REVOKED, link)
    if now >= as_utc(link.expires_at):
        return LinkDecision(False, DenialReason.EXPIRED, link)
    if link.max_uses is not None and link.use_count >= link.max_uses:
        return LinkDecision(False, DenialReason.EXHAUSTED, link)
    return LinkDecision(True, None, link)


def link_status(link: MagicLink, now: datetime) -> str:
    """Operator-facing status: active, revoked, expired or exhausted."""
    decision = evaluate(link, now)
    return "active" if decision.allowed else decision.reason.value


def require_scope(link: MagicLink, scope: LinkScope) -> None:
    if not link.has_scope(scope):
        raise LinkDenied(
            DenialReason.INSUFFICIENT_SCOPE,
            link_id=link.id,
            details={"required": scope.value},
        )


def require_resource(link: MagicLink, quotation_id: int) -> None:
    """A quotation-scoped link only reaches its own quotation."""
    if link.quotation_id is not None and link.quotation_id != quotation_id:
        raise LinkDenied(
            DenialReason.RESOURCE_MISMATCH,
            link_id=link.id,
            details={"requested_quotation_id": quotation_id},
        )


def require_tenant_wide(link: MagicLink) -> None:
    """Operations that are not about one quotation need a tenant-wide link."""
    if link.quotation_id is not None:
        raise LinkDenied(DenialReason.RESOURCE_MISMATCH, link_id=link.id)


def check_assertions(
    link: MagicLink,
    *,
    tenant_id=None,
    client_id: Optional[int] = None,
) -> None:
    """
    Client-supplied identifiers are only assertions about the link.
    Any mismatch with the record is a denial.
    """
    if tenant_id is not None and str(tenant_id) != str(link.tenant_id):
        raise LinkDenied(
            DenialReason.RESOURCE_MISMATCH,
            link_id=link.id,
            details={"asserted_tenant_id": str(tenant_id)},
        )
    if client_id is not None and client_id != link.client_id:
        raise LinkDenied(
            DenialReason.RESOURCE_MISMATCH,
            link_id=link.id,
            details={"asserted_client_id": client_id},
        )
