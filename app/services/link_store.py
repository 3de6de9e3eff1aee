"""
Magic link record store.

All reads and writes of client_magic_links go through LinkStore. Lookups are
by the unique token_hash index. Use counting is a single conditional UPDATE
so concurrent requests on the same link serialize in the database.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import StoreUnavailable, TokenHashConflict
from app.models.magic_link import MagicLink
from app.services.link_tokens import hash_prefix

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, OperationalError) or bool(exc.connection_invalidated)


class LinkStore:
    """Persistence for magic links, bound to one request session."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.2,
    ):
        self.db = db
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds

    async def _read_with_retry(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """
        Run a read, retrying transient failures with linear backoff.
        Only used for reads issued before any write in the transaction,
        since a retry rolls the session back.
        """
        for attempt in range(self.retry_attempts):
            try:
                return await operation()
            except DBAPIError as e:
                if not _is_transient(e):
                    raise
                await self.db.rollback()
                if attempt < self.retry_attempts - 1:
                    logger.warning(
                        f"{description} failed, retry {attempt + 1}/{self.retry_attempts}: {e.orig!r}"
                    )
                    await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
                    continue
                logger.error(f"{description} failed after {self.retry_attempts} attempts: {e.orig!r}")
                raise StoreUnavailable(f"{description} failed") from e
        raise StoreUnavailable(f"{description} failed")

    # ================================================================
    # Reads
    # ================================================================

    async def find_by_hash(self, token_hash: str) -> Optional[MagicLink]:
        async def run():
            result = await self.db.execute(
                select(MagicLink).where(MagicLink.token_hash == token_hash)
            )
            return result.scalar_one_or_none()

        return await self._read_with_retry(run, f"Lookup of link {hash_prefix(token_hash)}")

    async def get(self, tenant_id: uuid.UUID, link_id: uuid.UUID) -> Optional[MagicLink]:
        async def run():
            result = await self.db.execute(
                select(MagicLink).where(
                    MagicLink.id == link_id,
                    MagicLink.tenant_id == tenant_id,
                )
            )
            return result.scalar_one_or_none()

        return await self._read_with_retry(run, f"Load of link {link_id}")

    async def list_links(
        self,
        tenant_id: uuid.UUID,
        *,
        client_id: Optional[int] = None,
        quotation_id: Optional[int] = None,
    ) -> list[MagicLink]:
        query = select(MagicLink).where(MagicLink.tenant_id == tenant_id)
        if client_id is not None:
            query = query.where(MagicLink.client_id == client_id)
        if quotation_id is not None:
            query = query.where(MagicLink.quotation_id == quotation_id)
        query = query.order_by(MagicLink.created_at.desc())

        async def run():
            result = await self.db.execute(query)
            return list(result.scalars().all())

        return await self._read_with_retry(run, "Listing of links")

    # ================================================================
    # Writes
    # ================================================================

    async def insert(self, link: MagicLink) -> MagicLink:
        """
        Persist a new link (flush only, commit is the caller's responsibility).
        Raises TokenHashConflict if the hash already exists.
        """
        if await self.find_by_hash(link.token_hash) is not None:
            raise TokenHashConflict()

        self.db.add(link)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Concurrent insert of the same hash between check and flush
            await self.db.rollback()
            raise TokenHashConflict() from e
        except DBAPIError as e:
            await self.db.rollback()
            raise StoreUnavailable("Insert of link failed") from e
        return link

    async def mark_revoked(self, tenant_id: uuid.UUID, link_id: uuid.UUID, now: datetime) -> bool:
        """
        Set revoked_at if unset. Idempotent.
        Returns True if this call revoked the link.
        """
        try:
            result = await self.db.execute(
                update(MagicLink)
                .where(
                    MagicLink.id == link_id,
                    MagicLink.tenant_id == tenant_id,
                    MagicLink.revoked_at.is_(None),
                )
                .values(revoked_at=now)
                .execution_options(synchronize_session=False)
            )
        except DBAPIError as e:
            raise StoreUnavailable("Revocation of link failed") from e
        return result.rowcount == 1

    async def record_use(self, link_id: uuid.UUID, now: datetime) -> bool:
        """
        Atomically increment use_count and set last_accessed_at.

        The row is only updated while the link is still usable, so two
        requests racing for the last use cannot both succeed.
        Returns False when no row was updated.
        """
        try:
            result = await self.db.execute(
                update(MagicLink)
                .where(
                    MagicLink.id == link_id,
                    MagicLink.revoked_at.is_(None),
                    MagicLink.expires_at > now,
                    or_(
                        MagicLink.max_uses.is_(None),
                        MagicLink.use_count < MagicLink.max_uses,
                    ),
                )
                .values(
                    use_count=MagicLink.use_count + 1,
                    last_accessed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
        except DBAPIError as e:
            raise StoreUnavailable("Usage update of link failed") from e
        return result.rowcount == 1
