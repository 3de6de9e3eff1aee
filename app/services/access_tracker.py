"""
Access tracker - records one use per acted-upon ALLOW.

Called after the portal operation has run (and flushed) and before the
request transaction commits. If the use cannot be recorded the caller
must roll back: data is never returned without its use being counted.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from app.exceptions import DenialReason, LinkDenied
from app.models.magic_link import MagicLink
from app.services.link_store import LinkStore

logger = logging.getLogger(__name__)


class AccessTracker:
    def __init__(self, store: LinkStore):
        self.store = store

    async def on_success(self, link: MagicLink, now: Optional[datetime] = None) -> None:
        """
        Record a use of the link.

        Raises LinkDenied(EXHAUSTED) if the link stopped being usable since
        it was validated (a concurrent request took the last use, or it was
        revoked or expired meanwhile). StoreUnavailable propagates.
        """
        now = now or datetime.now(timezone.utc)
        recorded = await self.store.record_use(link.id, now)
        if not recorded:
            logger.info(f"Magic link {link.id} lost the race for its last use")
            raise LinkDenied(DenialReason.EXHAUSTED, link_id=link.id)
