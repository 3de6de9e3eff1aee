"""
FastAPI dependencies for authentication, tenant isolation, and database access.

Operators authenticate with a bearer JWT (Supabase session token or internal
token). Clients never authenticate: portal routes resolve a magic link from
the raw token in the URL path instead.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.models.magic_link import MagicLink
from app.models.tenant import Tenant
from app.models.user import LINK_MANAGER_ROLES, User
from app.services import link_tokens
from app.services.link_validator import evaluate
from app.services.magic_links import store_for

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """
    Decode an operator JWT.
    Tries the Supabase HS256 secret when configured, then the internal secret.
    """
    settings = get_settings()

    if settings.supabase_jwt_secret:
        try:
            payload = jwt.decode(
                token,
                settings.supabase_jwt_secret,
                algorithms=["HS256"],
                options={"verify_aud": False},
            )
            return {"type": "supabase", "payload": payload}
        except JWTError as e:
            logger.debug(f"Supabase token decode failed: {e}")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return {"type": "internal", "payload": payload}
    except JWTError as e:
        logger.debug(f"Internal token decode failed: {e}")

    return {"type": None, "payload": None}


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user from JWT token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        raise credentials_exception

    decoded = decode_access_token(credentials.credentials)
    if decoded["type"] is None:
        raise credentials_exception

    # Both token types carry the user UUID in sub
    try:
        user_uuid = uuid.UUID(str(decoded["payload"].get("sub")))
    except (ValueError, TypeError):
        raise credentials_exception

    result = await db.execute(
        select(User).where(User.id == user_uuid, User.is_active == True)
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    return user


async def get_current_tenant(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Tenant:
    """
    Dependency to get the current tenant from the authenticated user.
    """
    result = await db.execute(
        select(Tenant).where(Tenant.id == user.tenant_id, Tenant.is_active == True)
    )
    tenant = result.scalar_one_or_none()

    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant not found or inactive",
        )

    return tenant


def require_role(*allowed_roles: str):
    """
    Dependency factory to require specific user roles.

    Usage:
        @router.post("/magic-links")
        async def issue(user: User = Depends(require_role("owner", "admin", "staff"))):
            ...
    """
    async def role_checker(
        user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {', '.join(allowed_roles)}",
            )
        return user

    return role_checker


async def get_tenant_id(
    user: Annotated[User, Depends(get_current_user)],
) -> uuid.UUID:
    """
    Dependency to get the tenant ID from the authenticated user.
    Simpler than get_current_tenant when you only need the ID.
    """
    if not user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User has no associated tenant",
        )
    return user.tenant_id


async def get_portal_link(
    token: Annotated[str, Path(min_length=1, max_length=256)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MagicLink:
    """
    Resolve the magic link of a portal request: hash the raw token, look the
    record up by hash and evaluate it. Raises LinkDenied on any failure.
    Scope checks and use recording are left to the handler.
    """
    token_hash = link_tokens.hash_token(token)
    link = await store_for(db).find_by_hash(token_hash)
    return evaluate(link, datetime.now(timezone.utc)).raise_for_denial()


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentTenant = Annotated[Tenant, Depends(get_current_tenant)]
LinkManager = Annotated[User, Depends(require_role(*LINK_MANAGER_ROLES))]
TenantId = Annotated[uuid.UUID, Depends(get_tenant_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
PortalLink = Annotated[MagicLink, Depends(get_portal_link)]
