"""
Access guard: JWT bearer authentication, tenant binding and role checks.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.core.config import settings
from caseflow.core.database import get_session
from caseflow.core.errors import Forbidden, Unauthenticated
from caseflow.core.middleware import bind_tenant_id, bind_user_id
from caseflow.core.observability import metrics_registry
from caseflow.models.base_models import Tenant, User

logger = logging.getLogger("caseflow.security")

# bcrypt 72-byte limit: truncate_error=False so passlib truncates instead of raising
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__truncate_error=False)
security_scheme = HTTPBearer(auto_error=False)

# roles that see every case of the tenant in listings
OVERSIGHT_ROLES: frozenset[str] = frozenset({"Admin", "Auditor"})


@dataclass(frozen=True)
class Principal:
    """The authenticated (user, role, tenant) bound to a request."""
    user_id: str
    email: str
    name: str
    role: str
    tenant_id: str
    tenant_domain: str
    tenant_name: str

    @property
    def sees_all_cases(self) -> bool:
        return self.role in OVERSIGHT_ROLES


# bcrypt allows at most 72 bytes; truncate to avoid ValueError in some environments
def _truncate_for_bcrypt(s: str, max_bytes: int = 72) -> str:
    b = s.encode("utf-8")
    if len(b) <= max_bytes:
        return s
    return b[:max_bytes].decode("utf-8", errors="ignore") or s[:1]


def hash_password(plain: str) -> str:
    return pwd_context.hash(_truncate_for_bcrypt(plain))


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_truncate_for_bcrypt(plain), hashed)


def _payload_for_access(user: User, tenant: Tenant) -> dict[str, Any]:
    now = int(time.time())
    return {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "tenant_id": tenant.id,
        "tenant_domain": tenant.domain,
        "iss": settings.JWT_ISSUER,
        "iat": now,
        "exp": now + settings.JWT_ACCESS_EXPIRE_SECONDS,
    }


def create_access_token(user: User, tenant: Tenant) -> str:
    payload = _payload_for_access(user, tenant)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options={"require": ["sub", "tenant_id", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")


async def load_principal(db: AsyncSession, user_id: str, tenant_id: str) -> Principal:
    """Re-read user and tenant so deactivation takes effect before token expiry."""
    result = await db.execute(
        select(User, Tenant)
        .join(Tenant, Tenant.id == User.tenant_id)
        .where(User.id == user_id, User.tenant_id == tenant_id)
    )
    row = result.first()
    if row is None:
        raise Unauthenticated("Invalid token")
    user, tenant = row
    if not user.is_active or not tenant.is_active:
        raise Unauthenticated("User or tenant is inactive")
    return Principal(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        tenant_id=tenant.id,
        tenant_domain=tenant.domain,
        tenant_name=tenant.name,
    )


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
    db: AsyncSession = Depends(get_session),
) -> Principal:
    if not credentials:
        raise Unauthenticated("Access token required")
    payload = decode_token(credentials.credentials)
    principal = await load_principal(db, str(payload["sub"]), str(payload["tenant_id"]))
    bind_user_id(principal.user_id)
    return principal


async def get_tenant_principal(
    tenant: str,
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Path tenant (domain or id) must name the tenant the token is bound to."""
    if tenant not in (principal.tenant_domain, principal.tenant_id):
        raise Forbidden("Access denied to this tenant")
    bind_tenant_id(principal.tenant_id)
    return principal


def require_roles(*roles: str):
    allowed = frozenset(roles)

    async def _check(principal: Principal = Depends(get_tenant_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden(f"Role '{principal.role}' is not allowed; requires one of {sorted(allowed)}")
        return principal
    return _check


async def authenticate_credentials(db: AsyncSession, email: str, password: str, tenant: str) -> tuple[User, Tenant]:
    """Resolve login credentials; every failure looks the same to the caller."""
    result = await db.execute(
        select(Tenant).where(or_(Tenant.domain == tenant, Tenant.id == tenant))
    )
    tenant_row = result.scalar_one_or_none()
    user_row = None
    if tenant_row is not None and tenant_row.is_active:
        result = await db.execute(
            select(User).where(User.tenant_id == tenant_row.id, User.email == email)
        )
        user_row = result.scalar_one_or_none()

    if (
        user_row is None
        or not user_row.is_active
        or not verify_password(password, user_row.password_hash)
    ):
        metrics_registry.inc("caseflow_login_failures_total")
        logger.warning(f"login rejected email={email} tenant={tenant}")
        raise Unauthenticated("Invalid tenant or credentials")
    return user_row, tenant_row
