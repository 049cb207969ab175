"""
Authentication API.
POST /api/auth/login, GET /api/auth/verify
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok
from caseflow.core.config import settings
from caseflow.core.database import get_session
from caseflow.core.security import (
    Principal,
    authenticate_credentials,
    create_access_token,
    get_current_principal,
)
from caseflow.models.base_models import User

logger = logging.getLogger("caseflow.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    tenant: str = Field(min_length=1)


async def _record_login(db: AsyncSession, user: User) -> None:
    """Best effort: a failed last_login write never fails the login."""
    try:
        user.last_login = datetime.now(timezone.utc)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning(f"failed to update last login user_id={user.id}: {exc}")


@router.post("/login")
async def login(req: LoginRequest, db: AsyncSession = Depends(get_session)):
    user, tenant = await authenticate_credentials(db, req.email, req.password, req.tenant)
    token = create_access_token(user, tenant)
    user_view = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "tenantId": user.tenant_id,
    }
    tenant_view = {
        "id": tenant.id,
        "name": tenant.name,
        "domain": tenant.domain,
        "settings": tenant.settings or {},
    }
    await _record_login(db, user)
    logger.info(f"login succeeded user_id={user_view['id']} tenant={tenant_view['domain']}")
    return ok({
        "token": token,
        "expiresIn": settings.JWT_ACCESS_EXPIRE_SECONDS,
        "user": user_view,
        "tenant": tenant_view,
    })


@router.get("/verify")
async def verify(principal: Principal = Depends(get_current_principal)):
    return ok({
        "user": {
            "id": principal.user_id,
            "email": principal.email,
            "name": principal.name,
            "role": principal.role,
            "tenantId": principal.tenant_id,
        },
        "tenant": {
            "id": principal.tenant_id,
            "name": principal.tenant_name,
            "domain": principal.tenant_domain,
        },
    })
