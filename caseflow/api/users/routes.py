"""
User API (Admin only).
GET  /api/{tenant}/users - tenant users, newest first.
POST /api/{tenant}/users - create a user in the caller's tenant.
"""
from __future__ import annotations

import logging
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok
from caseflow.core.database import get_session
from caseflow.core.errors import AlreadyExists
from caseflow.core.security import Principal, hash_password, require_roles
from caseflow.models.base_models import User

logger = logging.getLogger("caseflow.users")

router = APIRouter(prefix="/{tenant}/users", tags=["users"])

RoleName = Literal["Admin", "Maker", "Checker", "Underwriter", "DisbursementOfficer", "Auditor"]


class UserCreateRequest(BaseModel):
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    role: RoleName


def user_view(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "isActive": user.is_active,
        "lastLogin": user.last_login.isoformat() if user.last_login else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


@router.get("")
async def list_users(
    principal: Principal = Depends(require_roles("Admin")),
    db: AsyncSession = Depends(get_session),
):
    result = await db.execute(
        select(User).where(User.tenant_id == principal.tenant_id).order_by(User.created_at.desc())
    )
    return ok([user_view(u) for u in result.scalars()])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateRequest,
    principal: Principal = Depends(require_roles("Admin")),
    db: AsyncSession = Depends(get_session),
):
    existing = await db.execute(
        select(User.id).where(User.tenant_id == principal.tenant_id, User.email == body.email)
    )
    if existing.scalar_one_or_none() is not None:
        raise AlreadyExists("User with this email already exists")

    user = User(
        id=str(uuid.uuid4()),
        tenant_id=principal.tenant_id,
        email=body.email,
        password_hash=hash_password(body.password),
        name=body.name,
        role=body.role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    logger.info(f"user created user_id={user.id} role={user.role}")
    return ok(user_view(user), message="User created successfully")
