from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok
from caseflow.core.database import get_session
from caseflow.core.observability import metrics_registry
from caseflow.core.security import Principal, require_roles
from caseflow.models.base_models import EventOutbox
from caseflow.modules.case.infrastructure.mappers.case_mapper import as_utc

router = APIRouter(prefix="/{tenant}/events", tags=["events"])

require_oversight = require_roles("Admin", "Auditor")

OutboxStatus = Literal["PENDING", "PUBLISHED", "FAILED"]


def outbox_view(entry: EventOutbox) -> dict:
    return {
        "id": entry.id,
        "eventType": entry.event_type,
        "aggregateType": entry.aggregate_type,
        "aggregateId": entry.aggregate_id,
        "payload": entry.payload,
        "status": entry.status,
        "createdAt": entry.created_at.isoformat() if entry.created_at else None,
        "publishedAt": entry.published_at.isoformat() if entry.published_at else None,
    }


@router.get("/outbox")
async def list_outbox(
    status: Optional[OutboxStatus] = Query(default=None),
    aggregate_id: Optional[str] = Query(default=None, alias="aggregateId"),
    limit: int = Query(default=50, ge=1, le=500),
    principal: Principal = Depends(require_oversight),
    db: AsyncSession = Depends(get_session),
):
    stmt = select(EventOutbox).where(EventOutbox.tenant_id == principal.tenant_id)
    if status:
        stmt = stmt.where(EventOutbox.status == status)
    if aggregate_id:
        stmt = stmt.where(EventOutbox.aggregate_id == aggregate_id)
    result = await db.execute(stmt.order_by(EventOutbox.created_at.desc()).limit(limit))
    return ok([outbox_view(e) for e in result.scalars()])


@router.get("/outbox/backlog")
async def outbox_backlog(
    principal: Principal = Depends(require_oversight),
    db: AsyncSession = Depends(get_session),
):
    scoped = EventOutbox.tenant_id == principal.tenant_id
    pending = await db.scalar(
        select(func.count()).select_from(EventOutbox).where(scoped, EventOutbox.status == "PENDING")
    )
    failed = await db.scalar(
        select(func.count()).select_from(EventOutbox).where(scoped, EventOutbox.status == "FAILED")
    )
    oldest = await db.scalar(
        select(func.min(EventOutbox.created_at)).where(scoped, EventOutbox.status == "PENDING")
    )
    age_seconds = 0.0
    if oldest is not None:
        age_seconds = max(0.0, (datetime.now(timezone.utc) - as_utc(oldest)).total_seconds())
    metrics_registry.set_gauge("caseflow_event_outbox_pending", float(pending or 0))
    return ok({
        "pending": int(pending or 0),
        "failed": int(failed or 0),
        "oldest_pending_age_seconds": round(age_seconds, 3),
    })
