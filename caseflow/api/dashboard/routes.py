"""
Dashboard API.
GET /api/{tenant}/dashboard/stats - case, SLA, loan and model-run totals.
GET /api/{tenant}/dashboard/ai - per-model run statistics.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok
from caseflow.core.config import settings
from caseflow.core.database import get_session
from caseflow.core.security import Principal, get_tenant_principal
from caseflow.models.base_models import Case as CaseORM
from caseflow.models.base_models import LoanCase, ModelRun
from caseflow.modules.case.infrastructure.mappers.case_mapper import as_utc

router = APIRouter(prefix="/{tenant}/dashboard", tags=["dashboard"])


def _parse_deadline(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def is_sla_breached(
    metadata: Optional[dict],
    created_at: Optional[datetime],
    now: datetime,
    default_sla_hours: float = settings.DEFAULT_SLA_HOURS,
) -> bool:
    """Past the stored slaDeadline, or past created_at + default hours when there is none."""
    deadline = _parse_deadline((metadata or {}).get("slaDeadline"))
    if deadline is None:
        created = as_utc(created_at)
        if created is None:
            return False
        deadline = created + timedelta(hours=default_sla_hours)
    return now > deadline


def _run_view(run: ModelRun) -> dict[str, Any]:
    return {
        "id": run.id,
        "model_name": run.model_name,
        "model_version": run.model_version,
        "confidence": run.confidence,
        "case_id": run.case_id,
        "output": run.output,
        "created_at": run.created_at.isoformat() if run.created_at else None,
    }


@router.get("/stats")
async def stats(
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    tenant_id = principal.tenant_id
    now = datetime.now(timezone.utc)

    status_rows = await db.execute(
        select(CaseORM.status, func.count())
        .where(CaseORM.tenant_id == tenant_id)
        .group_by(CaseORM.status)
    )
    by_status = {status: count for status, count in status_rows.all()}

    open_rows = await db.execute(
        select(CaseORM.case_metadata, CaseORM.created_at).where(
            CaseORM.tenant_id == tenant_id, CaseORM.status == "in_progress"
        )
    )
    sla_breaches = sum(1 for metadata, created_at in open_rows.all() if is_sla_breached(metadata, created_at, now))

    loan_row = (
        await db.execute(
            select(func.count(), func.coalesce(func.sum(LoanCase.requested_amount), 0)).where(
                LoanCase.tenant_id == tenant_id
            )
        )
    ).one()

    recent_confidences = (
        await db.execute(
            select(ModelRun.confidence)
            .where(ModelRun.tenant_id == tenant_id)
            .order_by(ModelRun.created_at.desc())
            .limit(10)
        )
    ).scalars().all()
    confidences = [c for c in recent_confidences if c is not None]

    return ok({
        "cases": {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "sla_breaches": sla_breaches,
        },
        "loans": {
            "total_amount": float(loan_row[1] or 0),
            "count": loan_row[0],
        },
        "ai_models": {
            "recent_runs": len(recent_confidences),
            "avg_confidence": sum(confidences) / len(confidences) if confidences else 0,
        },
    })


@router.get("/ai")
async def ai_stats(
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    runs = (
        await db.execute(
            select(ModelRun)
            .where(ModelRun.tenant_id == principal.tenant_id)
            .order_by(ModelRun.created_at.desc())
            .limit(100)
        )
    ).scalars().all()

    model_stats: dict[str, dict[str, Any]] = {}
    for run in runs:
        entry = model_stats.setdefault(run.model_name, {"total_runs": 0, "confidences": []})
        entry["total_runs"] += 1
        if run.confidence is not None:
            entry["confidences"].append(run.confidence)
    for entry in model_stats.values():
        confidences = entry.pop("confidences")
        entry["avg_confidence"] = sum(confidences) / len(confidences) if confidences else 0

    return ok({
        "model_stats": model_stats,
        "recent_runs": [_run_view(r) for r in runs[:10]],
    })
