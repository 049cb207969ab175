"""
Workflow configuration API.
Writes require Admin; reads are open to every role of the tenant.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok, paginate
from caseflow.core.database import get_session
from caseflow.core.security import Principal, get_tenant_principal, require_roles
from caseflow.models.base_models import WorkflowConfigRecord
from caseflow.modules.workflow.application.workflow_service import WorkflowService

router = APIRouter(prefix="/{tenant}/workflows", tags=["workflows"])

require_admin = require_roles("Admin")


class WorkflowCreateRequest(BaseModel):
    workflowId: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    config: dict[str, Any]


class WorkflowUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    isActive: Optional[bool] = None


def workflow_view(record: WorkflowConfigRecord, case_count: Optional[int] = None) -> dict[str, Any]:
    view = {
        "id": record.id,
        "workflowId": record.workflow_id,
        "version": record.version,
        "name": record.name,
        "description": record.description,
        "config": record.config,
        "isActive": record.is_active,
        "createdBy": record.created_by,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }
    if case_count is not None:
        view["caseCount"] = case_count
    return view


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_workflow(
    req: WorkflowCreateRequest,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    record = await WorkflowService.create(
        db,
        tenant_id=principal.tenant_id,
        workflow_id=req.workflowId,
        name=req.name,
        description=req.description,
        config=req.config,
        created_by=principal.user_id,
    )
    await db.commit()
    return ok(workflow_view(record), message="Workflow created successfully")


@router.get("")
async def list_workflows(
    active: Optional[bool] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    records, total = await WorkflowService.list_for_tenant(
        db, principal.tenant_id, active=active, limit=limit, offset=(page - 1) * limit
    )
    return ok([workflow_view(r) for r in records], pagination=paginate(page, limit, total))


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    record = await WorkflowService.get(db, principal.tenant_id, workflow_id)
    count = await WorkflowService.case_count(db, principal.tenant_id, workflow_id)
    return ok(workflow_view(record, case_count=count))


@router.put("/{workflow_id}")
async def update_workflow(
    workflow_id: str,
    req: WorkflowUpdateRequest,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    record = await WorkflowService.update(
        db,
        tenant_id=principal.tenant_id,
        workflow_id=workflow_id,
        name=req.name,
        description=req.description,
        config=req.config,
        is_active=req.isActive,
    )
    await db.commit()
    return ok(workflow_view(record), message="Workflow updated successfully")


@router.delete("/{workflow_id}")
async def delete_workflow(
    workflow_id: str,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    await WorkflowService.delete(db, tenant_id=principal.tenant_id, workflow_id=workflow_id)
    await db.commit()
    return ok(message="Workflow deleted successfully")
