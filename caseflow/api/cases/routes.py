"""
Case API.
POST /api/{tenant}/cases - seed a case at the first stage of a workflow.
GET  /api/{tenant}/cases - list (non Admin/Auditor: own or assigned cases only).
GET  /api/{tenant}/cases/{case_id} - detail with loan, history, documents and available actions.
GET  /api/{tenant}/cases/{case_id}/history
POST /api/{tenant}/cases/{case_id}/action - apply a workflow transition.
POST /api/{tenant}/cases/{case_id}/assign
"""
from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok, paginate
from caseflow.bpm.engine import available_actions, parse_definition
from caseflow.core.database import get_session
from caseflow.core.security import Principal, get_tenant_principal
from caseflow.models.base_models import Document, LoanCase
from caseflow.modules.case.application.case_service import CaseService, LoanRequest
from caseflow.modules.case.domain.aggregates.case import Case, CaseHistoryEntry, CasePriority, CaseStatus
from caseflow.modules.workflow.application.workflow_service import WorkflowService

router = APIRouter(prefix="/{tenant}/cases", tags=["cases"])


class LoanData(BaseModel):
    borrowerId: str = Field(min_length=1)
    productId: str = Field(min_length=1)
    requestedAmount: float = Field(gt=0)
    tenor: int = Field(gt=0)


class CreateCaseRequest(BaseModel):
    workflowId: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    priority: CasePriority = CasePriority.MEDIUM
    loanData: Optional[LoanData] = None


class CaseActionRequest(BaseModel):
    action: str = Field(min_length=1)
    comment: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)


class AssignRequest(BaseModel):
    assignedTo: str = Field(min_length=1)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def case_view(case: Case) -> dict[str, Any]:
    return {
        "id": case.id,
        "tenantId": case.tenant_id,
        "workflowId": case.workflow_id,
        "currentStage": case.current_stage,
        "status": case.status.value,
        "priority": case.priority.value,
        "assignedTo": case.assigned_to,
        "createdBy": case.created_by,
        "data": case.data,
        "metadata": case.metadata,
        "version": case.version,
        "createdAt": _iso(case.created_at),
        "updatedAt": _iso(case.updated_at),
    }


def history_view(entry: CaseHistoryEntry) -> dict[str, Any]:
    return {
        "action": entry.action,
        "fromStage": entry.from_stage,
        "toStage": entry.to_stage,
        "performedBy": entry.performed_by,
        "comment": entry.comment,
        "data": entry.data,
        "timestamp": _iso(entry.timestamp),
    }


def _loan_view(loan: LoanCase) -> dict[str, Any]:
    return {
        "loanId": loan.loan_id,
        "borrowerId": loan.borrower_id,
        "productId": loan.product_id,
        "requestedAmount": float(loan.requested_amount) if loan.requested_amount is not None else None,
        "approvedAmount": float(loan.approved_amount) if loan.approved_amount is not None else None,
        "tenor": loan.tenor,
        "interestRate": float(loan.interest_rate) if loan.interest_rate is not None else None,
        "decision": loan.decision,
        "pdScore": float(loan.pd_score) if loan.pd_score is not None else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_case(
    req: CreateCaseRequest,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    loan = None
    if req.loanData is not None:
        loan = LoanRequest(
            borrower_id=req.loanData.borrowerId,
            product_id=req.loanData.productId,
            requested_amount=req.loanData.requestedAmount,
            tenor=req.loanData.tenor,
        )
    case = await CaseService.create_case(
        db,
        principal,
        workflow_id=req.workflowId,
        data=req.data,
        priority=req.priority,
        loan=loan,
    )
    await db.commit()
    return ok(case_view(case), message="Case created successfully")


@router.get("")
async def list_cases(
    status_filter: Optional[CaseStatus] = Query(default=None, alias="status"),
    assigned_to: Optional[str] = Query(default=None, alias="assignedTo"),
    priority: Optional[CasePriority] = Query(default=None),
    workflow_id: Optional[str] = Query(default=None, alias="workflowId"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: Literal["created_at", "updated_at", "priority", "status"] = Query(default="created_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    cases, total = await CaseService.list_cases(
        db,
        principal,
        status=status_filter.value if status_filter else None,
        assigned_to=assigned_to,
        priority=priority.value if priority else None,
        workflow_id=workflow_id,
        sort_by=sort_by,
        descending=sort_order == "desc",
        page=page,
        limit=limit,
    )
    return ok([case_view(c) for c in cases], pagination=paginate(page, limit, total))


@router.get("/{case_id}")
async def get_case(
    case_id: str,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    case, history = await CaseService.get_case(db, principal, case_id)

    loan = (
        await db.execute(select(LoanCase).where(LoanCase.case_id == case.id, LoanCase.tenant_id == case.tenant_id))
    ).scalar_one_or_none()
    documents = (
        await db.execute(
            select(Document)
            .where(Document.case_id == case.id, Document.tenant_id == case.tenant_id)
            .order_by(Document.created_at.desc())
        )
    ).scalars().all()

    actions: list[dict[str, Any]] = []
    record = await WorkflowService.find(db, principal.tenant_id, case.workflow_id)
    if record is not None:
        actions = available_actions(parse_definition(record.config), case.current_stage, principal.role)

    view = case_view(case)
    view["loan"] = _loan_view(loan) if loan else None
    view["history"] = [history_view(h) for h in history]
    view["documents"] = [
        {
            "id": d.id,
            "fileName": d.file_name,
            "fileType": d.file_type,
            "fileSize": d.file_size,
            "documentType": d.document_type,
            "uploadedBy": d.uploaded_by,
            "createdAt": _iso(d.created_at),
        }
        for d in documents
    ]
    view["availableActions"] = actions
    return ok(view)


@router.get("/{case_id}/history")
async def get_case_history(
    case_id: str,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    _, history = await CaseService.get_case(db, principal, case_id)
    return ok([history_view(h) for h in history])


@router.post("/{case_id}/action")
async def perform_action(
    case_id: str,
    req: CaseActionRequest,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    result = await CaseService.perform_action(
        db,
        principal,
        case_id,
        action=req.action,
        comment=req.comment,
        data=req.data,
    )
    await db.commit()
    return ok(
        {
            "caseId": result.case.id,
            "newStage": result.outcome.to_stage,
            "newStatus": result.outcome.status,
            "slaDeadline": _iso(result.outcome.sla_deadline),
            "version": result.case.version,
            "triggeredRules": [rule.id for rule in result.triggered_rules],
        },
        message="Action performed successfully",
    )


@router.post("/{case_id}/assign")
async def assign_case(
    case_id: str,
    req: AssignRequest,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    case, assignee = await CaseService.assign(db, principal, case_id, req.assignedTo)
    await db.commit()
    return ok(
        {
            "caseId": case.id,
            "version": case.version,
            "assignedTo": {"id": assignee.id, "name": assignee.name, "role": assignee.role},
        },
        message=f"Case assigned to {assignee.name}",
    )
