"""Case Application Service - seeding, stage transitions and assignment.

Every command stages its writes (case row, history rows, outbox events) on
the caller's session; the route commits once, so a case update and its
history entry land together or not at all.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.bpm.engine import TransitionOutcome, resolve_transition, seed_state
from caseflow.bpm.models import AutoRule, WorkflowDefinition
from caseflow.core.config import settings
from caseflow.core.errors import CaseNotFound, InvalidTransition, ValidationError
from caseflow.core.events import EventPublisher
from caseflow.core.observability import metrics_registry
from caseflow.core.security import Principal
from caseflow.models.base_models import LoanCase, User
from caseflow.modules.case.application.auto_rules import dispatch_auto_rules
from caseflow.modules.case.domain.aggregates.case import Case, CaseHistoryEntry, CasePriority
from caseflow.modules.case.domain.repositories.case_repository import CaseRepository
from caseflow.modules.case.infrastructure.repositories.sqlalchemy_case_repo import SQLAlchemyCaseRepository
from caseflow.modules.workflow.application.workflow_service import WorkflowService

logger = logging.getLogger("caseflow.case")

_EVENT_TYPE_MAP = {
    "CaseCreated": "CASE_CREATED",
    "CaseStageChanged": "CASE_STAGE_CHANGED",
    "CaseAssigned": "CASE_ASSIGNED",
}


@dataclass(frozen=True)
class LoanRequest:
    borrower_id: str
    product_id: str
    requested_amount: float
    tenor: int


@dataclass
class ActionResult:
    case: Case
    outcome: TransitionOutcome
    triggered_rules: list[AutoRule] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _publish_domain_events(session: AsyncSession, case: Case) -> None:
    """Drain domain events from the aggregate into the outbox."""
    for event in case.collect_events():
        outbox_type = _EVENT_TYPE_MAP.get(type(event).__name__, type(event).__name__)
        payload = {k: v for k, v in event.__dict__.items() if k != "occurred_at"}
        payload["occurred_at"] = event.occurred_at.isoformat()
        await EventPublisher.publish(
            session=session,
            event_type=outbox_type,
            aggregate_type="case",
            aggregate_id=case.id,
            payload=payload,
            tenant_id=case.tenant_id,
        )


class CaseService:
    """Application service for the Case aggregate."""

    @staticmethod
    def _repository(db: AsyncSession, repository: CaseRepository | None) -> CaseRepository:
        return repository if repository is not None else SQLAlchemyCaseRepository(db)

    @staticmethod
    async def create_case(
        db: AsyncSession,
        principal: Principal,
        *,
        workflow_id: str,
        data: dict[str, Any] | None = None,
        priority: CasePriority = CasePriority.MEDIUM,
        loan: LoanRequest | None = None,
        now: datetime | None = None,
        repository: CaseRepository | None = None,
    ) -> Case:
        """Seed a case at the first stage of an active workflow."""
        now = now or _utcnow()
        definition = await WorkflowService.load_definition(
            db, principal.tenant_id, workflow_id, require_active=True
        )
        case = Case.create(
            id=str(uuid.uuid4()),
            tenant_id=principal.tenant_id,
            workflow_id=workflow_id,
            seed=seed_state(definition, now, settings.DEFAULT_SLA_HOURS),
            created_by=principal.user_id,
            now=now,
            data=data,
            priority=priority,
        )
        repo = CaseService._repository(db, repository)
        await repo.save(case)
        if loan is not None:
            db.add(LoanCase(
                loan_id=str(uuid.uuid4()),
                case_id=case.id,
                tenant_id=principal.tenant_id,
                borrower_id=loan.borrower_id,
                product_id=loan.product_id,
                requested_amount=loan.requested_amount,
                tenor=loan.tenor,
            ))
        await _publish_domain_events(db, case)
        metrics_registry.inc("caseflow_cases_created_total")
        logger.info(f"case created case_id={case.id} workflow_id={workflow_id} stage={case.current_stage}")
        return case

    @staticmethod
    async def perform_action(
        db: AsyncSession,
        principal: Principal,
        case_id: str,
        *,
        action: str,
        comment: str | None = None,
        data: dict[str, Any] | None = None,
        now: datetime | None = None,
        repository: CaseRepository | None = None,
        definition: WorkflowDefinition | None = None,
    ) -> ActionResult:
        """Resolve ``action`` against the case's workflow and apply it.

        Nothing is written when no transition matches. A concurrent writer
        that got there first surfaces as ``ConcurrentModification``.
        """
        now = now or _utcnow()
        repo = CaseService._repository(db, repository)
        case = await repo.find_by_id(principal.tenant_id, case_id)
        if case is None:
            raise CaseNotFound(case_id)
        if definition is None:
            definition = await WorkflowService.load_definition(
                db, principal.tenant_id, case.workflow_id, require_active=False
            )

        try:
            outcome = resolve_transition(
                definition,
                case.current_stage,
                action,
                principal.role,
                now=now,
                context={**case.data, **(data or {})},
                evaluate_conditions=settings.EVALUATE_TRANSITION_CONDITIONS,
            )
        except InvalidTransition:
            metrics_registry.inc("caseflow_case_transitions_rejected_total")
            logger.info(
                f"action rejected case_id={case_id} action={action} "
                f"stage={case.current_stage} role={principal.role}"
            )
            raise

        case.apply_transition(
            outcome,
            action=action,
            performed_by=principal.user_id,
            now=now,
            comment=comment,
            data=data,
        )
        await repo.save(case)
        await _publish_domain_events(db, case)
        triggered = await dispatch_auto_rules(
            db,
            case,
            definition,
            from_stage=outcome.from_stage,
            to_stage=outcome.to_stage,
            evaluate_conditions=settings.EVALUATE_TRANSITION_CONDITIONS,
        )
        metrics_registry.inc("caseflow_case_transitions_total")
        logger.info(
            f"case action performed case_id={case_id} action={action} "
            f"from={outcome.from_stage} to={outcome.to_stage} by={principal.user_id}"
        )
        return ActionResult(case=case, outcome=outcome, triggered_rules=triggered)

    @staticmethod
    async def assign(
        db: AsyncSession,
        principal: Principal,
        case_id: str,
        assignee_id: str,
        *,
        now: datetime | None = None,
        repository: CaseRepository | None = None,
    ) -> tuple[Case, User]:
        now = now or _utcnow()
        result = await db.execute(
            select(User).where(
                User.id == assignee_id,
                User.tenant_id == principal.tenant_id,
                User.is_active.is_(True),
            )
        )
        assignee = result.scalar_one_or_none()
        if assignee is None:
            raise ValidationError("Invalid user for assignment")

        repo = CaseService._repository(db, repository)
        case = await repo.find_by_id(principal.tenant_id, case_id)
        if case is None:
            raise CaseNotFound(case_id)

        case.assign(assignee.id, performed_by=principal.user_id, now=now, assignee_name=assignee.name)
        await repo.save(case)
        await _publish_domain_events(db, case)
        logger.info(f"case assigned case_id={case_id} assigned_to={assignee.id} by={principal.user_id}")
        return case, assignee

    @staticmethod
    async def get_case(
        db: AsyncSession,
        principal: Principal,
        case_id: str,
        *,
        repository: CaseRepository | None = None,
    ) -> tuple[Case, list[CaseHistoryEntry]]:
        repo = CaseService._repository(db, repository)
        case = await repo.find_by_id(principal.tenant_id, case_id)
        if case is None:
            raise CaseNotFound(case_id)
        return case, await repo.history(principal.tenant_id, case_id)

    @staticmethod
    async def list_cases(
        db: AsyncSession,
        principal: Principal,
        *,
        status: str | None = None,
        assigned_to: str | None = None,
        priority: str | None = None,
        workflow_id: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        page: int = 1,
        limit: int = 20,
        repository: CaseRepository | None = None,
    ) -> tuple[list[Case], int]:
        """Admin and Auditor see every case; other roles their own or assigned."""
        repo = CaseService._repository(db, repository)
        return await repo.find_by_tenant(
            principal.tenant_id,
            status=status,
            assigned_to=assigned_to,
            priority=priority,
            workflow_id=workflow_id,
            visible_to=None if principal.sees_all_cases else principal.user_id,
            sort_by=sort_by,
            descending=descending,
            limit=limit,
            offset=(page - 1) * limit,
        )
