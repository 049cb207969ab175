"""Workflow configuration application service - per-tenant CRUD over workflow_configs."""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.bpm.engine import TERMINAL_STATUSES, parse_definition
from caseflow.bpm.models import WorkflowDefinition
from caseflow.core.errors import AlreadyExists, InvalidWorkflow, ValidationError, WorkflowNotFound
from caseflow.models.base_models import Case as CaseORM
from caseflow.models.base_models import WorkflowConfigRecord

logger = logging.getLogger("caseflow.workflow")


def _bind_definition(workflow_id: str, config: Any) -> WorkflowDefinition:
    """Validate a submitted config; its workflowId must agree with the row's."""
    definition = parse_definition(config)
    if definition.workflow_id and definition.workflow_id != workflow_id:
        raise ValidationError(
            f"config.workflowId '{definition.workflow_id}' does not match workflowId '{workflow_id}'"
        )
    if not definition.workflow_id:
        definition = definition.model_copy(update={"workflow_id": workflow_id})
    return definition


class WorkflowService:
    """Application service for workflow configurations."""

    @staticmethod
    async def find(db: AsyncSession, tenant_id: str, workflow_id: str) -> WorkflowConfigRecord | None:
        result = await db.execute(
            select(WorkflowConfigRecord).where(
                WorkflowConfigRecord.tenant_id == tenant_id,
                WorkflowConfigRecord.workflow_id == workflow_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get(db: AsyncSession, tenant_id: str, workflow_id: str) -> WorkflowConfigRecord:
        record = await WorkflowService.find(db, tenant_id, workflow_id)
        if record is None:
            raise WorkflowNotFound(workflow_id)
        return record

    @staticmethod
    async def load_definition(
        db: AsyncSession,
        tenant_id: str,
        workflow_id: str,
        *,
        require_active: bool,
    ) -> WorkflowDefinition:
        """Bound definition for seeding (active only) or transitioning a case."""
        record = await WorkflowService.find(db, tenant_id, workflow_id)
        if record is None:
            raise InvalidWorkflow(f"Workflow '{workflow_id}' not found")
        if require_active and not record.is_active:
            raise InvalidWorkflow(f"Workflow '{workflow_id}' is not active")
        return parse_definition(record.config)

    @staticmethod
    async def case_count(db: AsyncSession, tenant_id: str, workflow_id: str, *, open_only: bool = False) -> int:
        stmt = select(func.count()).select_from(CaseORM).where(
            CaseORM.tenant_id == tenant_id,
            CaseORM.workflow_id == workflow_id,
        )
        if open_only:
            stmt = stmt.where(CaseORM.status.not_in(TERMINAL_STATUSES))
        return (await db.execute(stmt)).scalar() or 0

    @staticmethod
    async def stages_in_use(db: AsyncSession, tenant_id: str, workflow_id: str) -> set[str]:
        result = await db.execute(
            select(CaseORM.current_stage).distinct().where(
                CaseORM.tenant_id == tenant_id,
                CaseORM.workflow_id == workflow_id,
            )
        )
        return set(result.scalars())

    @staticmethod
    async def list_for_tenant(
        db: AsyncSession,
        tenant_id: str,
        *,
        active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WorkflowConfigRecord], int]:
        criteria = [WorkflowConfigRecord.tenant_id == tenant_id]
        if active is not None:
            criteria.append(WorkflowConfigRecord.is_active == active)
        result = await db.execute(
            select(WorkflowConfigRecord)
            .where(*criteria)
            .order_by(WorkflowConfigRecord.created_at.desc(), WorkflowConfigRecord.id)
            .limit(limit)
            .offset(offset)
        )
        total = (
            await db.execute(select(func.count()).select_from(WorkflowConfigRecord).where(*criteria))
        ).scalar() or 0
        return list(result.scalars()), total

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        tenant_id: str,
        workflow_id: str,
        name: str,
        config: Any,
        created_by: str,
        description: str | None = None,
    ) -> WorkflowConfigRecord:
        definition = _bind_definition(workflow_id, config)
        if await WorkflowService.find(db, tenant_id, workflow_id) is not None:
            raise AlreadyExists(f"Workflow '{workflow_id}' already exists")

        record = WorkflowConfigRecord(
            id=str(uuid.uuid4()),
            workflow_id=workflow_id,
            tenant_id=tenant_id,
            version=definition.version,
            name=name,
            description=description,
            config=definition.to_config(),
            is_active=True,
            created_by=created_by,
        )
        db.add(record)
        await db.flush()
        logger.info(f"workflow created workflow_id={workflow_id} stages={len(definition.stages)}")
        return record

    @staticmethod
    async def update(
        db: AsyncSession,
        *,
        tenant_id: str,
        workflow_id: str,
        name: str | None = None,
        description: str | None = None,
        config: Any = None,
        is_active: bool | None = None,
    ) -> WorkflowConfigRecord:
        record = await WorkflowService.get(db, tenant_id, workflow_id)
        if config is not None:
            definition = _bind_definition(workflow_id, config)
            # cases already bound to this workflow must keep a valid current stage
            orphaned = sorted(
                stage
                for stage in await WorkflowService.stages_in_use(db, tenant_id, workflow_id)
                if not definition.has_stage(stage)
            )
            if orphaned:
                raise ValidationError(
                    f"Cannot remove stage(s) {', '.join(orphaned)} from workflow '{workflow_id}': cases are still on them"
                )
            record.config = definition.to_config()
            record.version = definition.version
        if name is not None:
            record.name = name
        if description is not None:
            record.description = description
        if is_active is not None:
            record.is_active = is_active
        await db.flush()
        logger.info(f"workflow updated workflow_id={workflow_id} version={record.version} active={record.is_active}")
        return record

    @staticmethod
    async def delete(db: AsyncSession, *, tenant_id: str, workflow_id: str) -> None:
        record = await WorkflowService.get(db, tenant_id, workflow_id)
        open_cases = await WorkflowService.case_count(db, tenant_id, workflow_id, open_only=True)
        if open_cases:
            raise ValidationError(
                f"Cannot delete workflow '{workflow_id}' with {open_cases} active case(s)"
            )
        await db.delete(record)
        await db.flush()
        logger.info(f"workflow deleted workflow_id={workflow_id}")
