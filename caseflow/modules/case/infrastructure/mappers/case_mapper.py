"""ORM ↔ Domain mapper for the Case Aggregate."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from caseflow.modules.case.domain.aggregates.case import Case, CaseHistoryEntry, CasePriority, CaseStatus
from caseflow.models.base_models import Case as CaseORM
from caseflow.models.base_models import CaseHistory as CaseHistoryORM


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class CaseMapper:
    """Bidirectional mapper between Case domain aggregate and SQLAlchemy ORM."""

    @staticmethod
    def to_domain(orm: CaseORM) -> Case:
        return Case(
            id=orm.id,
            tenant_id=orm.tenant_id,
            workflow_id=orm.workflow_id,
            current_stage=orm.current_stage,
            status=CaseStatus(orm.status),
            priority=CasePriority(orm.priority or CasePriority.MEDIUM.value),
            assigned_to=orm.assigned_to,
            created_by=orm.created_by,
            data=dict(orm.data or {}),
            metadata=dict(orm.case_metadata or {}),
            version=orm.version or 1,
            created_at=as_utc(orm.created_at),
            updated_at=as_utc(orm.updated_at),
            persisted_version=orm.version or 1,
        )

    @staticmethod
    def to_values(domain: Case) -> dict[str, Any]:
        """Column values for a compare-and-set UPDATE."""
        return {
            "current_stage": domain.current_stage,
            "status": domain.status.value,
            "priority": domain.priority.value,
            "assigned_to": domain.assigned_to,
            "data": domain.data,
            "case_metadata": domain.metadata,
            "version": domain.version,
            "updated_at": domain.updated_at or datetime.now(timezone.utc),
        }

    @staticmethod
    def to_new_orm(domain: Case) -> CaseORM:
        """Create a new ORM instance from domain state."""
        return CaseORM(
            id=domain.id,
            tenant_id=domain.tenant_id,
            workflow_id=domain.workflow_id,
            current_stage=domain.current_stage,
            status=domain.status.value,
            priority=domain.priority.value,
            assigned_to=domain.assigned_to,
            created_by=domain.created_by,
            data=domain.data,
            case_metadata=domain.metadata,
            version=domain.version,
            created_at=domain.created_at,
            updated_at=domain.updated_at,
        )

    @staticmethod
    def history_to_orm(entry: CaseHistoryEntry, case: Case) -> CaseHistoryORM:
        return CaseHistoryORM(
            id=str(uuid.uuid4()),
            case_id=case.id,
            tenant_id=case.tenant_id,
            action=entry.action,
            from_stage=entry.from_stage,
            to_stage=entry.to_stage,
            performed_by=entry.performed_by,
            comment=entry.comment,
            data=entry.data,
            timestamp=entry.timestamp,
            sequence=entry.sequence,
        )

    @staticmethod
    def history_to_domain(orm: CaseHistoryORM) -> CaseHistoryEntry:
        return CaseHistoryEntry(
            action=orm.action,
            from_stage=orm.from_stage,
            to_stage=orm.to_stage,
            performed_by=orm.performed_by,
            timestamp=as_utc(orm.timestamp),
            comment=orm.comment,
            data=dict(orm.data or {}),
            sequence=orm.sequence or 0,
        )
