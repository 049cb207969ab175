"""SQLAlchemy implementation of CaseRepository."""
from __future__ import annotations

from sqlalchemy import case as sql_case
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.core.errors import ConcurrentModification
from caseflow.core.observability import metrics_registry
from caseflow.modules.case.domain.aggregates.case import Case, CaseHistoryEntry
from caseflow.modules.case.domain.repositories.case_repository import CaseRepository
from caseflow.modules.case.infrastructure.mappers.case_mapper import CaseMapper
from caseflow.models.base_models import Case as CaseORM
from caseflow.models.base_models import CaseHistory as CaseHistoryORM

_PRIORITY_RANK = sql_case(
    (CaseORM.priority == "low", 0),
    (CaseORM.priority == "medium", 1),
    (CaseORM.priority == "high", 2),
    (CaseORM.priority == "urgent", 3),
    else_=1,
)

SORTABLE_COLUMNS = {
    "created_at": CaseORM.created_at,
    "updated_at": CaseORM.updated_at,
    "priority": _PRIORITY_RANK,
    "status": CaseORM.status,
}


class SQLAlchemyCaseRepository(CaseRepository):
    """Concrete Repository backed by SQLAlchemy async."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._mapper = CaseMapper()

    async def find_by_id(self, tenant_id: str, case_id: str) -> Case | None:
        result = await self._session.execute(
            select(CaseORM).where(CaseORM.id == case_id, CaseORM.tenant_id == tenant_id)
        )
        orm = result.scalar_one_or_none()
        return self._mapper.to_domain(orm) if orm else None

    async def find_by_tenant(
        self,
        tenant_id: str,
        *,
        status: str | None = None,
        assigned_to: str | None = None,
        priority: str | None = None,
        workflow_id: str | None = None,
        visible_to: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Case], int]:
        criteria = [CaseORM.tenant_id == tenant_id]
        if status:
            criteria.append(CaseORM.status == status)
        if assigned_to:
            criteria.append(CaseORM.assigned_to == assigned_to)
        if priority:
            criteria.append(CaseORM.priority == priority)
        if workflow_id:
            criteria.append(CaseORM.workflow_id == workflow_id)
        if visible_to:
            criteria.append(or_(CaseORM.created_by == visible_to, CaseORM.assigned_to == visible_to))

        order_column = SORTABLE_COLUMNS.get(sort_by, CaseORM.created_at)
        ordering = order_column.desc() if descending else order_column.asc()
        stmt = (
            select(CaseORM)
            .where(*criteria)
            .order_by(ordering, CaseORM.id)
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(CaseORM).where(*criteria)

        result = await self._session.execute(stmt)
        items = [self._mapper.to_domain(orm) for orm in result.scalars()]
        total = (await self._session.execute(count_stmt)).scalar() or 0
        return items, total

    async def history(self, tenant_id: str, case_id: str) -> list[CaseHistoryEntry]:
        result = await self._session.execute(
            select(CaseHistoryORM)
            .where(CaseHistoryORM.case_id == case_id, CaseHistoryORM.tenant_id == tenant_id)
            .order_by(CaseHistoryORM.sequence.asc(), CaseHistoryORM.timestamp.asc())
        )
        return [self._mapper.history_to_domain(orm) for orm in result.scalars()]

    async def save(self, case: Case) -> None:
        if case.is_new:
            self._session.add(self._mapper.to_new_orm(case))
            await self._session.flush()
        else:
            result = await self._session.execute(
                update(CaseORM)
                .where(
                    CaseORM.id == case.id,
                    CaseORM.tenant_id == case.tenant_id,
                    CaseORM.version == case.persisted_version,
                )
                .values(**self._mapper.to_values(case))
            )
            if result.rowcount == 0:
                metrics_registry.inc("caseflow_case_version_conflicts_total")
                raise ConcurrentModification("Case", case.id, case.persisted_version)

        for entry in case.collect_history():
            self._session.add(self._mapper.history_to_orm(entry, case))
        case.persisted_version = case.version
