"""Case Repository interface - defined in domain layer, implemented in infrastructure."""
from __future__ import annotations

from abc import ABC, abstractmethod

from caseflow.modules.case.domain.aggregates.case import Case, CaseHistoryEntry


class CaseRepository(ABC):
    """Persistence abstraction for the Case Aggregate Root.

    Every lookup is tenant-scoped: a case id from another tenant behaves as
    if it did not exist.
    """

    @abstractmethod
    async def find_by_id(self, tenant_id: str, case_id: str) -> Case | None:
        """Load a single Case by its ID."""
        ...

    @abstractmethod
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
        """Tenant-scoped case listing with filters. Returns (cases, total_count).

        ``visible_to`` restricts the result to cases created by or assigned
        to that user.
        """
        ...

    @abstractmethod
    async def history(self, tenant_id: str, case_id: str) -> list[CaseHistoryEntry]:
        """History entries of a case, oldest first."""
        ...

    @abstractmethod
    async def save(self, case: Case) -> None:
        """Insert a new Case or compare-and-set update an existing one.

        Pending history entries are appended in the same unit of work.
        Raises ``ConcurrentModification`` when the stored version moved.
        """
        ...
