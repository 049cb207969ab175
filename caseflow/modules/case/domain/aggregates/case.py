"""Case Aggregate Root - a loan-origination case moving through workflow stages.

Invariants:
1. current_stage only changes through a resolved TransitionOutcome, so it is
   always a stage of the bound workflow
2. every accepted action appends exactly one history entry with the
   pre-transition stage as from_stage and the new stage as to_stage
3. version increments on every change (optimistic locking); the repository
   writes only if the stored version still equals ``persisted_version``
4. Domain events and history entries are collected and drained by the
   application layer inside the same transaction
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from caseflow.bpm.engine import SeedState, TERMINAL_STATUSES, TransitionOutcome
from caseflow.modules.case.domain.events import (
    CaseAssigned,
    CaseCreated,
    CaseStageChanged,
    DomainEvent,
)


class CaseStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"


class CasePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class CaseHistoryEntry:
    """Append-only log row; never updated or deleted."""
    action: str
    from_stage: str | None
    to_stage: str | None
    performed_by: str
    timestamp: datetime
    comment: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    # case version the entry was written at; orders entries sharing a timestamp
    sequence: int = 0


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Case:
    """Case Aggregate Root."""

    id: str
    tenant_id: str
    workflow_id: str
    current_stage: str
    status: CaseStatus
    priority: CasePriority
    assigned_to: str | None
    created_by: str
    data: dict[str, Any]
    metadata: dict[str, Any]
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # version last read from storage; None until first insert
    persisted_version: int | None = None

    _events: list[DomainEvent] = field(default_factory=list, repr=False)
    _history: list[CaseHistoryEntry] = field(default_factory=list, repr=False)

    # ── Factory ──────────────────────────────────────────

    @classmethod
    def create(
        cls,
        *,
        id: str,
        tenant_id: str,
        workflow_id: str,
        seed: SeedState,
        created_by: str,
        now: datetime,
        data: dict[str, Any] | None = None,
        priority: CasePriority = CasePriority.MEDIUM,
        assigned_to: str | None = None,
        source: str = "manual",
    ) -> Case:
        case = cls(
            id=id,
            tenant_id=tenant_id,
            workflow_id=workflow_id,
            current_stage=seed.stage,
            status=CaseStatus(seed.status),
            priority=priority,
            assigned_to=assigned_to,
            created_by=created_by,
            data=dict(data or {}),
            metadata={
                "slaDeadline": _iso(seed.sla_deadline),
                "escalationLevel": 0,
                "tags": [],
                "source": source,
            },
            version=1,
            created_at=now,
            updated_at=now,
        )
        case._append_history(CaseHistoryEntry(
            action="created",
            from_stage=None,
            to_stage=seed.stage,
            performed_by=created_by,
            timestamp=now,
            comment="Case created",
            data={"workflowId": workflow_id, "initialStage": seed.stage},
        ))
        case._record(CaseCreated(
            case_id=id,
            tenant_id=tenant_id,
            workflow_id=workflow_id,
            initial_stage=seed.stage,
            created_by=created_by,
            version=case.version,
        ))
        return case

    # ── Commands ─────────────────────────────────────────

    def apply_transition(
        self,
        outcome: TransitionOutcome,
        *,
        action: str,
        performed_by: str,
        now: datetime,
        comment: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Move to the resolved stage, fold ``data`` into the case data and record history."""
        if outcome.from_stage != self.current_stage:
            raise ValueError(
                f"outcome resolved from '{outcome.from_stage}' but case is at '{self.current_stage}'"
            )
        from_stage = self.current_stage
        self.current_stage = outcome.to_stage
        self.status = CaseStatus(outcome.status)
        if data:
            self.data = {**self.data, **data}
        self.metadata = {
            **self.metadata,
            "slaDeadline": _iso(outcome.sla_deadline),
            "lastAction": action,
            "lastActionBy": performed_by,
        }
        self._touch(now)
        self._append_history(CaseHistoryEntry(
            action=action,
            from_stage=from_stage,
            to_stage=outcome.to_stage,
            performed_by=performed_by,
            timestamp=now,
            comment=comment,
            data=dict(data or {}),
        ))
        self._record(CaseStageChanged(
            case_id=self.id,
            tenant_id=self.tenant_id,
            workflow_id=self.workflow_id,
            action=action,
            transition_id=outcome.transition.id,
            from_stage=from_stage,
            to_stage=outcome.to_stage,
            status=self.status.value,
            performed_by=performed_by,
            version=self.version,
            transition_actions=list(outcome.transition.actions),
        ))

    def assign(
        self,
        assignee_id: str,
        *,
        performed_by: str,
        now: datetime,
        assignee_name: str = "",
    ) -> None:
        previous = self.assigned_to
        self.assigned_to = assignee_id
        self._touch(now)
        self._append_history(CaseHistoryEntry(
            action="assigned",
            from_stage=None,
            to_stage=None,
            performed_by=performed_by,
            timestamp=now,
            comment=f"Case assigned to {assignee_name or assignee_id}",
            data={
                "assignedTo": assignee_id,
                "assignedUserName": assignee_name,
                "previousAssignee": previous,
            },
        ))
        self._record(CaseAssigned(
            case_id=self.id,
            tenant_id=self.tenant_id,
            assigned_to=assignee_id,
            previous_assignee=previous,
            performed_by=performed_by,
            version=self.version,
        ))

    # ── Queries ──────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return self.status.value in TERMINAL_STATUSES

    @property
    def is_new(self) -> bool:
        return self.persisted_version is None

    @property
    def sla_deadline(self) -> str | None:
        return self.metadata.get("slaDeadline")

    def is_visible_to(self, user_id: str) -> bool:
        return user_id in (self.created_by, self.assigned_to)

    # ── Event / history collection ───────────────────────

    def collect_events(self) -> list[DomainEvent]:
        """Drain and return all pending domain events."""
        events = list(self._events)
        self._events.clear()
        return events

    def collect_history(self) -> list[CaseHistoryEntry]:
        """Drain and return history entries not yet persisted."""
        entries = list(self._history)
        self._history.clear()
        return entries

    # ── Internal ─────────────────────────────────────────

    def _touch(self, now: datetime) -> None:
        self.version += 1
        self.updated_at = now

    def _append_history(self, entry: CaseHistoryEntry) -> None:
        self._history.append(replace(entry, sequence=self.version))

    def _record(self, event: DomainEvent) -> None:
        self._events.append(event)
