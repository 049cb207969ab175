"""Domain Events - immutable records of things that happened to a case."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ── Case Events ──────────────────────────────────────────

@dataclass(frozen=True)
class CaseCreated(DomainEvent):
    case_id: str = ""
    tenant_id: str = ""
    workflow_id: str = ""
    initial_stage: str = ""
    created_by: str = ""
    version: int = 1


@dataclass(frozen=True)
class CaseStageChanged(DomainEvent):
    case_id: str = ""
    tenant_id: str = ""
    workflow_id: str = ""
    action: str = ""
    transition_id: str = ""
    from_stage: str = ""
    to_stage: str = ""
    status: str = ""
    performed_by: str = ""
    version: int = 1
    transition_actions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CaseAssigned(DomainEvent):
    case_id: str = ""
    tenant_id: str = ""
    assigned_to: str = ""
    previous_assignee: str | None = None
    performed_by: str = ""
    version: int = 1
