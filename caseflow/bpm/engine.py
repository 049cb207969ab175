"""
Workflow transition engine.

Pure functions over a parsed :class:`WorkflowDefinition`: which stage a new
case starts in, which transition an action selects, and the status and SLA
deadline that follow. No I/O; the clock is passed in. Persisting the
outcome is the case service's job.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from caseflow.bpm.conditions import ConditionError, evaluate_condition
from caseflow.bpm.models import AutoRule, AutoRuleTrigger, WorkflowDefinition, WorkflowTransition
from caseflow.core.errors import InvalidTransition, InvalidWorkflow

_WHITESPACE_RE = re.compile(r"\s+")

# stage ids that carry their own status; every other stage is in_progress
_STAGE_STATUS = {
    "completed": "completed",
    "rejected": "rejected",
    "draft": "draft",
}
TERMINAL_STATUSES = frozenset({"completed", "rejected"})
INITIAL_STATUS = "draft"


@dataclass(frozen=True)
class TransitionOutcome:
    transition: WorkflowTransition
    from_stage: str
    to_stage: str
    status: str
    sla_deadline: Optional[datetime]


@dataclass(frozen=True)
class SeedState:
    stage: str
    status: str
    sla_deadline: datetime


def parse_definition(config: Any) -> WorkflowDefinition:
    """Parse a stored or submitted workflow config, raising ``InvalidWorkflow``."""
    if isinstance(config, WorkflowDefinition):
        return config
    if not isinstance(config, Mapping):
        raise InvalidWorkflow("Workflow configuration must be a JSON object")
    try:
        return WorkflowDefinition.model_validate(dict(config))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = first.get("msg", "invalid value")
        raise InvalidWorkflow(f"Invalid workflow configuration: {location + ': ' if location else ''}{detail}")


def normalize_action(label: str) -> str:
    """``"Submit  Application"`` → ``"submit_application"``."""
    return _WHITESPACE_RE.sub("_", label.lower())


def derive_status(to_stage: str) -> str:
    return _STAGE_STATUS.get(to_stage, "in_progress")


def sla_deadline_for(definition: WorkflowDefinition, stage_id: str, now: datetime) -> Optional[datetime]:
    """``now + slaHours`` of the stage; no deadline when the stage has none (or 0)."""
    stage = definition.stage(stage_id)
    if stage is None or not stage.sla_hours:
        return None
    return now + timedelta(hours=stage.sla_hours)


def seed_state(definition: WorkflowDefinition, now: datetime, default_sla_hours: float) -> SeedState:
    first = definition.stages[0]
    hours = first.sla_hours or default_sla_hours
    return SeedState(
        stage=first.id,
        status=INITIAL_STATUS,
        sla_deadline=now + timedelta(hours=hours),
    )


def _condition_holds(transition: WorkflowTransition, context: Mapping[str, Any] | None) -> bool:
    try:
        return evaluate_condition(transition.condition, context)
    except ConditionError as exc:
        raise InvalidWorkflow(f"Transition '{transition.id}' has an invalid condition: {exc}")


def resolve_transition(
    definition: WorkflowDefinition,
    current_stage: str,
    action: str,
    role: str,
    *,
    now: datetime,
    context: Mapping[str, Any] | None = None,
    evaluate_conditions: bool = False,
) -> TransitionOutcome:
    """Select the first transition matching (stage, action, role), in stored order.

    Transition conditions are carried through unevaluated unless
    ``evaluate_conditions`` is set, in which case a transition whose condition
    is false against ``context`` does not match.
    """
    for transition in definition.transitions:
        if transition.from_stage != current_stage:
            continue
        if normalize_action(transition.label) != action:
            continue
        if role not in transition.roles:
            continue
        if evaluate_conditions and not _condition_holds(transition, context):
            continue
        return TransitionOutcome(
            transition=transition,
            from_stage=current_stage,
            to_stage=transition.to_stage,
            status=derive_status(transition.to_stage),
            sla_deadline=sla_deadline_for(definition, transition.to_stage, now),
        )
    raise InvalidTransition(action=action, current_stage=current_stage, role=role)


def available_actions(definition: WorkflowDefinition, current_stage: str, role: str) -> list[dict[str, Any]]:
    """Actions a role can request from a stage, first match per action only."""
    actions: list[dict[str, Any]] = []
    seen: set[str] = set()
    for transition in definition.transitions:
        if transition.from_stage != current_stage or role not in transition.roles:
            continue
        action = normalize_action(transition.label)
        if action in seen:
            continue
        seen.add(action)
        actions.append({"action": action, "label": transition.label, "to": transition.to_stage})
    return actions


def auto_rules_for(
    definition: WorkflowDefinition, stage: str, trigger: AutoRuleTrigger
) -> list[AutoRule]:
    return [rule for rule in definition.auto_rules if rule.stage == stage and rule.trigger == trigger]
