"""Auto-rule dispatch on stage enter / exit.

Rules are recorded, not executed: each matching rule is logged and written to
the outbox as ``AUTO_RULE_TRIGGERED`` for an out-of-process worker. A rule
never fails the action that triggered it.
"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.bpm.conditions import ConditionError, evaluate_condition
from caseflow.bpm.engine import auto_rules_for
from caseflow.bpm.models import AutoRule, AutoRuleTrigger, WorkflowDefinition
from caseflow.core.events import EventPublisher
from caseflow.core.observability import metrics_registry
from caseflow.modules.case.domain.aggregates.case import Case

logger = logging.getLogger("caseflow.case.auto_rules")


def _condition_holds(rule: AutoRule, case: Case) -> bool:
    try:
        return evaluate_condition(rule.condition, case.data)
    except ConditionError as exc:
        logger.warning(f"auto rule {rule.id} skipped for case {case.id}: {exc}")
        return False


async def dispatch_auto_rules(
    session: AsyncSession,
    case: Case,
    definition: WorkflowDefinition,
    *,
    from_stage: str | None,
    to_stage: str,
    evaluate_conditions: bool = False,
) -> list[AutoRule]:
    candidates: list[AutoRule] = []
    if from_stage is not None:
        candidates.extend(auto_rules_for(definition, from_stage, AutoRuleTrigger.ON_EXIT))
    candidates.extend(auto_rules_for(definition, to_stage, AutoRuleTrigger.ON_ENTER))

    triggered: list[AutoRule] = []
    for rule in candidates:
        if evaluate_conditions and not _condition_holds(rule, case):
            continue
        if rule.action.startswith("call:"):
            logger.info(f"auto rule {rule.id} for case {case.id} requests {rule.action[len('call:'):]}")
        else:
            logger.info(f"auto rule {rule.id} for case {case.id} requests action {rule.action}")
        await EventPublisher.publish(
            session=session,
            event_type="AUTO_RULE_TRIGGERED",
            aggregate_type="case",
            aggregate_id=case.id,
            payload={
                "rule_id": rule.id,
                "stage": rule.stage,
                "trigger": rule.trigger.value,
                "action": rule.action,
                "params": rule.params,
                "condition": rule.condition,
                "version": case.version,
            },
            tenant_id=case.tenant_id,
        )
        metrics_registry.inc("caseflow_auto_rules_triggered_total")
        triggered.append(rule)
    return triggered
