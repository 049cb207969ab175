"""CaseService against an in-memory repository; the session only collects outbox rows."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from caseflow.bpm.engine import parse_definition
from caseflow.core.errors import CaseNotFound, ConcurrentModification, InvalidTransition
from caseflow.core.observability import metrics_registry
from caseflow.core.security import Principal
from caseflow.models.base_models import EventOutbox
from caseflow.modules.case.application import case_service as case_service_module
from caseflow.modules.case.application.case_service import CaseService
from caseflow.modules.case.domain.aggregates.case import Case, CasePriority, CaseStatus
from caseflow.modules.case.domain.repositories.case_repository import CaseRepository

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

DEFINITION = parse_definition({
    "workflowId": "micro_loan_v1",
    "stages": [
        {"id": "draft", "slaHours": 48},
        {"id": "doc_verify", "slaHours": 24},
        {"id": "underwriting", "slaHours": 48},
    ],
    "transitions": [
        {"id": "submit_application", "from": "draft", "to": "doc_verify",
         "label": "Submit Application", "roles": ["Maker"]},
        {"id": "verify_documents", "from": "doc_verify", "to": "underwriting",
         "label": "Documents Verified", "roles": ["Checker"], "condition": "docs_verified == true"},
    ],
    "autoRules": [
        {"id": "auto_score", "stage": "doc_verify", "trigger": "onEnter", "action": "call:ai/score",
         "condition": "documents_complete == true"},
        {"id": "leave_draft", "stage": "draft", "trigger": "onExit", "action": "notify"},
        {"id": "broken", "stage": "underwriting", "trigger": "onEnter", "action": "x", "condition": "a >"},
    ],
})


class InMemoryCaseRepository(CaseRepository):
    def __init__(self, *cases: Case):
        self.rows = {c.id: c.version for c in cases}
        self.cases = {c.id: c for c in cases}
        self.history_rows = []

    async def find_by_id(self, tenant_id, case_id):
        case = self.cases.get(case_id)
        if case is None or case.tenant_id != tenant_id:
            return None
        return case

    async def find_by_tenant(self, tenant_id, **kwargs):
        items = [c for c in self.cases.values() if c.tenant_id == tenant_id]
        return items, len(items)

    async def history(self, tenant_id, case_id):
        return [h for cid, h in self.history_rows if cid == case_id]

    async def save(self, case):
        if not case.is_new and self.rows.get(case.id) != case.persisted_version:
            raise ConcurrentModification("Case", case.id, case.persisted_version)
        self.rows[case.id] = case.version
        self.history_rows.extend((case.id, h) for h in case.collect_history())
        case.persisted_version = case.version


def _case(stage="draft", status=CaseStatus.DRAFT, data=None) -> Case:
    return Case(
        id="case-1",
        tenant_id="t-1",
        workflow_id="micro_loan_v1",
        current_stage=stage,
        status=status,
        priority=CasePriority.MEDIUM,
        assigned_to=None,
        created_by="maker-1",
        data=data or {},
        metadata={"slaDeadline": None},
        version=1,
        persisted_version=1,
    )


def _principal(role: str, user_id: str = "user-1", tenant_id: str = "t-1") -> Principal:
    return Principal(
        user_id=user_id, email="u@demo.com", name="U", role=role,
        tenant_id=tenant_id, tenant_domain="demo", tenant_name="Demo",
    )


def _outbox(session: MagicMock) -> list[EventOutbox]:
    return [c.args[0] for c in session.add.call_args_list if isinstance(c.args[0], EventOutbox)]


@pytest.fixture
def session():
    return MagicMock()


# ── perform_action ───────────────────────────────────────

class TestPerformAction:
    @pytest.mark.asyncio
    async def test_applies_transition_and_writes_events(self, session):
        repo = InMemoryCaseRepository(_case())
        result = await CaseService.perform_action(
            session, _principal("Maker"), "case-1",
            action="submit_application", comment="ready", now=NOW,
            repository=repo, definition=DEFINITION,
        )

        assert result.case.current_stage == "doc_verify"
        assert result.outcome.status == "in_progress"
        assert repo.rows["case-1"] == 2
        assert [h.action for _, h in repo.history_rows] == ["submit_application"]

        event_types = [e.event_type for e in _outbox(session)]
        assert event_types == ["CASE_STAGE_CHANGED", "AUTO_RULE_TRIGGERED", "AUTO_RULE_TRIGGERED"]
        assert metrics_registry.get_counter("caseflow_case_transitions_total") == 1

    @pytest.mark.asyncio
    async def test_auto_rules_recorded_not_executed(self, session):
        repo = InMemoryCaseRepository(_case())
        result = await CaseService.perform_action(
            session, _principal("Maker"), "case-1",
            action="submit_application", now=NOW, repository=repo, definition=DEFINITION,
        )
        # onExit of draft first, then onEnter of doc_verify
        assert [r.id for r in result.triggered_rules] == ["leave_draft", "auto_score"]
        payloads = [e.payload for e in _outbox(session) if e.event_type == "AUTO_RULE_TRIGGERED"]
        assert payloads[1]["rule_id"] == "auto_score"
        assert payloads[1]["params"] == {}
        assert payloads[1]["idempotency_key"] == "AUTO_RULE_TRIGGERED:case-1:2:auto_score"
        assert metrics_registry.get_counter("caseflow_auto_rules_triggered_total") == 2

    @pytest.mark.asyncio
    async def test_invalid_transition_writes_nothing(self, session):
        repo = InMemoryCaseRepository(_case())
        with pytest.raises(InvalidTransition):
            await CaseService.perform_action(
                session, _principal("Checker"), "case-1",
                action="submit_application", now=NOW, repository=repo, definition=DEFINITION,
            )
        assert repo.rows["case-1"] == 1
        assert repo.history_rows == []
        session.add.assert_not_called()
        assert metrics_registry.get_counter("caseflow_case_transitions_rejected_total") == 1

    @pytest.mark.asyncio
    async def test_case_of_other_tenant_is_not_found(self, session):
        repo = InMemoryCaseRepository(_case())
        with pytest.raises(CaseNotFound):
            await CaseService.perform_action(
                session, _principal("Maker", tenant_id="t-2"), "case-1",
                action="submit_application", now=NOW, repository=repo, definition=DEFINITION,
            )

    @pytest.mark.asyncio
    async def test_lost_update_raises_conflict(self, session):
        case = _case()
        repo = InMemoryCaseRepository(case)
        repo.rows["case-1"] = 2  # another writer got there first
        with pytest.raises(ConcurrentModification):
            await CaseService.perform_action(
                session, _principal("Maker"), "case-1",
                action="submit_application", now=NOW, repository=repo, definition=DEFINITION,
            )
        assert repo.history_rows == []
        assert _outbox(session) == []

    @pytest.mark.asyncio
    async def test_conditions_gate_transitions_when_enabled(self, session, monkeypatch):
        monkeypatch.setattr(case_service_module.settings, "EVALUATE_TRANSITION_CONDITIONS", True)
        repo = InMemoryCaseRepository(_case(stage="doc_verify", status=CaseStatus.IN_PROGRESS))
        with pytest.raises(InvalidTransition):
            await CaseService.perform_action(
                session, _principal("Checker"), "case-1",
                action="documents_verified", now=NOW, repository=repo, definition=DEFINITION,
            )

        repo.cases["case-1"].data = {"docs_verified": True}
        result = await CaseService.perform_action(
            session, _principal("Checker"), "case-1",
            action="documents_verified", now=NOW, repository=repo, definition=DEFINITION,
        )
        assert result.case.current_stage == "underwriting"
        # malformed auto-rule condition is skipped, not raised
        assert result.triggered_rules == []

    @pytest.mark.asyncio
    async def test_auto_rule_condition_filters_when_enabled(self, session, monkeypatch):
        monkeypatch.setattr(case_service_module.settings, "EVALUATE_TRANSITION_CONDITIONS", True)
        repo = InMemoryCaseRepository(_case(data={"documents_complete": True}))
        result = await CaseService.perform_action(
            session, _principal("Maker"), "case-1",
            action="submit_application", now=NOW, repository=repo, definition=DEFINITION,
        )
        assert [r.id for r in result.triggered_rules] == ["leave_draft", "auto_score"]


# ── list / get ───────────────────────────────────────────

class TestQueries:
    @pytest.mark.asyncio
    async def test_get_case_returns_history(self, session):
        repo = InMemoryCaseRepository(_case())
        await CaseService.perform_action(
            session, _principal("Maker"), "case-1",
            action="submit_application", now=NOW, repository=repo, definition=DEFINITION,
        )
        case, history = await CaseService.get_case(session, _principal("Maker"), "case-1", repository=repo)
        assert case.current_stage == "doc_verify"
        assert [h.to_stage for h in history] == ["doc_verify"]

    @pytest.mark.asyncio
    async def test_get_missing_case(self, session):
        with pytest.raises(CaseNotFound):
            await CaseService.get_case(session, _principal("Admin"), "nope", repository=InMemoryCaseRepository())
