"""Unit tests for the Case Aggregate Root.

Pure domain logic: no database, no I/O.
"""
from datetime import datetime, timedelta, timezone

import pytest

from caseflow.bpm.engine import parse_definition, resolve_transition, seed_state
from caseflow.modules.case.domain.aggregates.case import Case, CasePriority, CaseStatus
from caseflow.modules.case.domain.events import CaseAssigned, CaseCreated, CaseStageChanged

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

DEFINITION = parse_definition({
    "workflowId": "micro_loan_v1",
    "stages": [
        {"id": "draft", "slaHours": 48},
        {"id": "doc_verify", "slaHours": 24},
        {"id": "completed", "slaHours": 0},
    ],
    "transitions": [
        {"id": "submit_application", "from": "draft", "to": "doc_verify",
         "label": "Submit Application", "roles": ["Maker"], "actions": ["validate_basic_info"]},
        {"id": "finish", "from": "doc_verify", "to": "completed", "label": "Finish", "roles": ["Checker"]},
    ],
})


def _make(*, stage: str = "draft", status: CaseStatus = CaseStatus.DRAFT, version: int = 1) -> Case:
    """A persisted case in a given state (bypassing factory events)."""
    return Case(
        id="case-1",
        tenant_id="t-1",
        workflow_id="micro_loan_v1",
        current_stage=stage,
        status=status,
        priority=CasePriority.MEDIUM,
        assigned_to=None,
        created_by="maker-1",
        data={"amount": 50000},
        metadata={"slaDeadline": None, "escalationLevel": 0, "tags": [], "source": "manual"},
        version=version,
        persisted_version=version,
    )


def _create() -> Case:
    return Case.create(
        id="case-1",
        tenant_id="t-1",
        workflow_id="micro_loan_v1",
        seed=seed_state(DEFINITION, NOW, default_sla_hours=48),
        created_by="maker-1",
        now=NOW,
        data={"amount": 50000},
    )


# ── Factory ──────────────────────────────────────────────

class TestFactory:
    def test_create_seeds_first_stage(self):
        case = _create()
        assert case.current_stage == "draft"
        assert case.status == CaseStatus.DRAFT
        assert case.priority == CasePriority.MEDIUM
        assert case.version == 1
        assert case.is_new

    def test_create_sets_metadata(self):
        case = _create()
        assert case.metadata == {
            "slaDeadline": (NOW + timedelta(hours=48)).isoformat(),
            "escalationLevel": 0,
            "tags": [],
            "source": "manual",
        }
        assert case.sla_deadline == (NOW + timedelta(hours=48)).isoformat()

    def test_create_records_history_and_event(self):
        case = _create()
        history = case.collect_history()
        assert len(history) == 1
        assert history[0].action == "created"
        assert history[0].from_stage is None
        assert history[0].to_stage == "draft"
        assert history[0].data == {"workflowId": "micro_loan_v1", "initialStage": "draft"}
        assert history[0].sequence == 1

        events = case.collect_events()
        assert len(events) == 1
        assert isinstance(events[0], CaseCreated)
        assert events[0].initial_stage == "draft"

    def test_collect_drains(self):
        case = _create()
        case.collect_events()
        case.collect_history()
        assert case.collect_events() == []
        assert case.collect_history() == []


# ── Transitions ──────────────────────────────────────────

class TestApplyTransition:
    def test_moves_stage_and_bumps_version(self):
        case = _make()
        outcome = resolve_transition(DEFINITION, "draft", "submit_application", "Maker", now=NOW)
        case.apply_transition(outcome, action="submit_application", performed_by="maker-1", now=NOW)

        assert case.current_stage == "doc_verify"
        assert case.status == CaseStatus.IN_PROGRESS
        assert case.version == 2
        assert case.persisted_version == 1
        assert case.updated_at == NOW
        assert case.metadata["slaDeadline"] == (NOW + timedelta(hours=24)).isoformat()
        assert case.metadata["lastAction"] == "submit_application"
        assert case.metadata["lastActionBy"] == "maker-1"
        assert case.metadata["source"] == "manual"

    def test_appends_one_history_entry(self):
        case = _make()
        outcome = resolve_transition(DEFINITION, "draft", "submit_application", "Maker", now=NOW)
        case.apply_transition(
            outcome, action="submit_application", performed_by="maker-1", now=NOW,
            comment="all documents attached", data={"docs": 3},
        )
        history = case.collect_history()
        assert len(history) == 1
        entry = history[0]
        assert (entry.action, entry.from_stage, entry.to_stage) == ("submit_application", "draft", "doc_verify")
        assert entry.comment == "all documents attached"
        assert entry.data == {"docs": 3}

    def test_action_data_is_folded_into_case_data(self):
        case = _make()
        outcome = resolve_transition(DEFINITION, "draft", "submit_application", "Maker", now=NOW)
        case.apply_transition(
            outcome, action="submit_application", performed_by="maker-1", now=NOW,
            data={"docs": 3, "amount": 60000},
        )
        assert case.data == {"amount": 60000, "docs": 3}

    def test_records_stage_changed_event(self):
        case = _make()
        outcome = resolve_transition(DEFINITION, "draft", "submit_application", "Maker", now=NOW)
        case.apply_transition(outcome, action="submit_application", performed_by="maker-1", now=NOW)
        events = case.collect_events()
        assert len(events) == 1
        event = events[0]
        assert isinstance(event, CaseStageChanged)
        assert event.transition_id == "submit_application"
        assert event.transition_actions == ["validate_basic_info"]
        assert event.version == 2

    def test_terminal_stage_clears_deadline(self):
        case = _make(stage="doc_verify", status=CaseStatus.IN_PROGRESS)
        outcome = resolve_transition(DEFINITION, "doc_verify", "finish", "Checker", now=NOW)
        case.apply_transition(outcome, action="finish", performed_by="checker-1", now=NOW)
        assert case.is_terminal
        assert case.sla_deadline is None

    def test_stale_outcome_is_refused(self):
        case = _make(stage="doc_verify", status=CaseStatus.IN_PROGRESS)
        outcome = resolve_transition(DEFINITION, "draft", "submit_application", "Maker", now=NOW)
        with pytest.raises(ValueError):
            case.apply_transition(outcome, action="submit_application", performed_by="maker-1", now=NOW)
        assert case.current_stage == "doc_verify"
        assert case.version == 1


# ── Assignment ───────────────────────────────────────────

class TestAssign:
    def test_assign_records_history_and_event(self):
        case = _make()
        case.assign("checker-1", performed_by="admin-1", now=NOW, assignee_name="Jane Checker")

        assert case.assigned_to == "checker-1"
        assert case.version == 2
        entry = case.collect_history()[0]
        assert entry.action == "assigned"
        assert entry.from_stage is None and entry.to_stage is None
        assert entry.comment == "Case assigned to Jane Checker"
        assert entry.data["previousAssignee"] is None

        event = case.collect_events()[0]
        assert isinstance(event, CaseAssigned)
        assert event.assigned_to == "checker-1"

    def test_reassign_keeps_previous(self):
        case = _make()
        case.assign("checker-1", performed_by="admin-1", now=NOW)
        case.assign("checker-2", performed_by="admin-1", now=NOW)
        entries = case.collect_history()
        assert entries[1].data["previousAssignee"] == "checker-1"
        assert entries[1].comment == "Case assigned to checker-2"
        assert [e.sequence for e in entries] == [2, 3]


# ── Queries ──────────────────────────────────────────────

class TestQueries:
    def test_visibility(self):
        case = _make()
        assert case.is_visible_to("maker-1")
        assert not case.is_visible_to("checker-1")
        case.assign("checker-1", performed_by="admin-1", now=NOW)
        assert case.is_visible_to("checker-1")

    @pytest.mark.parametrize("status,terminal", [
        (CaseStatus.DRAFT, False),
        (CaseStatus.IN_PROGRESS, False),
        (CaseStatus.COMPLETED, True),
        (CaseStatus.REJECTED, True),
    ])
    def test_is_terminal(self, status, terminal):
        assert _make(status=status).is_terminal is terminal
