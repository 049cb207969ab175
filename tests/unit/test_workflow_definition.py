import pytest

from caseflow.bpm.engine import parse_definition
from caseflow.bpm.models import AutoRuleTrigger, WorkflowDefinition
from caseflow.core.errors import InvalidWorkflow


def _config(**overrides):
    config = {
        "workflowId": "micro_loan_v1",
        "version": 2,
        "name": "Micro Loan",
        "stages": [
            {"id": "draft", "label": "Draft", "slaHours": 48},
            {"id": "completed", "label": "Completed", "slaHours": 0},
        ],
        "transitions": [
            {"id": "finish", "from": "draft", "to": "completed", "label": "Finish",
             "roles": ["Maker"], "actions": ["notify"]},
        ],
        "autoRules": [
            {"id": "r1", "stage": "completed", "trigger": "onEnter", "action": "archive",
             "params": {"days": 30}},
        ],
    }
    config.update(overrides)
    return config


class TestParseDefinition:
    def test_parses_camel_case_config(self):
        definition = parse_definition(_config())
        assert isinstance(definition, WorkflowDefinition)
        assert definition.workflow_id == "micro_loan_v1"
        assert definition.version == 2
        assert definition.stage("draft").sla_hours == 48
        assert definition.transitions[0].from_stage == "draft"
        assert definition.transitions[0].to_stage == "completed"
        assert definition.auto_rules[0].trigger is AutoRuleTrigger.ON_ENTER

    def test_round_trips_to_stored_shape(self):
        stored = parse_definition(_config()).to_config()
        assert stored["workflowId"] == "micro_loan_v1"
        assert stored["transitions"][0]["from"] == "draft"
        assert stored["autoRules"][0]["params"] == {"days": 30}
        assert stored["stages"][0]["slaHours"] == 48

    def test_unknown_keys_are_ignored(self):
        definition = parse_definition(_config(tenantId="t-1"))
        assert "tenantId" not in definition.to_config()

    def test_passes_through_parsed_definition(self):
        definition = parse_definition(_config())
        assert parse_definition(definition) is definition

    def test_has_stage(self):
        definition = parse_definition(_config())
        assert definition.has_stage("draft")
        assert not definition.has_stage("approval")


class TestInvalidDefinitions:
    @pytest.mark.parametrize("config", [
        None,
        [],
        "micro_loan_v1",
    ])
    def test_non_object_config(self, config):
        with pytest.raises(InvalidWorkflow):
            parse_definition(config)

    def test_requires_a_stage(self):
        with pytest.raises(InvalidWorkflow):
            parse_definition(_config(stages=[], transitions=[], autoRules=[]))

    def test_duplicate_stage_ids(self):
        with pytest.raises(InvalidWorkflow, match="duplicate stage"):
            parse_definition(_config(stages=[{"id": "draft"}, {"id": "draft"}, {"id": "completed"}]))

    def test_transition_to_unknown_stage(self):
        transitions = [{"id": "t", "from": "draft", "to": "approval", "label": "Go", "roles": []}]
        with pytest.raises(InvalidWorkflow, match="unknown stage 'approval'"):
            parse_definition(_config(transitions=transitions))

    def test_auto_rule_on_unknown_stage(self):
        rules = [{"id": "r", "stage": "approval", "trigger": "onEnter", "action": "x"}]
        with pytest.raises(InvalidWorkflow, match="auto rule 'r'"):
            parse_definition(_config(autoRules=rules))

    def test_unknown_trigger(self):
        rules = [{"id": "r", "stage": "draft", "trigger": "onSomething", "action": "x"}]
        with pytest.raises(InvalidWorkflow):
            parse_definition(_config(autoRules=rules))

    def test_negative_sla_hours(self):
        with pytest.raises(InvalidWorkflow):
            parse_definition(_config(stages=[{"id": "draft", "slaHours": -1}, {"id": "completed"}]))

    def test_blank_condition(self):
        transitions = [{"id": "t", "from": "draft", "to": "completed", "label": "Go", "condition": "  "}]
        with pytest.raises(InvalidWorkflow):
            parse_definition(_config(transitions=transitions))

    def test_version_must_be_positive(self):
        with pytest.raises(InvalidWorkflow):
            parse_definition(_config(version=0))

    def test_error_names_the_field(self):
        with pytest.raises(InvalidWorkflow) as exc_info:
            parse_definition(_config(transitions=[{"id": "t", "from": "draft", "to": "completed"}]))
        assert exc_info.value.code == "INVALID_WORKFLOW"
        assert "label" in exc_info.value.message
