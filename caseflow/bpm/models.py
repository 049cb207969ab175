"""
Workflow definition models.

The ``config`` JSON stored on a ``workflow_configs`` row is parsed into a
:class:`WorkflowDefinition` once per request and validated when written.
Field names follow the stored camelCase keys (``slaHours``, ``from``, ...).
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AutoRuleTrigger(str, Enum):
    ON_ENTER = "onEnter"
    ON_EXIT = "onExit"
    ON_TIMER = "onTimer"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class WorkflowStage(_ConfigModel):
    id: str = Field(min_length=1)
    label: str = ""
    description: Optional[str] = None
    sla_hours: Optional[float] = Field(default=None, alias="slaHours", ge=0)
    assign_to_roles: list[str] = Field(default_factory=list, alias="assignToRoles")
    required_fields: list[str] = Field(default_factory=list, alias="requiredFields")


class WorkflowTransition(_ConfigModel):
    id: str = Field(min_length=1)
    from_stage: str = Field(alias="from")
    to_stage: str = Field(alias="to")
    label: str = Field(min_length=1)
    condition: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    requires_approval: bool = Field(default=False, alias="requiresApproval")

    @field_validator("condition")
    @classmethod
    def _condition_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("condition must be a non-empty expression when present")
        return value


class AutoRule(_ConfigModel):
    id: str = Field(min_length=1)
    stage: str
    trigger: AutoRuleTrigger
    condition: Optional[str] = None
    action: str
    params: dict[str, Any] = Field(default_factory=dict)


class WorkflowDefinition(_ConfigModel):
    workflow_id: str = Field(default="", alias="workflowId")
    version: int = Field(default=1, ge=1)
    name: str = ""
    description: str = ""
    stages: list[WorkflowStage] = Field(min_length=1)
    transitions: list[WorkflowTransition] = Field(default_factory=list)
    auto_rules: list[AutoRule] = Field(default_factory=list, alias="autoRules")

    @model_validator(mode="after")
    def _references_known_stages(self) -> "WorkflowDefinition":
        seen: set[str] = set()
        for stage in self.stages:
            if stage.id in seen:
                raise ValueError(f"duplicate stage id '{stage.id}'")
            seen.add(stage.id)
        for transition in self.transitions:
            for ref in (transition.from_stage, transition.to_stage):
                if ref not in seen:
                    raise ValueError(f"transition '{transition.id}' references unknown stage '{ref}'")
        for rule in self.auto_rules:
            if rule.stage not in seen:
                raise ValueError(f"auto rule '{rule.id}' references unknown stage '{rule.stage}'")
        return self

    def stage(self, stage_id: str) -> Optional[WorkflowStage]:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        return None

    def has_stage(self, stage_id: str) -> bool:
        return self.stage(stage_id) is not None

    def to_config(self) -> dict[str, Any]:
        """Serialize back to the stored camelCase JSON shape."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
