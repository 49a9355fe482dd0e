"""Scheduling domain schemas - Pydantic models for rules and engine results"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

TRIGGER_TYPES = (
    "domain",
    "keyword",
    "email",
    "time_before",
    "time_after",
    "day_of_week",
    "duration_greater",
    "duration_less",
    "all",
)

ACTION_TYPES = (
    "set_duration",
    "auto_approve",
    "block",
    "set_priority",
    "set_location",
    "set_buffer",
    "add_note",
    "set_title_prefix",
    "require_approval",
    "send_notification",
)

TriggerType = Literal[
    "domain",
    "keyword",
    "email",
    "time_before",
    "time_after",
    "day_of_week",
    "duration_greater",
    "duration_less",
    "all",
]

ActionType = Literal[
    "set_duration",
    "auto_approve",
    "block",
    "set_priority",
    "set_location",
    "set_buffer",
    "add_note",
    "set_title_prefix",
    "require_approval",
    "send_notification",
]


# Whole-number rule values and their (min, max) bounds
NUMERIC_TRIGGER_BOUNDS = {
    "time_before": (0, 24),
    "time_after": (0, 23),
    "duration_greater": (0, None),
    "duration_less": (1, None),
}
NUMERIC_ACTION_BOUNDS = {"set_duration": (1, None), "set_buffer": (0, None)}


def numeric_value_error(kind: Optional[str], value: Optional[str], bounds: dict) -> Optional[str]:
    """Message describing why `value` is not a usable number for `kind`, or None"""
    if kind not in bounds:
        return None
    low, high = bounds[kind]
    text = (value or "").strip()
    if not text.isdigit() or int(text) < low or (high is not None and int(text) > high):
        limit = f"between {low} and {high}" if high is not None else f"at least {low}"
        return f"{kind} needs a whole number {limit}, got {value!r}"
    return None


class AppliedRule(BaseModel):
    id: Optional[int] = None
    name: str
    trigger: str
    action: str


class RuleResult(BaseModel):
    """Outcome of running a user's rules against a booking candidate"""

    original_data: dict[str, Any]
    modified_data: dict[str, Any]
    applied_rules: list[AppliedRule] = Field(default_factory=list)
    blocked: bool = False
    block_reason: Optional[str] = None
    auto_approved: bool = False


class BlockCheck(BaseModel):
    blocked: bool = False
    reason: Optional[str] = None


class ParsedRule(BaseModel):
    """Structured rule extracted from free text"""

    name: str
    trigger_type: TriggerType
    trigger_value: Optional[str] = None
    action_type: ActionType
    action_value: Optional[str] = None


class SchedulingRuleCreate(BaseModel):
    name: str
    trigger_type: TriggerType
    trigger_value: Optional[str] = Field(default=None, validate_default=True)
    action_type: ActionType
    action_value: Optional[str] = Field(default=None, validate_default=True)
    block_message: Optional[str] = None
    priority: int = 0
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Rule name is required")
        return v.strip()

    @field_validator("trigger_value")
    @classmethod
    def validate_trigger_value(cls, v, info):
        trigger_type = info.data.get("trigger_type")
        if trigger_type and trigger_type != "all" and not (v and v.strip()):
            raise ValueError(f"trigger_value is required for trigger '{trigger_type}'")
        error = numeric_value_error(trigger_type, v, NUMERIC_TRIGGER_BOUNDS)
        if error:
            raise ValueError(error)
        return v.strip() if v else v

    @field_validator("action_value")
    @classmethod
    def validate_action_value(cls, v, info):
        error = numeric_value_error(info.data.get("action_type"), v, NUMERIC_ACTION_BOUNDS)
        if error:
            raise ValueError(error)
        return v


class SchedulingRuleUpdate(BaseModel):
    name: Optional[str] = None
    trigger_type: Optional[TriggerType] = None
    trigger_value: Optional[str] = None
    action_type: Optional[ActionType] = None
    action_value: Optional[str] = None
    block_message: Optional[str] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("trigger_value")
    @classmethod
    def validate_trigger_value(cls, v, info):
        error = numeric_value_error(info.data.get("trigger_type"), v, NUMERIC_TRIGGER_BOUNDS)
        if v is not None and error:
            raise ValueError(error)
        return v

    @field_validator("action_value")
    @classmethod
    def validate_action_value(cls, v, info):
        error = numeric_value_error(info.data.get("action_type"), v, NUMERIC_ACTION_BOUNDS)
        if v is not None and error:
            raise ValueError(error)
        return v


class SchedulingRuleResponse(BaseModel):
    id: int
    name: str
    trigger_type: str
    trigger_value: Optional[str]
    action_type: str
    action_value: Optional[str]
    block_message: Optional[str] = None
    is_active: bool
    priority: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RuleTextRequest(BaseModel):
    rule_text: str

    @field_validator("rule_text")
    @classmethod
    def validate_rule_text(cls, v):
        if not v or len(v.strip()) < 5:
            raise ValueError("Please provide a rule description")
        return v.strip()
