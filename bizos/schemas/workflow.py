"""
Workflow Schemas

Request/response models for workflows and their runs.
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime

from bizos.core.cron import validate_cron_expression, CronExpressionError

TRIGGER_PATTERN = "^(manual|scheduled|webhook|event)$"


def validate_trigger(trigger_type: Optional[str], trigger_config: Optional[Dict[str, Any]]) -> None:
    if trigger_type != "scheduled":
        return
    cron = (trigger_config or {}).get("cron")
    if not cron:
        raise ValueError("Scheduled workflows require trigger_config.cron")
    if not isinstance(cron, str):
        raise ValueError("trigger_config.cron must be a string")
    try:
        validate_cron_expression(cron)
    except CronExpressionError as e:
        raise ValueError(str(e))


class WorkflowBase(BaseModel):
    """Base workflow schema."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    trigger_type: str = Field("manual", pattern=TRIGGER_PATTERN)
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    steps: List[Dict[str, Any]] = Field(default_factory=list)


class WorkflowCreate(WorkflowBase):
    """Schema for creating a workflow."""
    is_active: bool = True

    @model_validator(mode="after")
    def check_schedule(self):
        validate_trigger(self.trigger_type, self.trigger_config)
        return self


class WorkflowUpdate(BaseModel):
    """
    Partial update. Omitted fields are left alone; only ``description``
    may be cleared with null.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    trigger_type: Optional[str] = Field(None, pattern=TRIGGER_PATTERN)
    trigger_config: Optional[Dict[str, Any]] = None
    steps: Optional[List[Dict[str, Any]]] = None
    is_active: Optional[bool] = None

    @field_validator("name", "trigger_type", "trigger_config", "steps", "is_active")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class WorkflowResponse(WorkflowBase):
    """Workflow response schema."""
    id: str
    tenant_id: str
    is_active: bool
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WorkflowListResponse(BaseModel):
    """Paginated list of workflows."""
    workflows: list[WorkflowResponse]
    total: int
    page: int
    page_size: int


class WorkflowRunResponse(BaseModel):
    id: str
    workflow_id: str
    status: str
    trigger_type: str
    trigger_data: Dict[str, Any]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    error: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ScheduledRunResponse(BaseModel):
    id: str
    workflow_id: str
    scheduled_at: datetime
    dispatched_at: Optional[datetime]
    status: str
    response_status: Optional[int]
    error: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ExecutorTrigger(BaseModel):
    """Body posted to the executor intake by the scheduler and event bus."""
    workflow_id: str
    trigger_type: str = Field(..., pattern=TRIGGER_PATTERN)
    trigger_data: Dict[str, Any] = Field(default_factory=dict)


class SchedulerTickRequest(BaseModel):
    """Optional override of the tick time, for replaying a missed minute."""
    now: Optional[datetime] = None


class SchedulerTickResponse(BaseModel):
    scheduled_at: datetime
    runs: list[ScheduledRunResponse]


class CleanupResponse(BaseModel):
    deleted_count: int


class CronPreviewResponse(BaseModel):
    cron: str
    at: datetime
    valid: bool
    matches: bool
    error: Optional[str] = None
