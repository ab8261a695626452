"""
Agent Schemas

Registered agents, sessions, queued commands and HITL confirmations.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    agent_type: str = Field(..., pattern="^(autonomous|supervised|tool)$")
    capabilities: List[str] = Field(default_factory=list)
    rate_limit_rpm: int = Field(60, ge=1, le=10000)
    agent_metadata: Dict[str, Any] = Field(default_factory=dict)


class AgentStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(active|inactive|suspended)$")


class AgentResponse(BaseModel):
    """Never carries the key itself, only its display prefix."""
    id: str
    tenant_id: str
    name: str
    agent_type: str
    status: str
    capabilities: List[str]
    api_key_prefix: Optional[str]
    has_api_key: bool
    health_status: Dict[str, Any]
    rate_limit_rpm: int
    agent_metadata: Dict[str, Any]
    last_seen_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class AgentKeyResponse(BaseModel):
    """Returned once, on registration or rotation."""
    agent: AgentResponse
    api_key: str


class SessionCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    session_metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionResponse(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    title: Optional[str]
    is_active: bool
    message_count: int
    last_message_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class CommandCreate(BaseModel):
    command_type: str = Field("chat", pattern="^(chat|task|cancel)$")
    content: str = Field(..., min_length=1)
    command_metadata: Dict[str, Any] = Field(default_factory=dict)


class CommandResponse(BaseModel):
    id: str
    session_id: str
    command_type: str
    content: str
    status: str
    created_at: datetime
    received_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class ConfirmationCreate(BaseModel):
    """Filed by the agent before running a tool that needs human approval."""
    session_id: str
    command_id: Optional[str] = None
    tool_name: str = Field(..., min_length=1, max_length=255)
    tool_input: Dict[str, Any] = Field(default_factory=dict)
    description: str = Field(..., min_length=1)
    expires_in_minutes: Optional[int] = Field(None, ge=1, le=1440)


class ConfirmationResponse(BaseModel):
    id: str
    tenant_id: str
    session_id: str
    command_id: Optional[str]
    tool_name: str
    tool_input: Dict[str, Any]
    description: str
    status: str
    expires_at: datetime
    responded_at: Optional[datetime]
    responded_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PendingConfirmationResponse(ConfirmationResponse):
    expires_label: str


class ConfirmationRespondRequest(BaseModel):
    approved: bool


class BadgeResponse(BaseModel):
    count: int
    label: str


class ExpireResponse(BaseModel):
    expired_count: int
