"""
Tool Definition Schemas
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

NAME_PATTERN = "^[a-z][a-z0-9_]*$"


class ToolDefinitionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=NAME_PATTERN)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    capability_name: str = Field(..., min_length=1, max_length=100)
    input_schema: Dict[str, Any]
    action_name: str = Field(..., min_length=1, max_length=255)


class ToolDefinitionCreate(ToolDefinitionBase):
    is_active: bool = True


class ToolDefinitionUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    capability_name: Optional[str] = Field(None, min_length=1, max_length=100)
    input_schema: Optional[Dict[str, Any]] = None
    action_name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class ToolDefinitionResponse(ToolDefinitionBase):
    id: str
    tenant_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SchemaValidationRequest(BaseModel):
    text: str


class SchemaValidationResponse(BaseModel):
    valid: bool
    error: str
