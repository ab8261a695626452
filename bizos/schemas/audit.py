"""
Audit Log Schemas
"""
from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class AuditLogResponse(BaseModel):
    id: str
    actor_type: str
    actor_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    entries: list[AuditLogResponse]
    total: int
    page: int
    page_size: int
