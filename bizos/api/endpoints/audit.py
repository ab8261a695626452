"""
Audit Log Endpoint

Read-only view of the tenant's audit trail. Admin only.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.audit import AuditLog
from bizos.schemas.audit import AuditLogListResponse
from bizos.api.deps import get_current_tenant, require_admin

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditLogListResponse)
async def list_audit_entries(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Newest entries first; filter by exact action or resource type."""
    query = db.query(AuditLog).filter(AuditLog.tenant_id == tenant.id)

    if action:
        query = query.filter(AuditLog.action == action)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)

    total = query.count()

    offset = (page - 1) * page_size
    entries = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(page_size).all()

    return AuditLogListResponse(
        entries=entries,
        total=total,
        page=page,
        page_size=page_size
    )
