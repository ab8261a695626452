"""
Tool Definition Endpoints

The tenant's catalogue of agent tools. Everyone can browse it; only admins
change it.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.tool_definition import ToolDefinition
from bizos.models.audit import record_audit
from bizos.schemas.tool_definition import (
    ToolDefinitionCreate,
    ToolDefinitionUpdate,
    ToolDefinitionResponse,
    SchemaValidationRequest,
    SchemaValidationResponse,
)
from bizos.api.deps import get_current_user, get_current_tenant, require_admin
from bizos.core.exceptions import ToolDefinitionNotFoundError
from bizos.services.tool_catalog import validate_schema, search_tools, filter_by_capability, filter_by_active
from bizos.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tool-definitions", tags=["tool-definitions"])


def _load_tool(db: Session, tenant: Tenant, tool_id: str) -> ToolDefinition:
    tool = db.query(ToolDefinition).filter(
        ToolDefinition.id == tool_id,
        ToolDefinition.tenant_id == tenant.id
    ).first()
    if not tool:
        raise ToolDefinitionNotFoundError(tool_id)
    return tool


def _audit(db: Session, action: str, tool: ToolDefinition, user: User, details=None) -> None:
    record_audit(
        db,
        action=action,
        resource_type="tool_definition",
        resource_id=tool.id,
        tenant_id=tool.tenant_id,
        actor_type="user",
        actor_id=user.id,
        details=details or {"name": tool.name},
    )


@router.get("", response_model=List[ToolDefinitionResponse])
async def list_tools(
    q: Optional[str] = None,
    capability: Optional[str] = None,
    active: Optional[str] = Query(None, description="'true', 'false' or omitted for all"),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Browse the catalogue, ordered by capability then name.

    ``q`` matches name, display name, description or capability,
    case-insensitively.
    """
    tools = db.query(ToolDefinition).filter(
        ToolDefinition.tenant_id == tenant.id
    ).order_by(ToolDefinition.capability_name, ToolDefinition.name).all()

    tools = search_tools(tools, q)
    tools = filter_by_capability(tools, capability)
    return filter_by_active(tools, active)


@router.post("/validate-schema", response_model=SchemaValidationResponse)
async def check_schema(
    data: SchemaValidationRequest,
    current_user: User = Depends(get_current_user)
):
    """Validate raw input-schema text before saving it."""
    valid, error = validate_schema(data.text)
    return SchemaValidationResponse(valid=valid, error=error)


@router.get("/{tool_id}", response_model=ToolDefinitionResponse)
async def get_tool(
    tool_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_tool(db, tenant, tool_id)


@router.post("", response_model=ToolDefinitionResponse, status_code=status.HTTP_201_CREATED)
async def create_tool(
    data: ToolDefinitionCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    existing = db.query(ToolDefinition).filter(
        ToolDefinition.tenant_id == tenant.id,
        ToolDefinition.name == data.name
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Tool '{data.name}' already exists"
        )

    tool = ToolDefinition(tenant_id=tenant.id, **data.model_dump())
    db.add(tool)
    db.flush()
    _audit(db, "tool_definition.created", tool, current_user)
    db.commit()
    db.refresh(tool)

    logger.info(f"Tool definition created: {tool.name}", extra={"tenant_id": tenant.id})
    return tool


@router.patch("/{tool_id}", response_model=ToolDefinitionResponse)
async def update_tool(
    tool_id: str,
    data: ToolDefinitionUpdate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    tool = _load_tool(db, tenant, tool_id)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(tool, field, value)

    _audit(db, "tool_definition.updated", tool, current_user, {"fields": sorted(update_data)})
    db.commit()
    db.refresh(tool)
    return tool


@router.post("/{tool_id}/toggle", response_model=ToolDefinitionResponse)
async def toggle_tool(
    tool_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Flip is_active."""
    tool = _load_tool(db, tenant, tool_id)
    tool.is_active = not tool.is_active

    _audit(db, "tool_definition.toggled", tool, current_user, {"is_active": tool.is_active})
    db.commit()
    db.refresh(tool)
    return tool


@router.delete("/{tool_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tool(
    tool_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    tool = _load_tool(db, tenant, tool_id)

    _audit(db, "tool_definition.deleted", tool, current_user)
    db.delete(tool)
    db.commit()

    logger.info(f"Tool definition deleted: {tool.name}", extra={"tenant_id": tenant.id})
    return None
