"""
Workflow Endpoints

CRUD for tenant workflows plus pause/resume and run history.

RBAC:
- List/view workflows and runs: All authenticated users
- Create/update/pause/resume: Member role or higher
- Delete: Admin or the member who created the workflow
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.workflow import Workflow, WorkflowRun, ScheduledWorkflowRun
from bizos.models.audit import record_audit
from bizos.schemas.workflow import (
    WorkflowResponse,
    WorkflowCreate,
    WorkflowUpdate,
    WorkflowListResponse,
    WorkflowRunResponse,
    ScheduledRunResponse,
    validate_trigger,
)
from bizos.api.deps import get_current_user, get_current_tenant, require_member
from bizos.core.permissions import can_modify_workflow, can_delete_workflow, PermissionDenied
from bizos.core.exceptions import WorkflowNotFoundError
from bizos.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _load_workflow(db: Session, tenant: Tenant, workflow_id: str) -> Workflow:
    workflow = db.query(Workflow).filter(
        Workflow.id == workflow_id,
        Workflow.tenant_id == tenant.id
    ).first()
    if not workflow:
        raise WorkflowNotFoundError(workflow_id)
    return workflow


def _set_active(db: Session, workflow: Workflow, is_active: bool, user: User) -> Workflow:
    workflow.is_active = is_active
    record_audit(
        db,
        action="workflow.resumed" if is_active else "workflow.paused",
        resource_type="workflow",
        resource_id=workflow.id,
        tenant_id=workflow.tenant_id,
        actor_type="user",
        actor_id=user.id,
    )
    db.commit()
    db.refresh(workflow)
    logger.info(
        f"Workflow {'resumed' if is_active else 'paused'}: {workflow.id} by {user.id}",
        extra={"workflow_id": workflow.id, "tenant_id": workflow.tenant_id}
    )
    return workflow


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    trigger_type: Optional[str] = Query(None, pattern="^(manual|scheduled|webhook|event)$"),
    is_active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """List workflows in the current tenant, newest first."""
    query = db.query(Workflow).filter(Workflow.tenant_id == tenant.id)

    if trigger_type:
        query = query.filter(Workflow.trigger_type == trigger_type)
    if is_active is not None:
        query = query.filter(Workflow.is_active == is_active)

    total = query.count()

    offset = (page - 1) * page_size
    workflows = query.order_by(
        Workflow.created_at.desc()
    ).offset(offset).limit(page_size).all()

    return WorkflowListResponse(
        workflows=workflows,
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_workflow(db, tenant, workflow_id)


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    workflow_data: WorkflowCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Create a workflow.

    Scheduled workflows must carry a valid five-field cron expression in
    ``trigger_config.cron``; the request is rejected with 422 otherwise.
    """
    workflow = Workflow(
        tenant_id=tenant.id,
        created_by=current_user.id,
        **workflow_data.model_dump()
    )

    db.add(workflow)
    db.flush()
    record_audit(
        db,
        action="workflow.created",
        resource_type="workflow",
        resource_id=workflow.id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=current_user.id,
        details={"trigger_type": workflow.trigger_type},
    )
    db.commit()
    db.refresh(workflow)

    logger.info(
        f"Workflow created: {workflow.id} by {current_user.id}",
        extra={"workflow_id": workflow.id, "tenant_id": tenant.id}
    )

    return workflow


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    workflow_data: WorkflowUpdate,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Update a workflow.

    The merged trigger (existing values overlaid with the update) is
    re-validated, so switching to ``scheduled`` without a cron fails.
    """
    workflow = _load_workflow(db, tenant, workflow_id)

    if not can_modify_workflow(current_user, workflow.created_by):
        raise PermissionDenied("Not authorized to modify this workflow")

    update_data = workflow_data.model_dump(exclude_unset=True)

    try:
        validate_trigger(
            update_data.get("trigger_type", workflow.trigger_type),
            update_data.get("trigger_config", workflow.trigger_config),
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    for field, value in update_data.items():
        setattr(workflow, field, value)

    db.commit()
    db.refresh(workflow)

    logger.info(
        f"Workflow updated: {workflow.id} by {current_user.id}",
        extra={"workflow_id": workflow.id, "tenant_id": tenant.id}
    )

    return workflow


@router.post("/{workflow_id}/pause", response_model=WorkflowResponse)
async def pause_workflow(
    workflow_id: str,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Stop scheduled dispatch; the executor intake also refuses paused workflows."""
    workflow = _load_workflow(db, tenant, workflow_id)
    return _set_active(db, workflow, False, current_user)


@router.post("/{workflow_id}/resume", response_model=WorkflowResponse)
async def resume_workflow(
    workflow_id: str,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    workflow = _load_workflow(db, tenant, workflow_id)
    return _set_active(db, workflow, True, current_user)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Delete a workflow along with its run history."""
    workflow = _load_workflow(db, tenant, workflow_id)

    if not can_delete_workflow(current_user, workflow.created_by):
        raise PermissionDenied("Not authorized to delete this workflow")

    db.delete(workflow)
    record_audit(
        db,
        action="workflow.deleted",
        resource_type="workflow",
        resource_id=workflow_id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=current_user.id,
        details={"workflow_name": workflow.name},
    )
    db.commit()

    logger.info(f"Workflow deleted: {workflow_id} by {current_user.id}")

    return None


@router.get("/{workflow_id}/runs", response_model=List[WorkflowRunResponse])
async def list_workflow_runs(
    workflow_id: str,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Runs recorded by the executor intake, newest first."""
    workflow = _load_workflow(db, tenant, workflow_id)
    return db.query(WorkflowRun).filter(
        WorkflowRun.workflow_id == workflow.id,
        WorkflowRun.tenant_id == tenant.id
    ).order_by(WorkflowRun.created_at.desc()).limit(limit).all()


@router.get("/{workflow_id}/scheduled-runs", response_model=List[ScheduledRunResponse])
async def list_scheduled_runs(
    workflow_id: str,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """The scheduler's dispatch ledger for one workflow, newest minute first."""
    workflow = _load_workflow(db, tenant, workflow_id)
    return db.query(ScheduledWorkflowRun).filter(
        ScheduledWorkflowRun.workflow_id == workflow.id,
        ScheduledWorkflowRun.tenant_id == tenant.id
    ).order_by(ScheduledWorkflowRun.scheduled_at.desc()).limit(limit).all()
