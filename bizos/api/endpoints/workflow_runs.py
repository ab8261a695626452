"""
Workflow Executor Intake

Receives the triggers posted by the scheduler and the event bus. The caller
authenticates with the shared x-scheduler-secret header and names the tenant
with X-Tenant-Slug; TenantMiddleware resolves it as for any other request.

The intake records a pending WorkflowRun. Executing the steps is the job of
whatever worker consumes pending runs.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from bizos.database import get_db
from bizos.models.tenant import Tenant
from bizos.models.workflow import Workflow, WorkflowRun
from bizos.schemas.workflow import ExecutorTrigger, WorkflowRunResponse
from bizos.api.deps import get_current_tenant, require_scheduler_secret
from bizos.core.exceptions import WorkflowNotFoundError
from bizos.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/workflow-runs",
    tags=["workflow-runs"],
    dependencies=[Depends(require_scheduler_secret)]
)


@router.post("", response_model=WorkflowRunResponse, status_code=status.HTTP_202_ACCEPTED)
async def receive_trigger(
    trigger: ExecutorTrigger,
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Accept a workflow trigger.

    404 for a workflow outside the resolved tenant, 409 for a paused one.
    """
    workflow = db.query(Workflow).filter(
        Workflow.id == trigger.workflow_id,
        Workflow.tenant_id == tenant.id
    ).first()

    if not workflow:
        raise WorkflowNotFoundError(trigger.workflow_id)

    if not workflow.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Workflow is paused"
        )

    run = WorkflowRun(
        tenant_id=tenant.id,
        workflow_id=workflow.id,
        status="pending",
        trigger_type=trigger.trigger_type,
        trigger_data=trigger.trigger_data,
    )
    db.add(run)
    db.commit()
    db.refresh(run)

    logger.info(
        f"Workflow run queued: {run.id} ({trigger.trigger_type})",
        extra={"workflow_id": workflow.id, "tenant_id": tenant.id}
    )

    return run
