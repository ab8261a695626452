"""
Workflow Scheduler

check_due_workflows() is the once-a-minute tick. It finds active scheduled
workflows whose cron expression matches the current minute, records a
ScheduledWorkflowRun for each (at most one per workflow per minute) and
dispatches it to the workflow executor.

The tick is driven externally (POST /api/v1/scheduler/tick from a cron job
or platform scheduler) so the API process holds no timers of its own.
"""
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bizos.core.cron import cron_matches, floor_to_minute, CronExpressionError
from bizos.models.workflow import Workflow, ScheduledWorkflowRun
from bizos.models.audit import record_audit
from bizos.services.dispatcher import WorkflowDispatcher, DispatchError

logger = logging.getLogger(__name__)


def due_workflows(db: Session, this_minute: datetime) -> List[Workflow]:
    """Active scheduled workflows whose cron expression matches ``this_minute``."""
    candidates = db.query(Workflow).filter(
        Workflow.is_active == True,  # noqa: E712
        Workflow.trigger_type == "scheduled"
    ).order_by(Workflow.created_at.asc()).all()

    due = []
    for workflow in candidates:
        cron = workflow.cron
        if not cron:
            continue
        try:
            if cron_matches(cron, this_minute):
                due.append(workflow)
        except CronExpressionError as e:
            logger.warning(
                f"Skipping workflow with invalid cron {cron!r}: {e}",
                extra={"workflow_id": workflow.id, "tenant_id": workflow.tenant_id},
            )
    return due


def already_dispatched(db: Session, workflow_id: str, this_minute: datetime) -> bool:
    return db.query(ScheduledWorkflowRun.id).filter(
        ScheduledWorkflowRun.workflow_id == workflow_id,
        ScheduledWorkflowRun.scheduled_at == this_minute
    ).first() is not None


def check_due_workflows(
    db: Session,
    dispatcher: WorkflowDispatcher,
    now: Optional[datetime] = None,
) -> List[ScheduledWorkflowRun]:
    """
    Dispatch every workflow due this minute that has not been dispatched yet.

    Returns the ScheduledWorkflowRun rows created by this call (dispatched
    or failed). Duplicate ticks within the same minute return an empty list.
    """
    if not dispatcher.is_configured:
        logger.warning("Workflow executor URL or scheduler secret not set - skipping workflow dispatch")
        return []

    this_minute = floor_to_minute(now or datetime.utcnow())
    created = []

    for workflow in due_workflows(db, this_minute):
        if already_dispatched(db, workflow.id, this_minute):
            continue

        run = ScheduledWorkflowRun(
            tenant_id=workflow.tenant_id,
            workflow_id=workflow.id,
            scheduled_at=this_minute,
            status="pending",
        )
        db.add(run)
        try:
            db.commit()
        except IntegrityError:
            # Another tick claimed this minute between the check and the insert
            db.rollback()
            continue

        try:
            status_code = dispatcher.dispatch_workflow(
                tenant_slug=workflow.tenant.slug,
                workflow_id=workflow.id,
                trigger_type="scheduled",
                trigger_data={
                    "scheduled_at": this_minute.isoformat(),
                    "cron": workflow.cron,
                },
            )
        except DispatchError as e:
            run.status = "failed"
            run.error = str(e)
            run.response_status = e.status_code
            logger.warning(
                f"Failed to dispatch workflow {workflow.id}: {e}",
                extra={"workflow_id": workflow.id, "tenant_id": workflow.tenant_id},
            )
        else:
            run.status = "dispatched"
            run.dispatched_at = datetime.utcnow()
            run.response_status = status_code
            record_audit(
                db,
                action="workflow.dispatched",
                resource_type="workflow",
                resource_id=workflow.id,
                tenant_id=workflow.tenant_id,
                actor_type="scheduler",
                details={
                    "workflow_name": workflow.name,
                    "scheduled_at": this_minute.isoformat(),
                    "cron": workflow.cron,
                    "response_status": status_code,
                },
            )

        db.commit()
        db.refresh(run)
        created.append(run)

    if created:
        logger.info(f"Scheduler tick {this_minute.isoformat()}: {len(created)} workflow(s) processed")
    return created


def cleanup_old_scheduled_runs(
    db: Session,
    now: Optional[datetime] = None,
    retention_days: int = 30,
) -> int:
    """Delete scheduled-run records older than the retention window."""
    cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)

    deleted_count = db.query(ScheduledWorkflowRun).filter(
        ScheduledWorkflowRun.created_at < cutoff
    ).delete(synchronize_session=False)

    if deleted_count > 0:
        record_audit(
            db,
            action="scheduled_runs.cleanup",
            resource_type="scheduled_workflow_runs",
            actor_type="system",
            details={"deleted_count": deleted_count, "cutoff": cutoff.isoformat()},
        )
        logger.info(f"Removed {deleted_count} scheduled run record(s) older than {retention_days} days")

    db.commit()
    return deleted_count
