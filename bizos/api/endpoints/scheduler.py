"""
Scheduler Endpoints

POST /scheduler/tick and /scheduler/cleanup are called by an external
cron (every minute and daily respectively) with the x-scheduler-secret
header. They run across all tenants, so TenantMiddleware skips them.

GET /scheduler/preview is for people writing cron expressions: it says
whether an expression would fire at a given time.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bizos.database import get_db
from bizos.models.user import User
from bizos.schemas.workflow import (
    SchedulerTickRequest,
    SchedulerTickResponse,
    CleanupResponse,
    CronPreviewResponse,
)
from bizos.api.deps import get_current_user, require_scheduler_secret
from bizos.core.cron import cron_matches, floor_to_minute, validate_cron_expression, CronExpressionError
from bizos.services.dispatcher import WorkflowDispatcher, get_dispatcher
from bizos.services.scheduler import check_due_workflows, cleanup_old_scheduled_runs
from bizos.config import get_settings
from bizos.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.post(
    "/tick",
    response_model=SchedulerTickResponse,
    dependencies=[Depends(require_scheduler_secret)]
)
async def tick(
    body: Optional[SchedulerTickRequest] = None,
    db: Session = Depends(get_db),
    dispatcher: WorkflowDispatcher = Depends(get_dispatcher)
):
    """
    Dispatch every scheduled workflow due this minute.

    ``now`` replays a specific minute. Runs already dispatched for that
    minute are not repeated.
    """
    now = (body.now if body else None) or datetime.utcnow()
    runs = check_due_workflows(db, dispatcher, now=now)
    return SchedulerTickResponse(scheduled_at=floor_to_minute(now), runs=runs)


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    dependencies=[Depends(require_scheduler_secret)]
)
async def cleanup(db: Session = Depends(get_db)):
    deleted = cleanup_old_scheduled_runs(
        db,
        retention_days=settings.SCHEDULED_RUN_RETENTION_DAYS
    )
    return CleanupResponse(deleted_count=deleted)


@router.get("/preview", response_model=CronPreviewResponse)
async def preview(
    cron: str = Query(..., min_length=1),
    at: Optional[datetime] = None,
    current_user: User = Depends(get_current_user)
):
    """Check ``cron`` against ``at`` (default: now, UTC)."""
    at = floor_to_minute(at or datetime.utcnow())
    try:
        validate_cron_expression(cron)
    except CronExpressionError as e:
        return CronPreviewResponse(cron=cron, at=at, valid=False, matches=False, error=str(e))
    return CronPreviewResponse(cron=cron, at=at, valid=True, matches=cron_matches(cron, at))
