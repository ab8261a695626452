"""
Human-in-the-Loop Confirmation Endpoints

The agent files a confirmation before running a sensitive tool; a member
approves or rejects it from the inbox before it expires.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from datetime import datetime

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.agent import AgentSession, AgentCommand, AgentConfirmation
from bizos.schemas.agent import (
    ConfirmationCreate,
    ConfirmationResponse,
    PendingConfirmationResponse,
    ConfirmationRespondRequest,
    BadgeResponse,
    ExpireResponse,
)
from bizos.api.deps import get_current_user, get_current_tenant, require_admin, require_member
from bizos.core.exceptions import SessionNotFoundError, InvalidInputError
from bizos.services.confirmations import (
    default_expiry,
    pending_confirmations,
    format_expiry_time,
    compute_badge_count,
    format_badge_label,
    respond_to_confirmation,
    expire_stale_confirmations,
)
from bizos.config import get_settings
from bizos.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/confirmations", tags=["confirmations"])


@router.post("", response_model=ConfirmationResponse, status_code=status.HTTP_201_CREATED)
async def request_confirmation(
    data: ConfirmationCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    File a confirmation request.

    Expires after ``expires_in_minutes`` or CONFIRMATION_EXPIRY_MINUTES.
    """
    session = db.query(AgentSession).filter(
        AgentSession.id == data.session_id,
        AgentSession.tenant_id == tenant.id
    ).first()
    if not session:
        raise SessionNotFoundError(data.session_id)

    if data.command_id:
        command = db.query(AgentCommand).filter(
            AgentCommand.id == data.command_id,
            AgentCommand.session_id == session.id
        ).first()
        if not command:
            raise InvalidInputError("command_id does not belong to this session")

    now = datetime.utcnow()
    confirmation = AgentConfirmation(
        tenant_id=tenant.id,
        session_id=session.id,
        command_id=data.command_id,
        tool_name=data.tool_name,
        tool_input=data.tool_input,
        description=data.description,
        status="pending",
        expires_at=default_expiry(
            now,
            minutes=data.expires_in_minutes or settings.CONFIRMATION_EXPIRY_MINUTES
        ),
        created_at=now,
    )
    db.add(confirmation)
    db.commit()
    db.refresh(confirmation)

    logger.info(
        f"Confirmation requested for {data.tool_name}: {confirmation.id}",
        extra={"tenant_id": tenant.id}
    )
    return confirmation


@router.get("/pending", response_model=List[PendingConfirmationResponse])
async def list_pending(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Unexpired pending confirmations, oldest first, with a countdown label."""
    now = datetime.utcnow()
    return [
        PendingConfirmationResponse(
            **ConfirmationResponse.model_validate(c).model_dump(),
            expires_label=format_expiry_time(c.expires_at, now)
        )
        for c in pending_confirmations(db, tenant.id, now)
    ]


@router.get("/badge", response_model=BadgeResponse)
async def badge(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    count = compute_badge_count(pending_confirmations(db, tenant.id))
    return BadgeResponse(count=count, label=format_badge_label(count))


@router.post("/expire", response_model=ExpireResponse)
async def expire(
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Sweep this tenant's overdue pending confirmations to ``expired``."""
    return ExpireResponse(expired_count=expire_stale_confirmations(db, tenant.id))


@router.post("/{confirmation_id}/respond", response_model=ConfirmationResponse)
async def respond(
    confirmation_id: str,
    data: ConfirmationRespondRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Approve or reject a confirmation.

    409 if it was already answered or has expired.
    """
    return respond_to_confirmation(db, tenant.id, confirmation_id, data.approved, current_user)
