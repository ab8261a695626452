"""
Human-in-the-Loop Confirmations

Helpers behind the confirmation inbox: which requests are still
answerable, how long they have left, what the notification badge shows, and
the approve/reject transition.

A confirmation leaves ``pending`` exactly once. Responses are applied with
an UPDATE ... WHERE status = 'pending' so a double submit (two tabs, a
retried request) cannot flip an already-answered confirmation.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
import math
import logging

from sqlalchemy.orm import Session

from bizos.core.cron import to_utc
from bizos.core.exceptions import ConfirmationNotFoundError, ConfirmationNotPendingError
from bizos.models.agent import AgentConfirmation, AgentCommand
from bizos.models.audit import record_audit
from bizos.models.user import User

logger = logging.getLogger(__name__)

BADGE_MAX = 9


def default_expiry(now: Optional[datetime] = None, minutes: int = 5) -> datetime:
    return (now or datetime.utcnow()) + timedelta(minutes=minutes)


def is_expired(confirmation: AgentConfirmation, now: Optional[datetime] = None) -> bool:
    now = to_utc(now or datetime.utcnow())
    return to_utc(confirmation.expires_at) <= now


def filter_expired(confirmations: Iterable[AgentConfirmation], now: Optional[datetime] = None) -> List[AgentConfirmation]:
    """Drop confirmations whose expiry is at or before now."""
    now = to_utc(now or datetime.utcnow())
    return [c for c in confirmations if to_utc(c.expires_at) > now]


def format_expiry_time(expires_at: datetime, now: Optional[datetime] = None) -> str:
    """Countdown label: ``"Expired"`` or whole minutes left, rounded up."""
    now = to_utc(now or datetime.utcnow())
    remaining = (to_utc(expires_at) - now).total_seconds()
    if remaining <= 0:
        return "Expired"
    return f"{math.ceil(remaining / 60)}m left"


def compute_badge_count(pending: List[AgentConfirmation]) -> int:
    return len(pending)


def format_badge_label(count: int) -> str:
    if count <= 0:
        return ""
    if count > BADGE_MAX:
        return f"{BADGE_MAX}+"
    return str(count)


def pending_confirmations(db: Session, tenant_id: str, now: Optional[datetime] = None) -> List[AgentConfirmation]:
    """Unexpired pending confirmations for a tenant, oldest first."""
    rows = db.query(AgentConfirmation).filter(
        AgentConfirmation.tenant_id == tenant_id,
        AgentConfirmation.status == "pending"
    ).order_by(AgentConfirmation.created_at.asc()).all()
    return filter_expired(rows, now)


def respond_to_confirmation(
    db: Session,
    tenant_id: str,
    confirmation_id: str,
    approved: bool,
    user: User,
    now: Optional[datetime] = None,
) -> AgentConfirmation:
    """
    Approve or reject a pending confirmation.

    Raises ConfirmationNotFoundError for unknown ids (or another tenant's),
    ConfirmationNotPendingError when it was already answered or has expired.
    An expired row that is still marked pending is moved to ``expired``.
    """
    now = now or datetime.utcnow()

    confirmation = db.query(AgentConfirmation).filter(
        AgentConfirmation.id == confirmation_id,
        AgentConfirmation.tenant_id == tenant_id
    ).first()
    if not confirmation:
        raise ConfirmationNotFoundError(confirmation_id)

    if confirmation.status == "pending" and is_expired(confirmation, now):
        _mark_expired(db, [confirmation.id])
        db.commit()
        db.refresh(confirmation)

    new_status = "approved" if approved else "rejected"
    updated = db.query(AgentConfirmation).filter(
        AgentConfirmation.id == confirmation.id,
        AgentConfirmation.status == "pending"
    ).update(
        {"status": new_status, "responded_at": now, "responded_by": user.id},
        synchronize_session=False,
    )

    if not updated:
        db.rollback()
        db.refresh(confirmation)
        raise ConfirmationNotPendingError(confirmation.status)

    if confirmation.command_id:
        command = db.query(AgentCommand).filter(
            AgentCommand.id == confirmation.command_id,
            AgentCommand.tenant_id == tenant_id
        ).first()
        if command:
            if approved:
                command.status = "received"
                command.received_at = now
            else:
                command.status = "cancelled"
                command.completed_at = now

    record_audit(
        db,
        action=f"confirmation.{new_status}",
        resource_type="agent_confirmation",
        resource_id=confirmation.id,
        tenant_id=tenant_id,
        actor_type="user",
        actor_id=user.id,
        details={"tool_name": confirmation.tool_name},
    )
    db.commit()
    db.refresh(confirmation)

    logger.info(
        f"Confirmation {confirmation.id} {new_status}",
        extra={"tenant_id": tenant_id, "user_id": user.id},
    )
    return confirmation


def _mark_expired(db: Session, confirmation_ids: List[str]) -> int:
    if not confirmation_ids:
        return 0
    return db.query(AgentConfirmation).filter(
        AgentConfirmation.id.in_(confirmation_ids),
        AgentConfirmation.status == "pending"
    ).update({"status": "expired"}, synchronize_session=False)


def expire_stale_confirmations(db: Session, tenant_id: Optional[str] = None, now: Optional[datetime] = None) -> int:
    """Move pending confirmations past their expiry to ``expired``."""
    now = now or datetime.utcnow()
    query = db.query(AgentConfirmation.id).filter(
        AgentConfirmation.status == "pending",
        AgentConfirmation.expires_at <= now
    )
    if tenant_id:
        query = query.filter(AgentConfirmation.tenant_id == tenant_id)

    stale_ids = [row.id for row in query.all()]
    count = _mark_expired(db, stale_ids)
    db.commit()

    if count:
        logger.info(f"Expired {count} stale confirmation(s)", extra={"tenant_id": tenant_id})
    return count
