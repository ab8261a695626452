"""
Agent Session Endpoints

A user opens a session and queues commands into it; the agent runtime
picks pending commands up and moves them through received, processing and
completed. Users only see their own sessions.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List
from datetime import datetime

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.agent import AgentSession, AgentCommand
from bizos.schemas.agent import SessionCreate, SessionResponse, CommandCreate, CommandResponse
from bizos.api.deps import get_current_user, get_current_tenant, require_member
from bizos.core.exceptions import SessionNotFoundError
from bizos.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/agents", tags=["agents"])


def _load_session(db: Session, tenant: Tenant, user: User, session_id: str) -> AgentSession:
    session = db.query(AgentSession).filter(
        AgentSession.id == session_id,
        AgentSession.tenant_id == tenant.id,
        AgentSession.user_id == user.id
    ).first()
    if not session:
        raise SessionNotFoundError(session_id)
    return session


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    session = AgentSession(
        tenant_id=tenant.id,
        user_id=current_user.id,
        title=data.title,
        session_metadata=data.session_metadata,
    )
    db.add(session)
    db.commit()
    db.refresh(session)

    logger.info(f"Agent session opened: {session.id}", extra={"tenant_id": tenant.id, "user_id": current_user.id})
    return session


@router.get("/sessions", response_model=List[SessionResponse])
async def list_sessions(
    active_only: bool = True,
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """The caller's sessions, most recently active first."""
    query = db.query(AgentSession).filter(
        AgentSession.tenant_id == tenant.id,
        AgentSession.user_id == current_user.id
    )
    if active_only:
        query = query.filter(AgentSession.is_active == True)  # noqa: E712
    return query.order_by(AgentSession.updated_at.desc()).limit(limit).all()


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_session(db, tenant, current_user, session_id)


@router.post(
    "/sessions/{session_id}/commands",
    response_model=CommandResponse,
    status_code=status.HTTP_201_CREATED
)
async def send_command(
    session_id: str,
    data: CommandCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Queue a command for the agent and bump the session's message counter."""
    session = _load_session(db, tenant, current_user, session_id)

    command = AgentCommand(
        tenant_id=tenant.id,
        session_id=session.id,
        user_id=current_user.id,
        command_type=data.command_type,
        content=data.content,
        command_metadata=data.command_metadata,
        status="pending",
    )
    db.add(command)

    session.message_count = (session.message_count or 0) + 1
    session.last_message_at = datetime.utcnow()

    db.commit()
    db.refresh(command)

    logger.debug(f"Command {command.id} queued in session {session.id}")
    return command


@router.get("/sessions/{session_id}/commands", response_model=List[CommandResponse])
async def list_commands(
    session_id: str,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Commands in a session, oldest first."""
    session = _load_session(db, tenant, current_user, session_id)
    return db.query(AgentCommand).filter(
        AgentCommand.session_id == session.id,
        AgentCommand.tenant_id == tenant.id
    ).order_by(AgentCommand.created_at.asc()).limit(limit).all()
