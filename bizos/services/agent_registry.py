"""
Agent Registry

Registration, status changes and API key lifecycle for agents. Registering
an agent emits ``agent.registered`` and a status change emits
``agent.status_changed`` on the event bus, so subscribers hear about both.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from bizos.core.security import generate_agent_api_key, hash_agent_api_key, is_agent_key_format
from bizos.models.agent import Agent
from bizos.models.audit import record_audit
from bizos.models.tenant import Tenant
from bizos.models.user import User
from bizos.services.dispatcher import WorkflowDispatcher
from bizos.services.event_bus import emit_event

logger = logging.getLogger(__name__)


def _issue_key(agent: Agent) -> str:
    api_key, key_hash, prefix = generate_agent_api_key()
    agent.api_key_hash = key_hash
    agent.api_key_prefix = prefix
    return api_key


def _audit(db: Session, agent: Agent, action: str, actor: User, details: Optional[Dict[str, Any]] = None) -> None:
    record_audit(
        db,
        action=action,
        resource_type="agent",
        resource_id=agent.id,
        tenant_id=agent.tenant_id,
        actor_type="user",
        actor_id=actor.id,
        details=details,
    )


def register_agent(
    db: Session,
    tenant: Tenant,
    dispatcher: WorkflowDispatcher,
    actor: User,
    name: str,
    agent_type: str,
    capabilities=None,
    rate_limit_rpm: int = 60,
    agent_metadata: Optional[Dict[str, Any]] = None,
) -> Tuple[Agent, str]:
    """
    Create an agent with a fresh API key. Returns (agent, plaintext key).

    The agent starts ``inactive``; its key only authenticates once an admin
    activates it.
    """
    agent = Agent(
        tenant_id=tenant.id,
        name=name,
        agent_type=agent_type,
        status="inactive",
        capabilities=list(capabilities or []),
        rate_limit_rpm=rate_limit_rpm,
        agent_metadata=agent_metadata or {},
    )
    db.add(agent)
    db.flush()
    api_key = _issue_key(agent)
    _audit(db, agent, "agent.registered", actor, {"name": name, "agent_type": agent_type})
    db.commit()
    db.refresh(agent)

    emit_event(
        db, tenant, dispatcher, "agent.registered",
        {"agent_id": agent.id, "name": agent.name, "agent_type": agent.agent_type},
        source_type="user", source_id=actor.id,
    )
    logger.info(f"Agent registered: {agent.name} ({agent.id})", extra={"tenant_id": tenant.id})
    return agent, api_key


def set_agent_status(
    db: Session,
    tenant: Tenant,
    dispatcher: WorkflowDispatcher,
    agent: Agent,
    new_status: str,
    actor: User,
) -> Agent:
    """Move an agent to ``new_status``. No event is emitted when nothing changes."""
    previous = agent.status
    if previous == new_status:
        return agent

    agent.status = new_status
    _audit(db, agent, "agent.status_changed", actor, {"from": previous, "to": new_status})
    db.commit()
    db.refresh(agent)

    emit_event(
        db, tenant, dispatcher, "agent.status_changed",
        {"agent_id": agent.id, "from": previous, "to": new_status},
        source_type="user", source_id=actor.id,
    )
    return agent


def rotate_api_key(db: Session, agent: Agent, actor: User) -> str:
    """Replace the agent's key; the old one stops working immediately."""
    api_key = _issue_key(agent)
    _audit(db, agent, "agent.api_key_rotated", actor)
    db.commit()
    db.refresh(agent)
    logger.info(f"API key rotated for agent {agent.id}", extra={"tenant_id": agent.tenant_id})
    return api_key


def revoke_api_key(db: Session, agent: Agent, actor: User) -> Agent:
    agent.api_key_hash = None
    agent.api_key_prefix = None
    _audit(db, agent, "agent.api_key_revoked", actor)
    db.commit()
    db.refresh(agent)
    logger.info(f"API key revoked for agent {agent.id}", extra={"tenant_id": agent.tenant_id})
    return agent


def authenticate_agent(db: Session, tenant_id: str, api_key: Optional[str]) -> Optional[Agent]:
    """
    The active agent of this tenant holding ``api_key``, or None.

    Suspended and inactive agents never authenticate. A hit refreshes
    ``last_seen_at``.
    """
    if not is_agent_key_format(api_key):
        return None

    agent = db.query(Agent).filter(
        Agent.tenant_id == tenant_id,
        Agent.api_key_hash == hash_agent_api_key(api_key),
        Agent.status == "active"
    ).first()
    if agent:
        agent.last_seen_at = datetime.utcnow()
        db.commit()
    return agent
