"""
Agent Registry Endpoints

RBAC:
- List and view agents: All authenticated users
- Register, change status, rotate or revoke keys: Admin only
- /me: the calling agent, authenticated by its x-agent-key
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.agent import Agent
from bizos.schemas.agent import AgentCreate, AgentStatusUpdate, AgentResponse, AgentKeyResponse
from bizos.api.deps import get_current_user, get_current_tenant, get_current_agent, require_admin
from bizos.core.exceptions import AgentNotFoundError
from bizos.services.dispatcher import WorkflowDispatcher, get_dispatcher
from bizos.services import agent_registry

router = APIRouter(prefix="/agents/registry", tags=["agents"])


def _load_agent(db: Session, tenant: Tenant, agent_id: str) -> Agent:
    agent = db.query(Agent).filter(
        Agent.id == agent_id,
        Agent.tenant_id == tenant.id
    ).first()
    if not agent:
        raise AgentNotFoundError(agent_id)
    return agent


def _with_key(agent: Agent, api_key: str) -> AgentKeyResponse:
    return AgentKeyResponse(agent=AgentResponse.model_validate(agent), api_key=api_key)


@router.get("", response_model=List[AgentResponse])
async def list_agents(
    agent_status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(Agent).filter(Agent.tenant_id == tenant.id)
    if agent_status:
        query = query.filter(Agent.status == agent_status)
    return query.order_by(Agent.name).all()


@router.post("", response_model=AgentKeyResponse, status_code=status.HTTP_201_CREATED)
async def register_agent(
    data: AgentCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
    dispatcher: WorkflowDispatcher = Depends(get_dispatcher)
):
    """
    Register an agent and return its API key.

    The key is shown only in this response. The agent starts inactive.
    """
    taken = db.query(Agent).filter(
        Agent.tenant_id == tenant.id,
        Agent.name == data.name
    ).first()
    if taken:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An agent with this name already exists"
        )

    agent, api_key = agent_registry.register_agent(
        db, tenant, dispatcher, current_user,
        name=data.name,
        agent_type=data.agent_type,
        capabilities=data.capabilities,
        rate_limit_rpm=data.rate_limit_rpm,
        agent_metadata=data.agent_metadata,
    )
    return _with_key(agent, api_key)


@router.get("/me", response_model=AgentResponse)
async def who_am_i(agent: Agent = Depends(get_current_agent)):
    return agent


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(
    agent_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_agent(db, tenant, agent_id)


@router.patch("/{agent_id}/status", response_model=AgentResponse)
async def update_agent_status(
    agent_id: str,
    data: AgentStatusUpdate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
    dispatcher: WorkflowDispatcher = Depends(get_dispatcher)
):
    agent = _load_agent(db, tenant, agent_id)
    return agent_registry.set_agent_status(db, tenant, dispatcher, agent, data.status, current_user)


@router.post("/{agent_id}/rotate-key", response_model=AgentKeyResponse)
async def rotate_agent_key(
    agent_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    agent = _load_agent(db, tenant, agent_id)
    api_key = agent_registry.rotate_api_key(db, agent, current_user)
    return _with_key(agent, api_key)


@router.post("/{agent_id}/revoke-key", response_model=AgentResponse)
async def revoke_agent_key(
    agent_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    agent = _load_agent(db, tenant, agent_id)
    return agent_registry.revoke_api_key(db, agent, current_user)
