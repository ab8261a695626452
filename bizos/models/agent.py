"""
Agent Models

An Agent is a registered automation that calls the API with its own key.
An AgentSession is a conversation between a user and the agent. Commands
are queued into a session; when the agent wants to run a sensitive tool it
files an AgentConfirmation and waits for a human to approve or reject it
before the expiry window closes.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from bizos.database import Base
import uuid

COMMAND_TYPES = ("chat", "task", "cancel")
COMMAND_STATUSES = ("pending", "received", "processing", "completed", "failed", "cancelled")
CONFIRMATION_STATUSES = ("pending", "approved", "rejected", "expired")

AGENT_TYPES = ("autonomous", "supervised", "tool")
AGENT_STATUSES = ("active", "inactive", "suspended")


class Agent(Base):
    """
    A registered agent that calls the API with its own key.

    Only the SHA-256 of the key is stored; ``api_key_prefix`` is what the
    admin UI shows. Clearing both revokes the key.
    """
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(100), nullable=False)
    agent_type = Column(String(20), nullable=False)
    # New agents stay inactive until an admin turns them on
    status = Column(String(20), default="inactive", nullable=False)
    capabilities = Column(JSON, nullable=False, default=list)

    api_key_hash = Column(String(64), nullable=True, index=True)
    api_key_prefix = Column(String(32), nullable=True)

    health_status = Column(JSON, nullable=False, default=lambda: {"status": "unknown"})
    rate_limit_rpm = Column(Integer, default=60, nullable=False)
    agent_metadata = Column(JSON, nullable=False, default=dict)
    last_seen_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_agent_tenant_name', 'tenant_id', 'name', unique=True),
    )

    def __repr__(self):
        return f"<Agent {self.name} ({self.status}, tenant={self.tenant_id})>"

    @property
    def has_api_key(self) -> bool:
        return self.api_key_hash is not None


class AgentSession(Base):
    __tablename__ = "agent_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    message_count = Column(Integer, default=0, nullable=False)
    last_message_at = Column(DateTime, nullable=True)
    session_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    commands = relationship("AgentCommand", back_populates="session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<AgentSession {self.id} (tenant={self.tenant_id})>"

class AgentCommand(Base):
    __tablename__ = "agent_commands"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    session_id = Column(
        String(36),
        ForeignKey("agent_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(String(36), nullable=False)

    command_type = Column(String(20), nullable=False)  # see COMMAND_TYPES
    content = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # see COMMAND_STATUSES
    command_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    received_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    session = relationship("AgentSession", back_populates="commands")

    def __repr__(self):
        return f"<AgentCommand {self.command_type} status={self.status}>"

class AgentConfirmation(Base):
    __tablename__ = "agent_confirmations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    session_id = Column(
        String(36),
        ForeignKey("agent_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    command_id = Column(
        String(36),
        ForeignKey("agent_commands.id", ondelete="CASCADE"),
        nullable=True
    )

    tool_name = Column(String(255), nullable=False)
    tool_input = Column(JSON, nullable=False, default=dict)
    description = Column(Text, nullable=False)

    status = Column(String(20), default="pending", nullable=False)  # see CONFIRMATION_STATUSES
    expires_at = Column(DateTime, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    responded_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_confirmation_tenant_status', 'tenant_id', 'status', 'created_at'),
    )

    def __repr__(self):
        return f"<AgentConfirmation {self.tool_name} status={self.status}>"
