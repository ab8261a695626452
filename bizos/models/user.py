"""
User Model

A user is a person inside one tenant. The same email can exist in several
tenants as unrelated users.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from bizos.database import Base
import uuid
import enum


class UserRole(str, enum.Enum):
    """
    ADMIN: manages users, event subscriptions, tool definitions, audit log
    MEMBER: builds workflows, emits events, answers agent confirmations
    VIEWER: read-only
    """
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


ROLE_RANK = {
    UserRole.VIEWER: 1,
    UserRole.MEMBER: 2,
    UserRole.ADMIN: 3,
}


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    email = Column(String(255), nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.MEMBER, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    # Self-registered accounts start unverified
    is_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="users")
    agent_sessions = relationship("AgentSession", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_user_tenant_email', 'tenant_id', 'email', unique=True),
        Index('idx_user_tenant_role', 'tenant_id', 'role'),
    )

    def __repr__(self):
        return f"<User {self.email} role={self.role} (tenant={self.tenant_id})>"

    def has_permission(self, required_role: UserRole) -> bool:
        """True when this user's role ranks at or above ``required_role``."""
        return ROLE_RANK[self.role] >= ROLE_RANK[required_role]
