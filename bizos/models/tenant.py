"""
Tenant Model

The tenant is the primary isolation boundary. Each tenant is a separate
customer workspace; every other row carries a tenant_id and every API query
filters on it.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from bizos.database import Base
import uuid


class Tenant(Base):
    __tablename__ = "tenants"

    # UUIDs avoid enumeration and stay unique across systems
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Tenant identification
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    # Subdomain for tenant routing (e.g., acme.bizos.app)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Plan tier - affects rate limits
    plan = Column(
        String(20),
        default="free",
        nullable=False
    )  # free, starter, business, professional, enterprise

    # Per-tenant overrides of the global rate limit (NULL = use default)
    rate_limit_per_minute = Column(Integer, nullable=True)
    rate_limit_burst = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    admin_email = Column(String(255), nullable=False)

    # Relationships
    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")
    workflows = relationship("Workflow", back_populates="tenant", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_tenant_active_subdomain', 'is_active', 'subdomain'),
    )

    def __repr__(self):
        return f"<Tenant {self.slug}>"
