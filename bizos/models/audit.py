"""
Audit Log Model

Append-only record of actions taken by users, agents and the scheduler.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON
from datetime import datetime
from bizos.database import Base
import uuid


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # NULL for system-wide entries such as scheduled-run cleanup
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    actor_type = Column(String(20), nullable=False)  # user, agent, scheduler, system
    actor_id = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<AuditLog {self.action} {self.resource_type}:{self.resource_id}>"


def record_audit(db, action, resource_type, resource_id=None, tenant_id=None,
                 actor_type="system", actor_id=None, details=None):
    """Add an audit row to the session. The caller commits."""
    entry = AuditLog(
        tenant_id=tenant_id,
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or {},
    )
    db.add(entry)
    return entry
