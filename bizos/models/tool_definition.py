"""
Tool Definition Model

Describes a tool the agent may call: its JSON input schema, the capability it
belongs to, and the platform action it maps onto. Inactive tools stay in the
catalogue but are not offered to the agent.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, JSON
from datetime import datetime
from bizos.database import Base
import uuid


class ToolDefinition(Base):
    __tablename__ = "tool_definitions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    capability_name = Column(String(100), nullable=False)
    input_schema = Column(JSON, nullable=False, default=dict)
    action_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_tool_tenant_name', 'tenant_id', 'name', unique=True),
        Index('idx_tool_tenant_capability', 'tenant_id', 'capability_name'),
    )

    def __repr__(self):
        return f"<ToolDefinition {self.name} ({self.capability_name})>"
