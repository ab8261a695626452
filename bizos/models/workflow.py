"""
Workflow Models

A workflow is a tenant-owned list of steps plus a trigger. The scheduler
dispatches ``scheduled`` workflows whose ``trigger_config["cron"]`` matches
the current minute; the event bus dispatches workflows subscribed to an
event type. Either way the executor intake records a WorkflowRun.

ScheduledWorkflowRun is the scheduler's dispatch ledger. The unique
(workflow_id, scheduled_at) constraint is what guarantees one dispatch per
workflow per minute even if two ticks overlap.
"""
from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from bizos.database import Base
import uuid

TRIGGER_TYPES = ("manual", "scheduled", "webhook", "event")
RUN_STATUSES = ("pending", "running", "completed", "failed", "cancelled")
SCHEDULED_RUN_STATUSES = ("pending", "dispatched", "failed")


class Workflow(Base):
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    trigger_type = Column(String(20), nullable=False, index=True)  # see TRIGGER_TYPES
    trigger_config = Column(JSON, nullable=False, default=dict)
    steps = Column(JSON, nullable=False, default=list)

    # Paused workflows keep their schedule but are never dispatched
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_by = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="workflows")
    runs = relationship("WorkflowRun", back_populates="workflow", cascade="all, delete-orphan")
    scheduled_runs = relationship("ScheduledWorkflowRun", back_populates="workflow", cascade="all, delete-orphan")

    __table_args__ = (
        # The scheduler's query: active scheduled workflows
        Index('idx_workflow_active_trigger', 'is_active', 'trigger_type'),
    )

    def __repr__(self):
        return f"<Workflow {self.name} trigger={self.trigger_type} (tenant={self.tenant_id})>"

    @property
    def cron(self):
        if self.trigger_type != "scheduled" or not self.trigger_config:
            return None
        return self.trigger_config.get("cron")


class WorkflowRun(Base):
    __tablename__ = "workflow_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    workflow_id = Column(
        String(36),
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status = Column(String(20), default="pending", nullable=False, index=True)  # see RUN_STATUSES
    trigger_type = Column(String(20), nullable=False)
    trigger_data = Column(JSON, nullable=False, default=dict)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    workflow = relationship("Workflow", back_populates="runs")

    def __repr__(self):
        return f"<WorkflowRun {self.id} workflow={self.workflow_id} status={self.status}>"


class ScheduledWorkflowRun(Base):
    __tablename__ = "scheduled_workflow_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    workflow_id = Column(
        String(36),
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False
    )

    # Start of the minute this run was due (naive UTC)
    scheduled_at = Column(DateTime, nullable=False)
    dispatched_at = Column(DateTime, nullable=True)
    status = Column(String(20), default="pending", nullable=False, index=True)  # see SCHEDULED_RUN_STATUSES
    response_status = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    workflow = relationship("Workflow", back_populates="scheduled_runs")

    __table_args__ = (
        UniqueConstraint('workflow_id', 'scheduled_at', name='uq_scheduled_run_minute'),
    )

    def __repr__(self):
        return f"<ScheduledWorkflowRun workflow={self.workflow_id} at={self.scheduled_at} status={self.status}>"
