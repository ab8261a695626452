"""
Database Models

Every tenant-owned model carries tenant_id for isolation; the API layer
filters on it for every query.
"""
from bizos.models.tenant import Tenant
from bizos.models.user import User
from bizos.models.workflow import Workflow, WorkflowRun, ScheduledWorkflowRun
from bizos.models.event import EventType, EventSubscription, Event
from bizos.models.agent import Agent, AgentSession, AgentCommand, AgentConfirmation
from bizos.models.tool_definition import ToolDefinition
from bizos.models.audit import AuditLog

__all__ = [
    "Tenant",
    "User",
    "Workflow",
    "WorkflowRun",
    "ScheduledWorkflowRun",
    "EventType",
    "EventSubscription",
    "Event",
    "Agent",
    "AgentSession",
    "AgentCommand",
    "AgentConfirmation",
    "ToolDefinition",
    "AuditLog",
]
