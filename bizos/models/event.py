"""
Event Bus Models

EventType is the global catalogue of event names (seeded with the built-in
types, extendable by admins). EventSubscription and Event are tenant-scoped:
a tenant's emitted events only fan out to that tenant's subscriptions.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, JSON
from datetime import datetime
from bizos.database import Base
import uuid

SUBSCRIBER_TYPES = ("workflow", "agent", "webhook")
SOURCE_TYPES = ("agent", "workflow", "system", "webhook", "user")


class EventType(Base):
    __tablename__ = "event_types"

    name = Column(String(100), primary_key=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), default="system", nullable=False, index=True)
    # Optional JSON schema describing the payload
    payload_schema = Column("schema", JSON, nullable=True)
    is_built_in = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EventType {self.name}>"


class EventSubscription(Base):
    __tablename__ = "event_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    event_type = Column(
        String(100),
        ForeignKey("event_types.name", ondelete="CASCADE"),
        nullable=False
    )

    subscriber_type = Column(String(20), nullable=False)  # see SUBSCRIBER_TYPES
    subscriber_id = Column(String(255), nullable=False)
    # webhook subscribers carry {"url": ...}
    config = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        # The fan-out query
        Index('idx_subscription_tenant_type_active', 'tenant_id', 'event_type', 'is_active'),
        Index(
            'idx_subscription_unique',
            'tenant_id', 'event_type', 'subscriber_type', 'subscriber_id',
            unique=True
        ),
    )

    def __repr__(self):
        return f"<EventSubscription {self.event_type} -> {self.subscriber_type}:{self.subscriber_id}>"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    event_type = Column(
        String(100),
        ForeignKey("event_types.name"),
        nullable=False,
        index=True
    )

    payload = Column(JSON, nullable=False, default=dict)
    source_type = Column(String(20), nullable=False)  # see SOURCE_TYPES
    source_id = Column(String(255), nullable=True)
    correlation_id = Column(String(255), nullable=True, index=True)

    # [{"subscription_id", "subscriber_type", "subscriber_id"}, ...]
    dispatched_to = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_event_source', 'source_type', 'source_id'),
    )

    def __repr__(self):
        return f"<Event {self.event_type} {self.id}>"
