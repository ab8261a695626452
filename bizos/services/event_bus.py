"""
Event Bus

emit_event() logs an event and fans it out to the tenant's active
subscriptions for that event type:

- workflow subscribers are dispatched to the workflow executor with
  trigger_type "event";
- webhook subscribers get a POST to ``config["url"]``;
- agent subscribers need nothing further, they poll the events log.

The list of matched subscriptions is stored on the event as
``dispatched_to``. A failed delivery is logged and does not stop the
fan-out; there is no retry.
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from bizos.models.event import Event, EventSubscription, EventType, SOURCE_TYPES
from bizos.models.tenant import Tenant
from bizos.core.exceptions import UnknownEventTypeError, InvalidInputError
from bizos.services.dispatcher import WorkflowDispatcher, DispatchError

logger = logging.getLogger(__name__)

# (name, display_name, description, category)
BUILT_IN_EVENT_TYPES = [
    ("contact.created", "Contact Created", "Fired when a new contact is created", "crm"),
    ("contact.updated", "Contact Updated", "Fired when a contact is updated", "crm"),
    ("contact.deleted", "Contact Deleted", "Fired when a contact is deleted", "crm"),
    ("task.created", "Task Created", "Fired when a new task is created", "tasks"),
    ("task.completed", "Task Completed", "Fired when a task is completed", "tasks"),
    ("task.overdue", "Task Overdue", "Fired when a task becomes overdue", "tasks"),
    ("workflow.started", "Workflow Started", "Fired when a workflow run begins", "workflows"),
    ("workflow.completed", "Workflow Completed", "Fired when a workflow run completes", "workflows"),
    ("workflow.failed", "Workflow Failed", "Fired when a workflow run fails", "workflows"),
    ("agent.registered", "Agent Registered", "Fired when a new agent is registered", "agents"),
    ("agent.status_changed", "Agent Status Changed", "Fired when an agent status changes", "agents"),
    ("agent.error", "Agent Error", "Fired when an agent encounters an error", "agents"),
    ("integration.connected", "Integration Connected", "Fired when an integration is connected", "integrations"),
    ("integration.disconnected", "Integration Disconnected", "Fired when an integration is disconnected", "integrations"),
    ("integration.error", "Integration Error", "Fired when an integration encounters an error", "integrations"),
]


def seed_event_types(db: Session) -> int:
    """Insert any missing built-in event types. Returns how many were added."""
    existing = {name for (name,) in db.query(EventType.name).all()}
    added = 0
    for name, display_name, description, category in BUILT_IN_EVENT_TYPES:
        if name in existing:
            continue
        db.add(EventType(
            name=name,
            display_name=display_name,
            description=description,
            category=category,
            is_built_in=True,
        ))
        added += 1

    if added:
        db.commit()
        logger.info(f"Seeded {added} built-in event types")
    return added


def get_event_type(db: Session, name: str) -> EventType:
    """Load an event type or raise UnknownEventTypeError."""
    event_type = db.query(EventType).filter(EventType.name == name).first()
    if not event_type:
        raise UnknownEventTypeError(name)
    return event_type


def active_subscriptions(db: Session, tenant_id: str, event_type: str) -> List[EventSubscription]:
    """Active subscriptions of one tenant for one event type."""
    return db.query(EventSubscription).filter(
        EventSubscription.tenant_id == tenant_id,
        EventSubscription.event_type == event_type,
        EventSubscription.is_active == True  # noqa: E712
    ).order_by(EventSubscription.created_at.asc()).all()


def _deliver(
    dispatcher: WorkflowDispatcher,
    tenant: Tenant,
    event: Event,
    subscription: EventSubscription,
) -> None:
    if subscription.subscriber_type == "workflow":
        if not dispatcher.is_configured:
            logger.warning(
                "Workflow executor not configured - skipping workflow subscriber",
                extra={"tenant_id": tenant.id, "event_id": event.id},
            )
            return
        dispatcher.dispatch_workflow(
            tenant_slug=tenant.slug,
            workflow_id=subscription.subscriber_id,
            trigger_type="event",
            trigger_data={
                "event_id": event.id,
                "event_type": event.event_type,
                "payload": event.payload,
            },
        )

    elif subscription.subscriber_type == "webhook":
        url = (subscription.config or {}).get("url")
        if url:
            dispatcher.post_webhook(url, event.id, event.event_type, event.payload)

    elif subscription.subscriber_type == "agent":
        # Agents read the events log filtered by their subscriptions
        pass

    else:
        logger.warning(f"Unknown subscriber type: {subscription.subscriber_type}")


def emit_event(
    db: Session,
    tenant: Tenant,
    dispatcher: WorkflowDispatcher,
    event_type: str,
    payload: Optional[Dict[str, Any]] = None,
    source_type: str = "system",
    source_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> Event:
    """
    Record an event and fan it out to matching subscribers.

    Raises UnknownEventTypeError before anything is written when the event
    type is not in the catalogue.
    """
    get_event_type(db, event_type)

    if source_type not in SOURCE_TYPES:
        raise InvalidInputError(f"Invalid source_type: {source_type}")

    event = Event(
        tenant_id=tenant.id,
        event_type=event_type,
        payload=payload or {},
        source_type=source_type,
        source_id=source_id,
        correlation_id=correlation_id,
        dispatched_to=[],
    )
    db.add(event)
    db.flush()

    dispatch_targets = []
    for subscription in active_subscriptions(db, tenant.id, event_type):
        dispatch_targets.append({
            "subscription_id": subscription.id,
            "subscriber_type": subscription.subscriber_type,
            "subscriber_id": subscription.subscriber_id,
        })
        try:
            _deliver(dispatcher, tenant, event, subscription)
        except DispatchError as e:
            logger.warning(
                f"Event delivery to {subscription.subscriber_type}:{subscription.subscriber_id} failed: {e}",
                extra={"tenant_id": tenant.id, "event_id": event.id},
            )

    # Reassign so the JSON column is flagged dirty
    event.dispatched_to = dispatch_targets
    db.commit()
    db.refresh(event)

    logger.info(
        f"Event {event_type} emitted to {len(dispatch_targets)} subscriber(s)",
        extra={"tenant_id": tenant.id, "event_id": event.id},
    )
    return event
