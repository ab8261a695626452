"""
Event Bus Endpoints

RBAC:
- Event type catalogue and event log: All authenticated users
- Emit an event: Member role or higher
- Manage subscriptions: Admin only
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from bizos.database import get_db
from bizos.models.user import User
from bizos.models.tenant import Tenant
from bizos.models.event import Event, EventType, EventSubscription
from bizos.models.workflow import Workflow
from bizos.models.agent import Agent
from bizos.models.audit import record_audit
from bizos.schemas.event import (
    EventTypeResponse,
    SubscriptionCreate,
    SubscriptionUpdate,
    validate_webhook_config,
    SubscriptionResponse,
    EmitEventRequest,
    EventResponse,
    EventListResponse,
)
from bizos.api.deps import get_current_user, get_current_tenant, require_admin, require_member
from bizos.core.exceptions import SubscriptionNotFoundError, InvalidInputError
from bizos.services.dispatcher import WorkflowDispatcher, get_dispatcher
from bizos.services.event_bus import emit_event, get_event_type
from bizos.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def _load_subscription(db: Session, tenant: Tenant, subscription_id: str) -> EventSubscription:
    subscription = db.query(EventSubscription).filter(
        EventSubscription.id == subscription_id,
        EventSubscription.tenant_id == tenant.id
    ).first()
    if not subscription:
        raise SubscriptionNotFoundError(subscription_id)
    return subscription


def _check_subscriber(db: Session, tenant: Tenant, subscriber_type: str, subscriber_id: str) -> None:
    """Workflow and agent subscribers must exist in the tenant. Webhook ids are free-form labels."""
    model = {"workflow": Workflow, "agent": Agent}.get(subscriber_type)
    if model is None:
        return
    found = db.query(model.id).filter(
        model.id == subscriber_id,
        model.tenant_id == tenant.id
    ).first()
    if not found:
        raise InvalidInputError(f"Unknown {subscriber_type}: {subscriber_id}")


@router.get("/types", response_model=List[EventTypeResponse])
async def list_event_types(
    category: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(EventType)
    if category:
        query = query.filter(EventType.category == category)
    return query.order_by(EventType.category, EventType.name).all()


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
async def list_subscriptions(
    event_type: Optional[str] = None,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(EventSubscription).filter(EventSubscription.tenant_id == tenant.id)
    if event_type:
        query = query.filter(EventSubscription.event_type == event_type)
    return query.order_by(EventSubscription.created_at.asc()).all()


@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Subscribe a workflow, agent or webhook to an event type.

    Webhook subscriptions need ``config.url``; workflow and agent subscribers
    must exist in the tenant. A subscriber can hold only one subscription
    per event type.
    """
    get_event_type(db, data.event_type)

    if data.subscriber_type == "webhook" and not data.config.get("url"):
        raise InvalidInputError("Webhook subscriptions require config.url")
    _check_subscriber(db, tenant, data.subscriber_type, data.subscriber_id)

    existing = db.query(EventSubscription).filter(
        EventSubscription.tenant_id == tenant.id,
        EventSubscription.event_type == data.event_type,
        EventSubscription.subscriber_type == data.subscriber_type,
        EventSubscription.subscriber_id == data.subscriber_id
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Subscription already exists"
        )

    subscription = EventSubscription(tenant_id=tenant.id, **data.model_dump())
    db.add(subscription)
    db.flush()
    record_audit(
        db,
        action="subscription.created",
        resource_type="event_subscription",
        resource_id=subscription.id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=current_user.id,
        details={"event_type": data.event_type, "subscriber_type": data.subscriber_type},
    )
    db.commit()
    db.refresh(subscription)

    logger.info(
        f"Subscription created: {data.subscriber_type}:{data.subscriber_id} -> {data.event_type}",
        extra={"tenant_id": tenant.id}
    )
    return subscription


@router.patch("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: str,
    data: SubscriptionUpdate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    subscription = _load_subscription(db, tenant, subscription_id)
    update_data = data.model_dump(exclude_unset=True)

    if subscription.subscriber_type == "webhook" and "config" in update_data:
        try:
            validate_webhook_config(update_data["config"])
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e)
            )
        if not update_data["config"].get("url"):
            raise InvalidInputError("Webhook subscriptions require config.url")

    for field, value in update_data.items():
        setattr(subscription, field, value)

    db.commit()
    db.refresh(subscription)
    return subscription


@router.delete("/subscriptions/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    subscription = _load_subscription(db, tenant, subscription_id)

    db.delete(subscription)
    record_audit(
        db,
        action="subscription.deleted",
        resource_type="event_subscription",
        resource_id=subscription_id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=current_user.id,
    )
    db.commit()

    logger.info(f"Subscription deleted: {subscription_id} by {current_user.id}")
    return None


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def emit(
    data: EmitEventRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
    dispatcher: WorkflowDispatcher = Depends(get_dispatcher)
):
    """
    Emit an event and fan it out to the tenant's subscribers.

    Unknown event types are rejected with 400 and nothing is recorded.
    """
    return emit_event(
        db,
        tenant,
        dispatcher,
        event_type=data.event_type,
        payload=data.payload,
        source_type=data.source_type,
        source_id=data.source_id or (current_user.id if data.source_type == "user" else None),
        correlation_id=data.correlation_id,
    )


@router.get("", response_model=EventListResponse)
async def list_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    event_type: Optional[str] = None,
    correlation_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """The tenant's event log, newest first."""
    query = db.query(Event).filter(Event.tenant_id == tenant.id)

    if event_type:
        query = query.filter(Event.event_type == event_type)
    if correlation_id:
        query = query.filter(Event.correlation_id == correlation_id)

    total = query.count()

    offset = (page - 1) * page_size
    events = query.order_by(Event.created_at.desc()).offset(offset).limit(page_size).all()

    return EventListResponse(
        events=events,
        total=total,
        page=page,
        page_size=page_size
    )
