import httpx
import pytest

from bizos.core.exceptions import UnknownEventTypeError, InvalidInputError
from bizos.models.event import Event, EventType, EventSubscription
from bizos.services.dispatcher import WorkflowDispatcher
from bizos.services.event_bus import BUILT_IN_EVENT_TYPES, emit_event, seed_event_types


def subscribe(db, tenant, subscriber_type, subscriber_id, config=None, is_active=True, event_type="contact.created"):
    subscription = EventSubscription(
        tenant_id=tenant.id,
        event_type=event_type,
        subscriber_type=subscriber_type,
        subscriber_id=subscriber_id,
        config=config or {},
        is_active=is_active,
    )
    db.add(subscription)
    db.commit()
    return subscription


def test_seed_is_idempotent(db):
    assert db.query(EventType).count() == len(BUILT_IN_EVENT_TYPES)
    assert seed_event_types(db) == 0
    assert db.query(EventType).filter(EventType.is_built_in == True).count() == len(BUILT_IN_EVENT_TYPES)  # noqa: E712


def test_unknown_event_type_writes_nothing(db, tenant, dispatcher):
    with pytest.raises(UnknownEventTypeError):
        emit_event(db, tenant, dispatcher, "contact.exploded", {"id": "c1"})
    assert db.query(Event).count() == 0


def test_invalid_source_type(db, tenant, dispatcher):
    with pytest.raises(InvalidInputError):
        emit_event(db, tenant, dispatcher, "contact.created", source_type="satellite")
    assert db.query(Event).count() == 0


def test_no_subscribers(db, tenant, dispatcher, executor):
    event = emit_event(db, tenant, dispatcher, "contact.created", {"id": "c1"})

    assert event.dispatched_to == []
    assert event.payload == {"id": "c1"}
    assert executor.requests == []


def test_fans_out_to_every_active_subscriber(db, tenant, dispatcher, executor):
    wf = subscribe(db, tenant, "workflow", "wf-1")
    hook = subscribe(db, tenant, "webhook", "crm-sync", {"url": "http://hooks.test/crm"})
    agent = subscribe(db, tenant, "agent", "assistant")
    subscribe(db, tenant, "workflow", "wf-off", is_active=False)
    subscribe(db, tenant, "workflow", "wf-other-type", event_type="task.created")

    event = emit_event(
        db, tenant, dispatcher, "contact.created", {"id": "c1"},
        source_type="agent", source_id="assistant", correlation_id="corr-1",
    )

    assert [d["subscription_id"] for d in event.dispatched_to] == [wf.id, hook.id, agent.id]
    assert event.correlation_id == "corr-1"

    urls = [str(r.url) for r in executor.requests]
    assert urls == ["http://executor.test/api/v1/workflow-runs", "http://hooks.test/crm"]

    workflow_body, webhook_body = executor.bodies()
    assert workflow_body["workflow_id"] == "wf-1"
    assert workflow_body["trigger_type"] == "event"
    assert workflow_body["trigger_data"]["event_id"] == event.id
    assert webhook_body["event_type"] == "contact.created"
    assert executor.requests[1].headers["X-Event-Id"] == event.id


def test_other_tenants_subscriptions_are_ignored(db, tenant, other_tenant, dispatcher, executor):
    subscribe(db, other_tenant, "workflow", "wf-foreign")

    event = emit_event(db, tenant, dispatcher, "contact.created")

    assert event.dispatched_to == []
    assert executor.requests == []


def test_failed_delivery_does_not_stop_fan_out(db, tenant):
    def handler(request):
        if request.url.host == "down.test":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200)

    dispatcher = WorkflowDispatcher(
        executor_url="http://executor.test/run",
        secret="s",
        transport=httpx.MockTransport(handler),
    )
    subscribe(db, tenant, "webhook", "down", {"url": "http://down.test/hook"})
    subscribe(db, tenant, "webhook", "up", {"url": "http://up.test/hook"})

    event = emit_event(db, tenant, dispatcher, "contact.created")

    assert [d["subscriber_id"] for d in event.dispatched_to] == ["down", "up"]
    dispatcher.close()


def test_unusable_webhook_url_does_not_stop_fan_out(db, tenant, dispatcher, executor):
    subscribe(db, tenant, "webhook", "numeric-url", {"url": 123})
    subscribe(db, tenant, "webhook", "broken-host", {"url": "http://[bad"})
    subscribe(db, tenant, "webhook", "up", {"url": "http://up.test/hook"})

    event = emit_event(db, tenant, dispatcher, "contact.created", {"id": "c1"})

    assert [d["subscriber_id"] for d in event.dispatched_to] == ["numeric-url", "broken-host", "up"]
    assert "http://up.test/hook" in [str(r.url) for r in executor.requests]
    assert db.query(Event).count() == 1


def test_workflow_subscriber_skipped_when_executor_unconfigured(db, tenant):
    requests = []
    dispatcher = WorkflowDispatcher(
        executor_url="",
        secret="",
        transport=httpx.MockTransport(lambda r: requests.append(r) or httpx.Response(200)),
    )
    subscribe(db, tenant, "workflow", "wf-1")

    event = emit_event(db, tenant, dispatcher, "contact.created")

    assert len(event.dispatched_to) == 1
    assert requests == []
    dispatcher.close()
