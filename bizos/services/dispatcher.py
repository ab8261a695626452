"""
Outbound Dispatch

HTTP delivery to the workflow executor and to webhook subscribers.

Delivery is fire-once: there is no retry, backoff or ordering guarantee.
Callers record the outcome (scheduled-run status, event dispatch list) and
carry on when a delivery fails.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging

import httpx

from bizos.config import get_settings

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """Raised when an outbound delivery fails or is answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WorkflowDispatcher:
    """
    Posts trigger payloads to the workflow executor and to webhook URLs.

    ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        executor_url: str,
        secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.executor_url = executor_url
        self.secret = secret
        self.client = httpx.Client(timeout=timeout, transport=transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.executor_url) and bool(self.secret)

    def close(self) -> None:
        self.client.close()

    def _post(self, url: str, body: Dict[str, Any], headers: Dict[str, str]) -> int:
        try:
            response = self.client.post(url, json=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DispatchError(f"POST {url} failed: {e}") from e
        except (TypeError, ValueError) as e:
            # Unusable URL stored in a subscription config
            raise DispatchError(f"Cannot POST to {url!r}: {e}") from e

        if response.status_code >= 400:
            raise DispatchError(
                f"POST {url} returned {response.status_code}",
                status_code=response.status_code,
            )
        return response.status_code

    def dispatch_workflow(
        self,
        tenant_slug: str,
        workflow_id: str,
        trigger_type: str,
        trigger_data: Dict[str, Any],
    ) -> int:
        """Send one workflow trigger to the executor. Returns the HTTP status."""
        if not self.is_configured:
            raise DispatchError("Workflow executor URL or scheduler secret not configured")

        body = {
            "workflow_id": workflow_id,
            "trigger_type": trigger_type,
            "trigger_data": trigger_data,
        }
        headers = {
            "x-scheduler-secret": self.secret,
            "X-Tenant-Slug": tenant_slug,
        }
        status_code = self._post(self.executor_url, body, headers)
        logger.debug(
            f"Dispatched workflow {workflow_id} ({trigger_type}) -> {status_code}",
            extra={"workflow_id": workflow_id},
        )
        return status_code

    def post_webhook(
        self,
        url: str,
        event_id: str,
        event_type: str,
        payload: Dict[str, Any],
    ) -> int:
        """Deliver an event to a webhook subscriber."""
        body = {
            "event_id": event_id,
            "event_type": event_type,
            "payload": payload,
            "timestamp": datetime.utcnow().isoformat(),
        }
        headers = {
            "X-Event-Type": event_type,
            "X-Event-Id": event_id,
        }
        return self._post(url, body, headers)


def get_dispatcher():
    """
    FastAPI dependency yielding a dispatcher built from settings.

    Tests override this with one backed by httpx.MockTransport.
    """
    settings = get_settings()
    dispatcher = WorkflowDispatcher(
        executor_url=settings.WORKFLOW_EXECUTOR_URL,
        secret=settings.SCHEDULER_SECRET,
        timeout=settings.DISPATCH_TIMEOUT_SECONDS,
    )
    try:
        yield dispatcher
    finally:
        dispatcher.close()
