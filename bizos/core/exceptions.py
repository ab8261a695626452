"""
HTTP-facing exceptions.

Everything here subclasses HTTPException so routes and services can raise
directly. bizos.main installs handlers that add a ``type`` field for the
authentication, scheduler and isolation errors.
"""
from fastapi import HTTPException, status


class ResourceNotFound(HTTPException):
    """404 for a tenant-scoped resource. Subclasses set ``resource``."""

    resource = "Resource"

    def __init__(self, identifier: str = ""):
        detail = f"{self.resource} not found"
        if identifier:
            detail = f"{detail}: {identifier}"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class TenantNotFoundError(ResourceNotFound):
    resource = "Tenant"


class UserNotFoundError(ResourceNotFound):
    resource = "User"


class WorkflowNotFoundError(ResourceNotFound):
    resource = "Workflow"


class AgentNotFoundError(ResourceNotFound):
    resource = "Agent"


class SessionNotFoundError(ResourceNotFound):
    resource = "Agent session"


class SubscriptionNotFoundError(ResourceNotFound):
    resource = "Subscription"


class ConfirmationNotFoundError(ResourceNotFound):
    resource = "Confirmation"


class ToolDefinitionNotFoundError(ResourceNotFound):
    resource = "Tool definition"


class ConfirmationNotPendingError(HTTPException):
    def __init__(self, current_status: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Confirmation is no longer pending (status={current_status})"
        )


class UnknownEventTypeError(HTTPException):
    """The event type is not in the global catalogue."""

    def __init__(self, event_type: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown event type: {event_type}"
        )


class InvalidInputError(HTTPException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthenticationError(HTTPException):
    """Rejected bearer token, agent API key or login."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class SchedulerAuthError(HTTPException):
    """Missing or wrong ``x-scheduler-secret`` on a machine-to-machine route."""

    def __init__(self, detail: str = "Invalid scheduler secret"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class TenantIsolationError(HTTPException):
    """
    A request tried to reach across tenants.

    Always logged at ERROR by the handler in bizos.main.
    """

    def __init__(self, detail: str = "Tenant isolation violation"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class RateLimitExceeded(HTTPException):
    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )
