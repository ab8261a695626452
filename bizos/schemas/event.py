"""
Event Bus Schemas
"""
from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime

_http_url = TypeAdapter(AnyHttpUrl)


def validate_webhook_config(config: Dict[str, Any]) -> None:
    """A webhook subscriber's ``config.url``, when given, must be an http(s) URL string."""
    url = config.get("url")
    if url is None:
        return
    if not isinstance(url, str):
        raise ValueError("config.url must be a string")
    try:
        _http_url.validate_python(url)
    except ValidationError:
        raise ValueError(f"config.url is not a valid http(s) URL: {url!r}")


class EventTypeResponse(BaseModel):
    name: str
    display_name: str
    description: Optional[str]
    category: str
    is_built_in: bool

    class Config:
        from_attributes = True


class SubscriptionCreate(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100)
    subscriber_type: str = Field(..., pattern="^(workflow|agent|webhook)$")
    subscriber_id: str = Field(..., min_length=1, max_length=255)
    config: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    @model_validator(mode="after")
    def check_webhook_url(self):
        if self.subscriber_type == "webhook":
            validate_webhook_config(self.config)
        return self


class SubscriptionUpdate(BaseModel):
    # The webhook URL is checked in the route, where the subscriber type is known
    config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None

    @field_validator("config", "is_active")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class SubscriptionResponse(BaseModel):
    id: str
    tenant_id: str
    event_type: str
    subscriber_type: str
    subscriber_id: str
    config: Dict[str, Any]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EmitEventRequest(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100)
    payload: Dict[str, Any] = Field(default_factory=dict)
    source_type: str = Field("user", pattern="^(agent|workflow|system|webhook|user)$")
    source_id: Optional[str] = None
    correlation_id: Optional[str] = None


class EventResponse(BaseModel):
    id: str
    tenant_id: str
    event_type: str
    payload: Dict[str, Any]
    source_type: str
    source_id: Optional[str]
    correlation_id: Optional[str]
    dispatched_to: List[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
