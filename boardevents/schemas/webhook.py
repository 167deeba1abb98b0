from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from boardevents.models.webhook import WebhookDeliveryState


class WebhookBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    url: str = Field(min_length=1, max_length=500)
    subscribed_actions: list[str] = Field(default_factory=list)


class WebhookCreate(WebhookBase):
    signing_secret: str | None = Field(default=None, min_length=16, max_length=255)


class WebhookUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    url: str | None = Field(default=None, min_length=1, max_length=500)
    subscribed_actions: list[str] | None = None


class WebhookRead(WebhookBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    board_id: UUID
    active: bool
    created_at: datetime
    updated_at: datetime


class WebhookDeliveryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    webhook_id: UUID
    event_id: UUID
    state: WebhookDeliveryState
    request: dict | None = None
    response: dict | None = None
    created_at: datetime
    updated_at: datetime


class WebhookCreated(WebhookRead):
    signing_secret: str
