from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    user_id: UUID
    event_id: UUID
    creator_id: UUID
    read: bool
    read_at: datetime | None = None
    created_at: datetime


class MarkAllReadResponse(BaseModel):
    updated: int
