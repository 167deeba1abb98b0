from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class BoardSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    board_id: UUID
    creator_id: UUID
    eventable_type: str
    eventable_id: UUID
    action: str
    particulars: dict
    created_at: datetime
    creator: UserSummary | None = None
    board: BoardSummary | None = None


class EventDescription(BaseModel):
    event_id: UUID
    viewer_id: UUID | None = None
    description: str
