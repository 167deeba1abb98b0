"""Event model: the immutable record of one state change on a board entity.

Events are written once by the event store inside the transaction that
changed the entity and are never updated afterwards. Notifications and
webhook deliveries hang off an event and are removed with it.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship

from boardevents.db import Base
from boardevents.models.eventable import eventables


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_board_chronological", "board_id", "created_at"),
        Index("ix_events_eventable", "eventable_type", "eventable_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False, index=True
    )
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id"), nullable=False
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    eventable_type: Mapped[str] = mapped_column(String(60), nullable=False)
    eventable_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    particulars: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    board = relationship("Board")
    creator = relationship("User")
    notifications = relationship(
        "Notification",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    webhook_deliveries = relationship(
        "WebhookDelivery",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def eventable(self):
        cached = getattr(self, "_eventable", None)
        if cached is None:
            session = object_session(self)
            if session is None:
                return None
            cached = eventables.load(session, self.eventable_type, self.eventable_id)
            self._eventable = cached
        return cached

    @eventable.setter
    def eventable(self, value) -> None:
        self._eventable = value
        self.eventable_type = value.eventable_type()
        self.eventable_id = value.id

    @property
    def assignee_ids(self) -> list[str]:
        return [str(value) for value in (self.particulars or {}).get("assignee_ids", [])]

    def __repr__(self) -> str:
        return f"<Event {self.action} {self.eventable_type}#{self.eventable_id}>"
