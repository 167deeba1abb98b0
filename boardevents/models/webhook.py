import enum
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boardevents.db import Base


class WebhookDeliveryState(enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    errored = "errored"


class Webhook(Base):
    __tablename__ = "webhooks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    signing_secret: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    subscribed_actions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    board = relationship("Board")
    deliveries = relationship(
        "WebhookDelivery",
        back_populates="webhook",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    delinquency_tracker = relationship(
        "WebhookDelinquencyTracker",
        back_populates="webhook",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def subscribes_to(self, action: str) -> bool:
        return action in (self.subscribed_actions or [])


class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"
    __table_args__ = (
        UniqueConstraint("webhook_id", "event_id", name="uq_webhook_deliveries_webhook_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    webhook_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    state: Mapped[WebhookDeliveryState] = mapped_column(
        Enum(WebhookDeliveryState), default=WebhookDeliveryState.pending
    )
    request: Mapped[dict | None] = mapped_column(JSON)
    response: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    webhook = relationship("Webhook", back_populates="deliveries")
    event = relationship("Event", back_populates="webhook_deliveries")

    @property
    def succeeded(self) -> bool:
        if self.state != WebhookDeliveryState.completed or not self.response:
            return False
        code = self.response.get("code")
        return isinstance(code, int) and 200 <= code < 300


class WebhookDelinquencyTracker(Base):
    """Consecutive delivery failures for one webhook."""

    __tablename__ = "webhook_delinquency_trackers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    consecutive_failures_count: Mapped[int] = mapped_column(Integer, default=0)
    first_failure_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    webhook = relationship("Webhook", back_populates="delinquency_tracker")

    def reset(self) -> None:
        self.consecutive_failures_count = 0
        self.first_failure_at = None

    def record_failure(self, now: datetime) -> None:
        self.consecutive_failures_count = (self.consecutive_failures_count or 0) + 1
        if self.first_failure_at is None:
            self.first_failure_at = now

    def is_delinquent(self, now: datetime, threshold: int, duration: timedelta) -> bool:
        if self.first_failure_at is None:
            return False
        first_failure_at = self.first_failure_at
        # SQLite returns naive datetimes
        if first_failure_at.tzinfo is None:
            first_failure_at = first_failure_at.replace(tzinfo=UTC)
        return (
            self.consecutive_failures_count >= threshold
            and first_failure_at <= now - duration
        )
