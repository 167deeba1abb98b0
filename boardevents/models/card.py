import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boardevents.db import Base
from boardevents.models.eventable import Eventable


class CardStatus(enum.Enum):
    drafted = "drafted"
    published = "published"


class Card(Eventable, Base):
    __tablename__ = "cards"
    __table_args__ = (
        UniqueConstraint("account_id", "number", name="uq_cards_account_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False, index=True
    )
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id"), nullable=False, index=True
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus), default=CardStatus.drafted
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id")
    )
    postponed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    board = relationship("Board", back_populates="cards")
    creator = relationship("User", foreign_keys=[creator_id])
    closed_by = relationship("User", foreign_keys=[closed_by_id])
    assignments = relationship(
        "Assignment", back_populates="card", cascade="all, delete-orphan"
    )
    watches = relationship("Watch", back_populates="card", cascade="all, delete-orphan")
    comments = relationship(
        "Comment",
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )

    @property
    def published(self) -> bool:
        return self.status == CardStatus.published

    @property
    def closed(self) -> bool:
        return self.closed_at is not None

    @property
    def postponed(self) -> bool:
        return self.postponed_at is not None

    # Drafts leave no audit trail until they are published.
    def should_track_event(self) -> bool:
        return self.published

    def on_event_created(self, db, event) -> None:
        from boardevents.services.events.system_commenter import create_system_comment

        create_system_comment(db, event)
        self.last_active_at = event.created_at

    def event_subject(self) -> str:
        return self.title

    def to_webhook_dict(self) -> dict:
        return {
            "type": self.eventable_type(),
            "id": str(self.id),
            "number": self.number,
            "title": self.title,
            "status": self.status.value,
            "closed": self.closed,
            "postponed": self.postponed,
            "board_id": str(self.board_id),
            "last_active_at": self.last_active_at.isoformat()
            if self.last_active_at
            else None,
        }


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("card_id", "assignee_id", name="uq_assignments_card_assignee"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cards.id"), nullable=False, index=True
    )
    assignee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    assigner_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    card = relationship("Card", back_populates="assignments")
    assignee = relationship("User", foreign_keys=[assignee_id])


class Watch(Base):
    __tablename__ = "watches"
    __table_args__ = (
        UniqueConstraint("card_id", "user_id", name="uq_watches_card_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cards.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    watching: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    card = relationship("Card", back_populates="watches")
    user = relationship("User")


class Comment(Eventable, Base):
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False, index=True
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cards.id"), nullable=False, index=True
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    card = relationship("Card", back_populates="comments")
    creator = relationship("User")

    def should_track_event(self) -> bool:
        return not self.is_system and not (self.creator and self.creator.is_system)

    def on_event_created(self, db, event) -> None:
        self.card.last_active_at = event.created_at

    def event_board(self):
        return self.card.board if self.card else None

    def event_subject(self) -> str:
        return self.card.title if self.card else ""

    def to_webhook_dict(self) -> dict:
        return {
            "type": self.eventable_type(),
            "id": str(self.id),
            "body": self.body,
            "card": {
                "id": str(self.card_id),
                "number": self.card.number if self.card else None,
                "title": self.card.title if self.card else None,
            },
        }


class Mention(Base):
    """A user mentioned from a card description or a comment."""

    __tablename__ = "mentions"
    __table_args__ = (
        UniqueConstraint(
            "source_type", "source_id", "mentionee_id", name="uq_mentions_source_user"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False
    )
    source_type: Mapped[str] = mapped_column(String(60), nullable=False)
    source_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    mentioner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    mentionee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    mentionee = relationship("User", foreign_keys=[mentionee_id])
