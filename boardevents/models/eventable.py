"""Eventable capability for board entities.

Models that record events about their own state changes mix in
``Eventable`` and are registered with ``eventables`` at startup (see
``boardevents.models``). An event refers to its eventable by the pair
``(eventable_type, eventable_id)``; the registry maps the type name back to
the model class.

Usage:
    card.track_event(db, "assigned", creator=user, assignee_ids=[str(u.id)])
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from boardevents.models.board import Board
    from boardevents.models.event import Event
    from boardevents.models.account import User


def _underscore(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class Eventable:
    """Mixin for models that produce events.

    Subclasses override the hooks they need; the defaults track every
    change, react to nothing and derive the action prefix from the class
    name (``CardTemplate`` -> ``card_template``).
    """

    def should_track_event(self) -> bool:
        return True

    def on_event_created(self, db: Session, event: Event) -> None:
        """Synchronous reaction, runs inside the triggering transaction."""

    @classmethod
    def event_action_prefix(cls) -> str:
        return _underscore(cls.__name__)

    @classmethod
    def eventable_type(cls) -> str:
        return cls.__name__

    def event_board(self) -> Board | None:
        return getattr(self, "board", None)

    def event_subject(self) -> str:
        return f"{self.eventable_type()} {getattr(self, 'id', '')}".strip()

    def to_webhook_dict(self) -> dict[str, Any]:
        return {"type": self.eventable_type(), "id": str(getattr(self, "id", ""))}

    def track_event(
        self,
        db: Session,
        verb: str,
        *,
        creator: User | None,
        board: Board | None = None,
        **particulars: Any,
    ) -> Event | None:
        """Record ``{prefix}_{verb}`` for this entity.

        Returns the new event, or None when ``should_track_event`` is false.
        """
        from boardevents.services.events.store import record_event

        return record_event(
            db,
            action=f"{self.event_action_prefix()}_{verb}",
            eventable=self,
            creator=creator,
            board=board if board is not None else self.event_board(),
            particulars=particulars,
        )


class EventableRegistry:
    """Explicit mapping of eventable type names to model classes."""

    def __init__(self):
        self._models: dict[str, type] = {}

    def register(self, model: type) -> type:
        if not issubclass(model, Eventable):
            raise TypeError(f"{model.__name__} does not implement Eventable")
        self._models[model.eventable_type()] = model
        return model

    def is_registered(self, model: type) -> bool:
        if not issubclass(model, Eventable):
            return False
        return self._models.get(model.eventable_type()) is model

    def resolve(self, type_name: str) -> type:
        try:
            return self._models[type_name]
        except KeyError as exc:
            raise LookupError(f"Unknown eventable type: {type_name}") from exc

    def types(self) -> list[str]:
        return sorted(self._models)

    def load(self, db: Session, type_name: str, eventable_id):
        return db.get(self.resolve(type_name), eventable_id)


eventables = EventableRegistry()
