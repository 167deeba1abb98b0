from collections import defaultdict

from fastapi import HTTPException
from sqlalchemy.orm import Session, selectinload

from boardevents.models.event import Event
from boardevents.models.eventable import eventables
from boardevents.services.common import apply_pagination, coerce_uuid
from boardevents.services.response import ListResponseMixin


def chronological(query):
    return query.order_by(Event.created_at.asc(), Event.id.desc())


def preload_eventables(db: Session, events: list[Event]) -> list[Event]:
    """Attach each event's eventable with one query per eventable type."""
    ids_by_type = defaultdict(set)
    for event in events:
        if getattr(event, "_eventable", None) is None:
            ids_by_type[event.eventable_type].add(event.eventable_id)

    loaded = {}
    for type_name, ids in ids_by_type.items():
        try:
            model = eventables.resolve(type_name)
        except LookupError:
            continue
        for entity in db.query(model).filter(model.id.in_(ids)).all():
            loaded[(type_name, entity.id)] = entity

    for event in events:
        entity = loaded.get((event.eventable_type, event.eventable_id))
        if entity is not None:
            event._eventable = entity
    return events


class Events(ListResponseMixin):
    @staticmethod
    def get(db: Session, event_id: str):
        event = db.get(
            Event,
            coerce_uuid(event_id),
            options=[selectinload(Event.creator), selectinload(Event.board)],
        )
        if not event:
            raise HTTPException(status_code=404, detail="Event not found")
        return event

    @staticmethod
    def list(
        db: Session,
        board_id: str | None = None,
        account_id: str | None = None,
        action: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Event).options(
            selectinload(Event.creator),
            selectinload(Event.board),
        )
        if board_id:
            query = query.filter(Event.board_id == coerce_uuid(board_id))
        if account_id:
            query = query.filter(Event.account_id == coerce_uuid(account_id))
        if action:
            query = query.filter(Event.action == action)
        query = chronological(query)
        items = apply_pagination(query, limit, offset).all()
        return preload_eventables(db, items)


events = Events()
