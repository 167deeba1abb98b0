from datetime import UTC, datetime, timedelta

import pytest
from fastapi import HTTPException

from boardevents.models import Card, Comment, Event
from boardevents.services import cards as cards_service
from boardevents.services.events import events
from boardevents.services.events.query import preload_eventables


def _backdate(db_session, event, minutes):
    event.created_at = datetime.now(UTC) - timedelta(minutes=minutes)
    db_session.commit()


def test_list_is_chronological(db_session, board, card, alice):
    first = card.track_event(db_session, "postponed", creator=alice)
    second = card.track_event(db_session, "reopened", creator=alice)
    db_session.commit()
    _backdate(db_session, first, 10)
    _backdate(db_session, second, 5)

    items = events.list(db_session, board_id=str(board.id))

    assert [item.id for item in items] == [first.id, second.id]


def test_list_filters(db_session, board, other_board, card, make_card, alice):
    elsewhere = make_card(other_board, alice, title="Logo")
    cards_service.cards.close(db_session, str(card.id), str(alice.id))
    cards_service.cards.close(db_session, str(elsewhere.id), str(alice.id))
    cards_service.cards.reopen(db_session, str(card.id), str(alice.id))

    on_board = events.list(db_session, board_id=str(board.id))
    closed = events.list(db_session, account_id=str(board.account_id), action="card_closed")

    assert [item.action for item in on_board] == ["card_closed", "card_reopened"]
    assert {item.eventable_id for item in closed} == {card.id, elsewhere.id}


def test_list_paginates(db_session, board, card, alice):
    for verb in ("postponed", "reopened", "closed"):
        card.track_event(db_session, verb, creator=alice)
    db_session.commit()

    page = events.list(db_session, board_id=str(board.id), limit=2, offset=1)

    assert len(page) == 2


def test_get_missing_event(db_session):
    with pytest.raises(HTTPException) as exc_info:
        events.get(db_session, "00000000-0000-0000-0000-000000000000")
    assert exc_info.value.status_code == 404


def test_preload_eventables_attaches_entities(db_session, card, alice, bob):
    cards_service.cards.close(db_session, str(card.id), str(alice.id))
    comment = cards_service.comments.create(db_session, str(card.id), str(bob.id), "Nice")
    card_id, comment_id = card.id, comment.id
    db_session.expunge_all()

    loaded = preload_eventables(db_session, db_session.query(Event).all())

    by_type = {event.eventable_type: event._eventable for event in loaded}
    assert isinstance(by_type["Card"], Card)
    assert isinstance(by_type["Comment"], Comment)
    assert by_type["Card"].id == card_id
    assert by_type["Comment"].id == comment_id
