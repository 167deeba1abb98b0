import uuid

from boardevents.models import Comment, Event, User, UserRole
from boardevents.services import cards as cards_service
from boardevents.services.events.system_commenter import render, system_user_for

ALICE = str(uuid.uuid4())
BOB = str(uuid.uuid4())
CAROL = str(uuid.uuid4())
NAMES = {ALICE: "Alice", BOB: "Bob", CAROL: "Carol"}


def _event(action, **particulars):
    return Event(action=action, creator_id=uuid.UUID(ALICE), particulars=particulars)


def test_render_simple_actions():
    assert render(_event("card_closed"), NAMES) == "Alice moved this to Done."
    assert render(_event("card_reopened"), NAMES) == "Alice reopened this."
    assert render(_event("card_postponed"), NAMES) == "Alice moved this to Not Now."
    assert (
        render(_event("card_auto_postponed"), NAMES)
        == "Moved to Not Now due to inactivity."
    )


def test_render_assignment_lists_names():
    assert (
        render(_event("card_assigned", assignee_ids=[BOB]), NAMES)
        == "Alice assigned this to Bob."
    )
    assert (
        render(_event("card_assigned", assignee_ids=[BOB, CAROL]), NAMES)
        == "Alice assigned this to Bob and Carol."
    )
    assert (
        render(_event("card_unassigned", assignee_ids=[CAROL]), NAMES)
        == "Alice unassigned Carol."
    )


def test_render_title_and_board_changes():
    assert (
        render(_event("card_title_changed", old_title="Bug", new_title="Crash"), NAMES)
        == 'Alice changed the title from "Bug" to "Crash".'
    )
    assert (
        render(_event("card_board_changed", old_board="Triage", new_board="Done"), NAMES)
        == 'Alice moved this from "Triage" to "Done".'
    )


def test_render_unknown_names_and_actions():
    assert render(_event("card_published"), NAMES) is None
    assert render(_event("comment_created"), NAMES) is None
    assert render(_event("card_closed"), {}) == "someone moved this to Done."


def test_system_comment_shares_event_timestamp(db_session, card, alice):
    cards_service.cards.postpone(db_session, str(card.id), str(alice.id))

    event = db_session.query(Event).one()
    comment = db_session.query(Comment).filter(Comment.is_system.is_(True)).one()
    assert comment.body == "Alice moved this to Not Now."
    assert comment.created_at == event.created_at
    assert comment.creator.role == UserRole.system
    assert comment.card_id == card.id


def test_comment_events_get_no_system_comment(db_session, card, bob):
    cards_service.comments.create(db_session, str(card.id), str(bob.id), "On it")

    assert db_session.query(Comment).filter(Comment.is_system.is_(True)).count() == 0


def test_system_user_is_created_once(db_session, account):
    first = system_user_for(db_session, account.id)
    second = system_user_for(db_session, account.id)

    assert first.id == second.id
    assert first.role == UserRole.system
    assert (
        db_session.query(User)
        .filter(User.account_id == account.id)
        .filter(User.role == UserRole.system)
        .count()
        == 1
    )
