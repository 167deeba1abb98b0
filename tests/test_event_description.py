import uuid

import pytest

from boardevents.models import Card, Event, User
from boardevents.services.events import describe


@pytest.fixture()
def people():
    return {
        name: User(id=uuid.uuid4(), name=name)
        for name in ("Alice", "Bob", "Carol")
    }


def _event(action, creator, subject="Fix the login page", **particulars):
    event = Event(
        action=action,
        creator=creator,
        creator_id=creator.id if creator else None,
        eventable_type="Card",
        particulars=particulars,
    )
    event._eventable = Card(id=uuid.uuid4(), title=subject)
    return event


def _by_id(*users):
    return {str(user.id): user for user in users}


@pytest.mark.parametrize(
    "action, expected",
    [
        ("card_published", 'Alice added "Fix the login page"'),
        ("card_closed", 'Alice moved "Fix the login page" to "Done"'),
        ("card_reopened", 'Alice reopened "Fix the login page"'),
        ("card_postponed", 'Alice moved "Fix the login page" to "Not Now"'),
        ("card_auto_postponed", '"Fix the login page" moved to "Not Now" due to inactivity'),
        ("comment_created", 'Alice commented on "Fix the login page"'),
        ("card_checklist_ticked", 'Alice updated "Fix the login page"'),
    ],
)
def test_describe_for_other_viewer(people, action, expected):
    event = _event(action, people["Alice"])

    assert describe(event, viewer=people["Bob"]) == expected


def test_viewer_reads_you_for_own_action(people):
    event = _event("card_closed", people["Alice"])

    assert describe(event, viewer=people["Alice"]) == 'You moved "Fix the login page" to "Done"'


def test_assignment_names_assignees(people):
    alice, bob, carol = people["Alice"], people["Bob"], people["Carol"]
    event = _event("card_assigned", alice, assignee_ids=[str(bob.id), str(carol.id)])

    assert (
        describe(event, viewer=carol, users_by_id=_by_id(bob, carol))
        == 'Alice assigned Bob and you to "Fix the login page"'
    )
    assert (
        describe(event, users_by_id=_by_id(bob, carol))
        == 'Alice assigned Bob and Carol to "Fix the login page"'
    )


def test_self_assignment(people):
    alice = people["Alice"]
    event = _event("card_assigned", alice, assignee_ids=[str(alice.id)])

    assert describe(event, viewer=people["Bob"]) == 'Alice will handle "Fix the login page"'
    assert describe(event, viewer=alice) == 'You will handle "Fix the login page"'


def test_unassignment(people):
    alice, bob = people["Alice"], people["Bob"]
    event = _event("card_unassigned", alice, assignee_ids=[str(bob.id)])

    assert (
        describe(event, viewer=bob, users_by_id=_by_id(bob))
        == 'Alice unassigned you from "Fix the login page"'
    )


def test_title_and_board_changes(people):
    alice = people["Alice"]
    renamed = _event(
        "card_title_changed", alice, subject="Crash", old_title="Bug", new_title="Crash"
    )
    moved = _event("card_board_changed", alice, old_board="Triage", new_board="Design")

    assert describe(renamed) == 'Alice renamed "Bug" to "Crash"'
    assert describe(moved) == 'Alice moved "Fix the login page" to "Design"'


def test_missing_creator_and_eventable():
    event = Event(action="card_closed", eventable_type="Card", particulars={})

    assert describe(event) == 'Someone moved "Card" to "Done"'
