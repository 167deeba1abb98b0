"""Personalized one-line descriptions of events, as shown in activity feeds.

The viewer reads "You" for their own actions and "you" where they are the
subject of an assignment. Everyone else is referred to by display name.
"""

from boardevents.models.event import Event
from boardevents.services.events.types import CardAction, CommentAction


def _name(user, viewer) -> str:
    if user is None:
        return "Someone"
    if viewer is not None and user.id == viewer.id:
        return "You"
    return user.name


def _assignees(event: Event, viewer, users_by_id) -> str:
    names = []
    for user_id in event.assignee_ids:
        if viewer is not None and user_id == str(viewer.id):
            names.append("you")
        else:
            user = users_by_id.get(user_id)
            names.append(user.name if user is not None else "someone")
    if not names:
        return "nobody"
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def _subject(event: Event) -> str:
    eventable = event.eventable
    if eventable is None:
        return event.eventable_type
    return eventable.event_subject()


def describe(event: Event, viewer=None, users_by_id=None) -> str:
    """Describe ``event`` from the point of view of ``viewer``.

    Args:
        event: The event to describe
        viewer: The user reading the description, or None for a neutral one
        users_by_id: Users referenced by the particulars (assignees), keyed by
            id string
    """
    users_by_id = users_by_id or {}
    creator = _name(event.creator, viewer)
    subject = _subject(event)
    particulars = event.particulars or {}

    action = event.action
    if action == CardAction.published:
        return f'{creator} added "{subject}"'
    if action == CardAction.closed:
        return f'{creator} moved "{subject}" to "Done"'
    if action == CardAction.reopened:
        return f'{creator} reopened "{subject}"'
    if action == CardAction.postponed:
        return f'{creator} moved "{subject}" to "Not Now"'
    if action == CardAction.auto_postponed:
        return f'"{subject}" moved to "Not Now" due to inactivity'
    if action == CardAction.assigned:
        if event.assignee_ids == [str(event.creator_id)]:
            return f'{creator} will handle "{subject}"'
        return f'{creator} assigned {_assignees(event, viewer, users_by_id)} to "{subject}"'
    if action == CardAction.unassigned:
        return (
            f"{creator} unassigned {_assignees(event, viewer, users_by_id)} "
            f'from "{subject}"'
        )
    if action == CardAction.title_changed:
        return (
            f'{creator} renamed "{particulars.get("old_title", "")}" '
            f'to "{particulars.get("new_title", subject)}"'
        )
    if action == CardAction.board_changed:
        return f'{creator} moved "{subject}" to "{particulars.get("new_board", "")}"'
    if action == CommentAction.created:
        return f'{creator} commented on "{subject}"'
    return f'{creator} updated "{subject}"'
