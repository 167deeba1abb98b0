"""Action names and shared helpers for the event system.

Actions are plain strings namespaced as ``{prefix}_{verb}``. The set is
open: any registered eventable may record new verbs. The names below are
the ones the built-in eventables record and the consumers know about.
"""

from datetime import datetime
from typing import Any
from uuid import UUID


class InvalidEventError(ValueError):
    """Raised when an event cannot be recorded with the given arguments."""


class CardAction:
    published = "card_published"
    closed = "card_closed"
    reopened = "card_reopened"
    postponed = "card_postponed"
    auto_postponed = "card_auto_postponed"
    assigned = "card_assigned"
    unassigned = "card_unassigned"
    title_changed = "card_title_changed"
    board_changed = "card_board_changed"


class CommentAction:
    created = "comment_created"


def serialize(value: Any) -> Any:
    """Convert a value into JSON-compatible data."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): serialize(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize(item) for item in value]
    return value
