import pytest

from boardevents.models import Board, Card, Comment, eventables
from boardevents.models.eventable import Eventable, EventableRegistry, _underscore


class CardTemplate(Eventable):
    pass


def test_action_prefix_from_class_name():
    assert _underscore("Card") == "card"
    assert CardTemplate.event_action_prefix() == "card_template"
    assert CardTemplate.eventable_type() == "CardTemplate"


def test_registered_models():
    assert eventables.types() == ["Card", "Comment"]
    assert eventables.resolve("Card") is Card
    assert eventables.is_registered(Comment)
    assert not eventables.is_registered(Board)


def test_register_rejects_non_eventable():
    registry = EventableRegistry()

    with pytest.raises(TypeError):
        registry.register(Board)


def test_resolve_unknown_type():
    with pytest.raises(LookupError):
        eventables.resolve("Board")


def test_default_hooks():
    template = CardTemplate()

    assert template.should_track_event() is True
    assert template.event_board() is None
    assert template.to_webhook_dict() == {"type": "CardTemplate", "id": ""}
