from boardevents.models.account import Account, User, UserRole  # noqa: F401
from boardevents.models.board import Access, Board, Involvement  # noqa: F401
from boardevents.models.card import (  # noqa: F401
    Assignment,
    Card,
    CardStatus,
    Comment,
    Mention,
    Watch,
)
from boardevents.models.event import Event  # noqa: F401
from boardevents.models.eventable import Eventable, eventables  # noqa: F401
from boardevents.models.notification import Notification  # noqa: F401
from boardevents.models.webhook import (  # noqa: F401
    Webhook,
    WebhookDelinquencyTracker,
    WebhookDelivery,
    WebhookDeliveryState,
)

eventables.register(Card)
eventables.register(Comment)
