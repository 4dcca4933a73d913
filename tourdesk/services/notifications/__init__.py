from .dispatcher import BaseNotificationDispatcher, get_dispatcher
from .stub import StubDispatcher
from .sendgrid import SendGridDispatcher

__all__ = [
    "BaseNotificationDispatcher",
    "get_dispatcher",
    "StubDispatcher",
    "SendGridDispatcher",
]
