from abc import ABC, abstractmethod
from typing import Literal

from ...config import Settings
from ...core.exceptions import ConfigurationError
from ...db import models

StatusAction = Literal["approve", "reject", "payment_failed"]


class BaseNotificationDispatcher(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def send_admin_reminder(self, request: models.BookingRequest, hours_pending: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_customer_delay_notice(
        self, request: models.BookingRequest, hours_pending: int
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_auto_rejection(self, request: models.BookingRequest, hours_pending: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_status_update(
        self,
        request: models.BookingRequest,
        action: StatusAction,
        detail: str | None = None,
    ) -> None:
        raise NotImplementedError


def get_dispatcher(settings: Settings) -> BaseNotificationDispatcher:
    if settings.notification_provider == "stub":
        from .stub import StubDispatcher

        return StubDispatcher(settings)
    if settings.notification_provider == "sendgrid":
        from .sendgrid import SendGridDispatcher

        return SendGridDispatcher(settings)
    raise ConfigurationError(
        f"Unsupported notification provider {settings.notification_provider}"
    )
