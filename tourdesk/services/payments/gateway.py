from abc import ABC, abstractmethod
from typing import Any
from ...config import Settings
from ...core.exceptions import ConfigurationError


class BasePaymentGateway(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def capture(
        self,
        token: str,
        amount: float,
        currency: str,
        reference: str,
    ) -> dict[str, Any]:
        """Charge the stored payment method; returns at least ``id`` and ``status``."""
        raise NotImplementedError

    @abstractmethod
    def void(self, token: str) -> dict[str, Any]:
        """Release the stored payment method without charging it."""
        raise NotImplementedError


def get_gateway(settings: Settings) -> BasePaymentGateway:
    if settings.payment_provider == "stub":
        from .stub import StubGateway

        return StubGateway(settings)
    if settings.payment_provider == "stripe":
        from .stripe import StripeGateway

        return StripeGateway(settings)
    raise ConfigurationError(f"Unsupported payment provider {settings.payment_provider}")
