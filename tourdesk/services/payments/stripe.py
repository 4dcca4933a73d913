import logging
from typing import Any

import httpx

from ...core.exceptions import CollaboratorError, ConfigurationError
from .gateway import BasePaymentGateway

logger = logging.getLogger(__name__)

STRIPE_API_URL = "https://api.stripe.com/v1"
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND"}


def to_minor_units(amount: float, currency: str) -> int:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(round(amount))
    return int(round(amount * 100))


class StripeGateway(BasePaymentGateway):
    def __init__(self, settings) -> None:
        super().__init__(settings)
        if not settings.stripe_secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY is required for the stripe provider")

    def _post(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        try:
            with httpx.Client(
                base_url=STRIPE_API_URL,
                timeout=self.settings.payment_timeout_seconds,
                auth=(self.settings.stripe_secret_key, ""),
            ) as client:
                response = client.post(path, data=data)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"Stripe call {path} failed: {exc}") from exc

    def capture(
        self,
        token: str,
        amount: float,
        currency: str,
        reference: str,
    ) -> dict[str, Any]:
        logger.info("Creating Stripe payment intent", extra={"reference": reference, "amount": amount})
        intent = self._post(
            "/payment_intents",
            {
                "amount": to_minor_units(amount, currency),
                "currency": currency.lower(),
                "payment_method": token,
                "confirm": "true",
                "off_session": "true",
                "metadata[booking_request_id]": reference,
            },
        )
        return {"id": intent.get("id"), "status": intent.get("status")}

    def void(self, token: str) -> dict[str, Any]:
        logger.info("Detaching Stripe payment method")
        detached = self._post(f"/payment_methods/{token}/detach", {})
        return {"id": detached.get("id"), "status": "detached"}
