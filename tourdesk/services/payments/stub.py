from __future__ import annotations

from typing import Any

from .gateway import BasePaymentGateway


class StubGateway(BasePaymentGateway):
    """Payment gateway stub that pretends every capture succeeds."""

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.captured: list[str] = []
        self.voided: list[str] = []

    def capture(
        self,
        token: str,
        amount: float,
        currency: str,
        reference: str,
    ) -> dict[str, Any]:
        self.captured.append(token)
        return {
            "id": f"stub_{reference}",
            "status": "succeeded",
            "amount": amount,
            "currency": currency,
        }

    def void(self, token: str) -> dict[str, Any]:
        self.voided.append(token)
        return {"id": token, "status": "detached"}
