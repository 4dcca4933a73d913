from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from ...core.exceptions import CollaboratorError, ConfigurationError
from ...db import models
from .dispatcher import BaseNotificationDispatcher, StatusAction

logger = logging.getLogger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

TEMPLATES = {
    "admin_reminder": "d-timeout-admin-reminder",
    "customer_delay_notice": "d-timeout-customer-delay",
    "auto_rejection_customer": "d-timeout-auto-rejection",
    "auto_rejection_admin": "d-timeout-auto-rejection-admin",
    "approve": "d-booking-request-approved",
    "reject": "d-booking-request-rejected",
    "payment_failed": "d-booking-request-payment-failed",
}


def format_tour_date(value: date) -> str:
    return value.strftime("%A, %B %d, %Y")


def format_amount(amount: Any) -> str:
    return f"¥{int(amount or 0):,}"


class SendGridDispatcher(BaseNotificationDispatcher):
    def __init__(self, settings) -> None:
        super().__init__(settings)
        if not settings.sendgrid_api_key:
            raise ConfigurationError("SENDGRID_API_KEY is required for the sendgrid provider")
        if not settings.admin_emails:
            raise ConfigurationError(
                "ADMIN_NOTIFICATION_EMAILS is required for the sendgrid provider"
            )

    def _template_data(self, request: models.BookingRequest) -> dict[str, Any]:
        return {
            "bookingId": str(request.id),
            "tourName": request.tour_name or request.tour_type,
            "customerName": request.customer_name,
            "tourDate": format_tour_date(request.booking_date),
            "tourTime": request.booking_time,
            "adults": request.adults,
            "children": request.children,
            "infants": request.infants,
            "totalAmount": format_amount(request.total_amount),
            "specialRequests": request.special_requests,
        }

    def _admin_template_data(self, request: models.BookingRequest) -> dict[str, Any]:
        data = self._template_data(request)
        data.update(
            customerEmail=request.customer_email,
            customerPhone=request.customer_phone,
        )
        return data

    def _send(
        self,
        kind: str,
        recipients: list[str],
        template_data: dict[str, Any],
        booking_request_id: int,
    ) -> None:
        body = {
            "from": {"email": self.settings.notification_from_email, "name": "Tomodachi Tours"},
            "personalizations": [
                {
                    "to": [{"email": email} for email in recipients],
                    "dynamic_template_data": template_data,
                }
            ],
            "template_id": TEMPLATES[kind],
        }
        try:
            with httpx.Client(timeout=self.settings.notification_timeout_seconds) as client:
                response = client.post(
                    SENDGRID_API_URL,
                    json=body,
                    headers={"Authorization": f"Bearer {self.settings.sendgrid_api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"SendGrid {kind} email failed: {exc}") from exc
        logger.info(
            "Sent email",
            extra={"kind": kind, "booking_request_id": booking_request_id},
        )

    def send_admin_reminder(self, request, hours_pending):
        data = self._admin_template_data(request)
        data["hoursPending"] = hours_pending
        self._send("admin_reminder", self.settings.admin_emails, data, request.id)

    def send_customer_delay_notice(self, request, hours_pending):
        data = self._template_data(request)
        data["hoursPending"] = hours_pending
        self._send("customer_delay_notice", [request.customer_email], data, request.id)

    def send_auto_rejection(self, request, hours_pending):
        customer_data = self._template_data(request)
        customer_data.update(
            hoursPending=hours_pending,
            rejectionReason=(
                f"Your booking request was automatically cancelled after {hours_pending} "
                "hours without confirmation. This helps us manage availability for other "
                "customers."
            ),
        )
        self._send("auto_rejection_customer", [request.customer_email], customer_data, request.id)
        admin_data = self._admin_template_data(request)
        admin_data["hoursPending"] = hours_pending
        self._send("auto_rejection_admin", self.settings.admin_emails, admin_data, request.id)

    def send_status_update(self, request, action: StatusAction, detail=None):
        data = self._template_data(request)
        if action == "reject":
            data["rejectionReason"] = detail or request.rejection_reason
        elif action == "payment_failed":
            data["paymentError"] = detail or "Payment processing failed"
        self._send(action, [request.customer_email], data, request.id)
