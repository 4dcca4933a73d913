"""Reconciliation pass over unattended booking requests.

Each pass re-reads durable state, asks the policy which escalation steps are
due, and applies every step in its own guarded unit of work:

1. re-check that the step's lifecycle event does not exist yet,
2. apply the state change as a compare-and-set update (if the step has one),
3. append the lifecycle event and commit.

A compare-and-set that matches no row, or an event insert rejected by the
idempotency constraint, means a concurrent pass or an admin already acted; the
step is dropped quietly. Notification and payment calls happen only after the
commit and never undo it. Failures on one request are logged and reported in
the summary without stopping the rest of the batch; the next scheduled pass
picks the request up again.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings, get_settings
from ..core.constants import AUTO_REJECT_ACTOR, AUTO_REJECT_REASON, SYSTEM_ACTOR
from ..core.exceptions import (
    CollaboratorError,
    ConfigurationError,
    ConflictError,
    TransientIOError,
)
from ..db import models
from ..db.models.booking_request import BookingRequestStatus
from . import booking_request_store, collaborators, lifecycle_event_store
from .notifications import BaseNotificationDispatcher, get_dispatcher
from .payments import BasePaymentGateway, get_gateway
from .timeout_policy import (
    TimeoutAction,
    TimeoutThresholds,
    as_utc,
    cutoff_for,
    decide,
    thresholds_from_settings,
)

logger = logging.getLogger(__name__)

SUMMARY_NAMES = {
    TimeoutAction.admin_reminder: "admin_reminders",
    TimeoutAction.customer_delay_notice: "customer_notifications",
    TimeoutAction.auto_reject: "auto_rejections",
    TimeoutAction.payment_cleanup: "payment_cleanups",
}

# Single-step triggers kept alongside ``process_all`` for manual runs.
ACTION_FILTERS: dict[str, frozenset[TimeoutAction] | None] = {
    "process_all": None,
    "send_admin_reminders": frozenset({TimeoutAction.admin_reminder}),
    "send_customer_notifications": frozenset({TimeoutAction.customer_delay_notice}),
    "auto_reject_expired": frozenset({TimeoutAction.auto_reject}),
    "cleanup_payment_methods": frozenset({TimeoutAction.payment_cleanup}),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _mask_token(token: str) -> str:
    return f"...{token[-4:]}" if len(token) > 4 else "..."


@dataclass
class _Tally:
    processed: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)


class _Run:
    """Per-pass context shared by the workers of one ``process_all`` call."""

    def __init__(
        self,
        now: datetime,
        thresholds: TimeoutThresholds,
        dispatcher: BaseNotificationDispatcher,
        gateway: BasePaymentGateway,
        enabled: frozenset[TimeoutAction],
    ) -> None:
        self.now = now
        self.thresholds = thresholds
        self.dispatcher = dispatcher
        self.gateway = gateway
        self.enabled = enabled
        self.tallies = {action: _Tally() for action in TimeoutAction if action in enabled}
        self.errors: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def record(self, action: TimeoutAction, booking_request_id: int, status: str) -> None:
        with self._lock:
            tally = self.tallies[action]
            tally.processed += 1
            tally.results.append({"booking_request_id": booking_request_id, "status": status})

    def record_failure(self, action: TimeoutAction, booking_request_id: int, error: str) -> None:
        with self._lock:
            self.tallies[action].failures.append(
                {"booking_request_id": booking_request_id, "status": "failed", "error": error}
            )

    def record_error(self, booking_request_id: int, error: Exception) -> None:
        with self._lock:
            self.errors.append(
                {
                    "booking_request_id": booking_request_id,
                    "error_type": type(error).__name__,
                    "error": str(error),
                }
            )

    def summary(self) -> list[dict[str, Any]]:
        summary = []
        for action, tally in self.tallies.items():
            summary.append(
                {
                    "action_type": SUMMARY_NAMES[action],
                    "processed_count": tally.processed,
                    "details": {
                        "cutoff_time": cutoff_for(action, self.now, self.thresholds).isoformat(),
                        "results": tally.results,
                        "failures": tally.failures,
                    },
                }
            )
        summary.append(
            {
                "action_type": "errors",
                "processed_count": len(self.errors),
                "details": {"errors": self.errors},
            }
        )
        return summary


class TimeoutProcessor:
    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session],
        settings: Settings | None = None,
        *,
        dispatcher: BaseNotificationDispatcher | None = None,
        gateway: BasePaymentGateway | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher
        self.gateway = gateway
        self.clock = clock

    def process_all(
        self,
        now: datetime | None = None,
        actions: Iterable[TimeoutAction] | None = None,
    ) -> list[dict[str, Any]]:
        # Configuration problems must abort the run before any row is touched.
        thresholds = thresholds_from_settings(self.settings)
        dispatcher = self.dispatcher or get_dispatcher(self.settings)
        gateway = self.gateway or get_gateway(self.settings)
        if self.settings.timeout_batch_size < 1 or self.settings.timeout_max_workers < 1:
            raise ConfigurationError("TIMEOUT_BATCH_SIZE and TIMEOUT_MAX_WORKERS must be positive")

        run = _Run(
            now=as_utc(now or self.clock()),
            thresholds=thresholds,
            dispatcher=dispatcher,
            gateway=gateway,
            enabled=frozenset(actions) if actions else frozenset(TimeoutAction),
        )

        try:
            with self.session_factory() as db:
                candidate_ids = booking_request_store.list_timeout_candidates(
                    db,
                    self.settings.timeout_batch_size,
                    cleanup_before=cutoff_for(TimeoutAction.payment_cleanup, run.now, thresholds),
                )
        except SQLAlchemyError as exc:
            raise TransientIOError("Could not load timeout candidates") from exc

        logger.info(
            "Processing booking request timeouts",
            extra={"candidates": len(candidate_ids), "now": run.now.isoformat()},
        )
        workers = self.settings.timeout_max_workers
        if workers > 1 and len(candidate_ids) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                list(pool.map(lambda request_id: self.process_request(request_id, run), candidate_ids))
        else:
            for request_id in candidate_ids:
                self.process_request(request_id, run)

        summary = run.summary()
        logger.info(
            "Booking request timeouts processed",
            extra={item["action_type"]: item["processed_count"] for item in summary},
        )
        return summary

    def process_request(self, booking_request_id: int, run: _Run) -> None:
        with self.session_factory() as db:
            try:
                self._process_request(db, booking_request_id, run)
            except ConfigurationError:
                raise
            except SQLAlchemyError as exc:
                db.rollback()
                error = TransientIOError(f"Store unavailable: {exc}")
                logger.exception(
                    "Transient failure processing booking request",
                    extra={"booking_request_id": booking_request_id},
                )
                run.record_error(booking_request_id, error)
            except Exception as exc:
                db.rollback()
                logger.exception(
                    "Failed to process booking request timeouts",
                    extra={"booking_request_id": booking_request_id},
                )
                run.record_error(booking_request_id, exc)

    def _process_request(self, db: Session, booking_request_id: int, run: _Run) -> None:
        request = booking_request_store.get_request(db, booking_request_id)
        if request is None:
            return
        fired = lifecycle_event_store.fired_event_types(db, booking_request_id)
        # Read-only so far; release the snapshot before the guarded writes.
        db.rollback()
        due = [
            action
            for action in decide(request.submitted_at, request.reviewed_at, run.now, fired, run.thresholds)
            if action in run.enabled
        ]
        for action in due:
            self._apply(db, request, action, run)

    def _apply(
        self,
        db: Session,
        request: models.BookingRequest,
        action: TimeoutAction,
        run: _Run,
    ) -> None:
        now = run.now
        hours_pending = int((now - as_utc(request.submitted_at)).total_seconds() // 3600)
        token = request.payment_method_token
        try:
            if lifecycle_event_store.has_event(db, request.id, action.event_type):
                db.rollback()
                return
            won, payload = self._guarded_update(db, request, action, run, hours_pending)
            if not won:
                db.rollback()
                logger.info(
                    "Timeout action superseded",
                    extra={"booking_request_id": request.id, "action": action.value},
                )
                return
            event = lifecycle_event_store.append_event(
                db,
                request.id,
                action.event_type,
                created_by=SYSTEM_ACTOR,
                created_at=now,
                payload=payload,
            )
            if event is None:
                db.rollback()
                return
            db.commit()
        except ConflictError:
            db.rollback()
            logger.info(
                "Timeout action already recorded by a concurrent pass",
                extra={"booking_request_id": request.id, "action": action.value},
            )
            return

        db.refresh(request)
        run.record(action, request.id, action.event_type.value)
        logger.info(
            "Timeout action applied",
            extra={"booking_request_id": request.id, "action": action.value},
        )

        error = self._call_collaborator(db, request, action, run, hours_pending, token)
        if error:
            run.record_failure(action, request.id, error)

    def _guarded_update(
        self,
        db: Session,
        request: models.BookingRequest,
        action: TimeoutAction,
        run: _Run,
        hours_pending: int,
    ) -> tuple[bool, dict[str, Any]]:
        now = run.now
        cutoff = cutoff_for(action, now, run.thresholds)
        if action is TimeoutAction.auto_reject:
            won = booking_request_store.transition_from_pending(
                db,
                request.id,
                to_status=BookingRequestStatus.rejected,
                reviewed_at=now,
                reviewed_by=AUTO_REJECT_ACTOR,
                rejection_reason=AUTO_REJECT_REASON,
                submitted_before=cutoff,
            )
            return won, {
                "hours_pending": hours_pending,
                "rejection_reason": AUTO_REJECT_REASON,
                "auto_rejected_at": now.isoformat(),
            }
        if action is TimeoutAction.payment_cleanup:
            token = request.payment_method_token or ""
            won = booking_request_store.clear_payment_token(db, request.id, reviewed_before=cutoff)
            return won, {
                "payment_method": _mask_token(token),
                "status": request.status.value,
                "cleaned_at": now.isoformat(),
            }
        # Conditional write so an approval committed since the read wins.
        still_pending = booking_request_store.claim_pending(db, request.id)
        payload: dict[str, Any] = {"hours_pending": hours_pending, "sent_at": now.isoformat()}
        if action is TimeoutAction.admin_reminder:
            payload["reminder_type"] = "admin"
        return still_pending, payload

    def _call_collaborator(
        self,
        db: Session,
        request: models.BookingRequest,
        action: TimeoutAction,
        run: _Run,
        hours_pending: int,
        token: str | None,
    ) -> str | None:
        dispatcher = run.dispatcher
        if action is TimeoutAction.admin_reminder:
            return collaborators.notify(
                db,
                request.id,
                "admin_reminder",
                lambda: dispatcher.send_admin_reminder(request, hours_pending),
                run.now,
            )
        if action is TimeoutAction.customer_delay_notice:
            return collaborators.notify(
                db,
                request.id,
                "customer_delay_notice",
                lambda: dispatcher.send_customer_delay_notice(request, hours_pending),
                run.now,
            )
        if action is TimeoutAction.auto_reject:
            return collaborators.notify(
                db,
                request.id,
                "auto_rejection",
                lambda: dispatcher.send_auto_rejection(request, hours_pending),
                run.now,
            )
        if token is None:
            return None
        try:
            run.gateway.void(token)
        except CollaboratorError as exc:
            logger.warning(
                "Could not release payment method",
                extra={"booking_request_id": request.id, "error": str(exc)},
            )
            return str(exc)
        return None
