from datetime import datetime, timezone
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import get_settings
from ..core.exceptions import ConfigurationError
from ..db.session import SessionLocal
from ..services import conflict_resolver
from ..services.timeout_processor import TimeoutProcessor

logger = logging.getLogger(__name__)


def run_reconciliation(actions=None) -> list[dict]:
    processor = TimeoutProcessor(SessionLocal, get_settings())
    try:
        return processor.process_all(actions=actions)
    except ConfigurationError:
        logger.critical("Timeout reconciliation aborted: invalid configuration", exc_info=True)
        raise


def run_conflict_sweep() -> list[dict]:
    now = datetime.now(timezone.utc)
    with SessionLocal() as db:
        resolutions = conflict_resolver.sweep_all(db, now)
        closed = conflict_resolver.close_stale_timesheets(db, now)
    if resolutions or closed:
        logger.warning(
            "Conflict sweep healed records",
            extra={"resolutions": len(resolutions), "stale_timesheets": len(closed)},
        )
    return resolutions


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_reconciliation,
        "interval",
        minutes=settings.reconciliation_interval_minutes,
        id="timeout_reconciliation",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_conflict_sweep,
        "interval",
        minutes=settings.conflict_sweep_interval_minutes,
        id="conflict_sweep",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    for summary in run_reconciliation():
        logger.info(
            "%s: %s processed", summary["action_type"], summary["processed_count"]
        )


if __name__ == "__main__":
    main()
