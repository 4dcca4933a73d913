"""Common application-wide constants."""

# Actor identities written to ``reviewed_by`` / ``created_by`` for automated transitions
SYSTEM_ACTOR = "system"
AUTO_REJECT_ACTOR = "system_auto_reject"
CONFLICT_RESOLVER_ACTOR = "system_conflict_resolver"

AUTO_REJECT_REASON = "Automatically rejected after 48 hours without admin review"
DEFAULT_REJECTION_REASON = "No specific reason provided"
MAX_REJECTION_REASON_LENGTH = 1000

DUPLICATE_REQUEST_REASON = "Auto-resolved duplicate booking request"
DUPLICATE_TIMESHEET_NOTE = "[Auto-resolved duplicate timesheet]"
STALE_TIMESHEET_NOTE = "[Auto-resolved: timesheet was left open for more than 24 hours]"


__all__ = [
    "SYSTEM_ACTOR",
    "AUTO_REJECT_ACTOR",
    "CONFLICT_RESOLVER_ACTOR",
    "AUTO_REJECT_REASON",
    "DEFAULT_REJECTION_REASON",
    "MAX_REJECTION_REASON_LENGTH",
    "DUPLICATE_REQUEST_REASON",
    "DUPLICATE_TIMESHEET_NOTE",
    "STALE_TIMESHEET_NOTE",
]
