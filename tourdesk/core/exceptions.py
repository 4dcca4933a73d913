"""Error taxonomy shared by the review gateway and the timeout processor."""


class TourDeskError(Exception):
    pass


class NotFoundError(TourDeskError):
    """Unknown booking request (or one this core can no longer act on)."""


class ConflictError(TourDeskError):
    """A guarded update affected no rows: another actor already transitioned the request."""


class PolicyViolation(ConflictError):
    """The requested transition is not allowed from the current state."""


class TransientIOError(TourDeskError):
    """The store was unavailable while processing a single record."""


class ConfigurationError(TourDeskError):
    """Missing credentials or invalid policy settings; aborts a scheduled run."""


class CollaboratorError(TourDeskError):
    """A notification or payment provider call failed."""


__all__ = [
    "TourDeskError",
    "NotFoundError",
    "ConflictError",
    "PolicyViolation",
    "TransientIOError",
    "ConfigurationError",
    "CollaboratorError",
]
