from . import auth, booking_requests, conflicts, timeouts

__all__ = ["auth", "booking_requests", "conflicts", "timeouts"]
