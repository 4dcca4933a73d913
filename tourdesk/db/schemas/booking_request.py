from datetime import date, datetime
from pydantic import BaseModel, Field

from ..models.booking_request import BookingRequestStatus
from ..models.lifecycle_event import LifecycleEventType


class BookingRequestCreate(BaseModel):
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    tour_type: str
    tour_name: str | None = None
    booking_date: date
    booking_time: str
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    total_amount: float = Field(ge=0)
    special_requests: str | None = None
    payment_method_token: str


class BookingRequestReject(BaseModel):
    reason: str | None = None


class BookingRequest(BaseModel):
    id: int
    customer_name: str
    customer_email: str
    tour_type: str
    tour_name: str | None = None
    booking_date: date
    booking_time: str
    adults: int
    children: int
    infants: int
    total_amount: float
    status: BookingRequestStatus
    submitted_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    rejection_reason: str | None = None
    has_payment_method: bool = False

    class Config:
        from_attributes = True


class LifecycleEvent(BaseModel):
    id: int
    booking_request_id: int
    event_type: LifecycleEventType
    payload: dict | None = None
    created_at: datetime
    created_by: str

    class Config:
        from_attributes = True
