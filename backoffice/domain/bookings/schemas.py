"""Booking schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

BOOKING_TYPES = ["Single Booking", "Duo Booking", "Group Booking"]

# Values a guest may see through their access token link
PUBLIC_BOOKING_FIELDS = [
    "bookingId",
    "fullName",
    "firstName",
    "lastName",
    "emailAddress",
    "tourPackageName",
    "tourDate",
    "returnDate",
    "tourDuration",
    "bookingType",
    "paymentCondition",
    "availablePaymentTerms",
    "paymentPlan",
    "paymentMethod",
    "bookingStatus",
    "paymentProgress",
    "originalTourCost",
    "discountedTourCost",
    "reservationFee",
    "paid",
    "remainingBalance",
    "fullPaymentDueDate",
    "fullPaymentAmount",
    "fullPaymentDatePaid",
    "p1DueDate",
    "p1Amount",
    "p1DatePaid",
    "p2DueDate",
    "p2Amount",
    "p2DatePaid",
    "p3DueDate",
    "p3Amount",
    "p3DatePaid",
    "p4DueDate",
    "p4Amount",
    "p4DatePaid",
]


class BookingCreate(BaseModel):
    """Schema for a manually entered booking"""

    email: str
    firstName: str
    lastName: str
    tourPackageName: str
    tourDate: str
    bookingType: str = "Single Booking"
    reservationFee: Optional[float] = None
    paidAmount: Optional[float] = None
    paymentMethod: Optional[str] = None
    groupId: Optional[str] = None
    isMainBooking: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not v or "@" not in v:
            raise ValueError("A valid email address is required")
        return v.strip().lower()

    @field_validator("bookingType")
    @classmethod
    def validate_booking_type(cls, v):
        if v not in BOOKING_TYPES:
            raise ValueError(f"Booking type must be one of: {', '.join(BOOKING_TYPES)}")
        return v


class BookingUpdate(BaseModel):
    """Sheet values to change, keyed by column id"""

    fields: dict[str, Any]

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v):
        if not v:
            raise ValueError("At least one field is required")
        return v


class SelectPaymentPlanRequest(BaseModel):
    paymentTermId: str


class BatchDeleteRequest(BaseModel):
    ids: list[str]


class BookingResponse(BaseModel):
    id: str
    bookingId: Optional[str] = None
    row: Optional[int] = None
    tourPackageName: Optional[str] = None
    email: Optional[str] = None
    bookingStatus: Optional[str] = None
    paymentPlan: Optional[str] = None
    accessToken: Optional[str] = None
    data: dict
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class PublicBookingResponse(BaseModel):
    bookingId: Optional[str] = None
    data: dict


class BookingUpdateResponse(BaseModel):
    booking: BookingResponse
    versionId: Optional[str] = None
    reminderJobId: Optional[str] = None
    remindersCancelled: int = 0


class DeleteResult(BaseModel):
    deleted: int


class BookingStatsResponse(BaseModel):
    total: int
    byStatus: dict[str, int]
    byTourPackage: dict[str, int]
