"""Stripe payment schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

INSTALLMENT_IDS = ["full_payment", "p1", "p2", "p3", "p4"]

PAYMENT_STATUSES = [
    "reserve_pending",
    "reserve_paid",
    "terms_selected",
    "installment_pending",
    "installment_paid",
    "failed",
    "refunded",
]


class AdditionalGuest(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None


class ReservationPaymentRequest(BaseModel):
    """Guest details submitted with the reservation form"""

    email: str
    firstName: str
    lastName: str
    tourPackageId: str
    tourDate: str
    bookingType: str = "Single Booking"
    returnDate: Optional[str] = None
    groupCode: Optional[str] = None
    additionalGuests: list[AdditionalGuest] = []

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not v or "@" not in v:
            raise ValueError("A valid email address is required")
        return v.strip().lower()


class ReservationPaymentResponse(BaseModel):
    clientSecret: Optional[str] = None
    paymentDocId: str
    amount: float
    currency: str
    reused: bool = False


class InstallmentCheckoutRequest(BaseModel):
    installmentId: str

    @field_validator("installmentId")
    @classmethod
    def validate_installment_id(cls, v):
        if v not in INSTALLMENT_IDS:
            raise ValueError(f"Installment must be one of: {', '.join(INSTALLMENT_IDS)}")
        return v


class InstallmentCheckoutResponse(BaseModel):
    checkoutUrl: Optional[str] = None
    sessionId: str
    paymentDocId: str


class RefundResponse(BaseModel):
    success: bool
    refundId: str
    amount: float
    currency: str
    status: Optional[str] = None


class CleanupResult(BaseModel):
    deleted: int
    skipped: int
    totalProcessed: int


class StripePaymentResponse(BaseModel):
    id: str
    type: str
    status: str
    email: Optional[str] = None
    tourPackageId: Optional[str] = None
    tourPackageName: Optional[str] = None
    amount: float
    currency: str
    stripeIntentId: Optional[str] = None
    checkoutSessionId: Optional[str] = None
    installmentTerm: Optional[str] = None
    bookingDocumentId: Optional[str] = None
    bookingId: Optional[str] = None
    meta: Optional[dict[str, Any]] = None
    refundDetails: Optional[dict[str, Any]] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    paidAt: Optional[datetime] = None
    refundedAt: Optional[datetime] = None
    failedAt: Optional[datetime] = None
