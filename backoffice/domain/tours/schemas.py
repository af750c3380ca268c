"""Tour package schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

TOUR_STATUSES = ["active", "draft", "archived"]
CURRENCIES = ["USD", "EUR", "GBP"]


class TourPricing(BaseModel):
    original: float
    discounted: Optional[float] = None
    deposit: float = 0
    currency: str = "GBP"

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        v = (v or "").upper()
        if v not in CURRENCIES:
            raise ValueError(f"Currency must be one of: {', '.join(CURRENCIES)}")
        return v

    @field_validator("original", "deposit")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v


class ItineraryDay(BaseModel):
    day: int
    title: str
    description: str = ""


class TourDetails(BaseModel):
    highlights: list[str] = []
    itinerary: list[ItineraryDay] = []
    requirements: list[str] = []


class TourMedia(BaseModel):
    coverImage: str = ""
    gallery: list[str] = []


class TravelDate(BaseModel):
    startDate: str
    endDate: Optional[str] = None
    isAvailable: bool = True
    maxCapacity: Optional[int] = None
    currentBookings: int = 0
    hasCustomDiscounted: bool = False
    customDiscounted: Optional[float] = None


class TourPackageCreate(BaseModel):
    """Schema for creating a tour package"""

    name: str
    slug: Optional[str] = None
    tourCode: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    duration: Optional[str] = None
    pricing: TourPricing
    details: TourDetails = TourDetails()
    media: TourMedia = TourMedia()
    travelDates: list[TravelDate] = []
    status: str = "draft"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Tour name is required")
        return v.strip()

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TOUR_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TOUR_STATUSES)}")
        return v


class TourPackageUpdate(BaseModel):
    """Schema for updating a tour package"""

    name: Optional[str] = None
    slug: Optional[str] = None
    tourCode: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    duration: Optional[str] = None
    pricing: Optional[TourPricing] = None
    details: Optional[TourDetails] = None
    media: Optional[TourMedia] = None
    travelDates: Optional[list[TravelDate]] = None
    status: Optional[str] = None
    priceChangeReason: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in TOUR_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TOUR_STATUSES)}")
        return v


class PricingHistoryEntry(BaseModel):
    version: int
    effectiveDate: Optional[str] = None
    pricing: dict
    changedBy: str = "system"
    reason: str = "Price update"


class TourPackageResponse(BaseModel):
    id: str
    name: str
    slug: str
    tourCode: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    duration: Optional[str] = None
    pricing: dict
    details: Optional[dict] = None
    media: Optional[dict] = None
    travelDates: list[dict] = []
    status: str
    pricingHistory: list[PricingHistoryEntry] = []
    currentVersion: int = 1
    createdBy: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        from_attributes = True
