"""Discount event schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator


class DateDiscount(BaseModel):
    date: str
    discountRate: float
    discountedCost: Optional[float] = None

    @field_validator("discountRate")
    @classmethod
    def validate_rate(cls, v):
        if v < 0:
            raise ValueError("Discount rate cannot be negative")
        return v


class DiscountEventItem(BaseModel):
    tourPackageId: str
    tourPackageName: str
    originalCost: float
    dateDiscounts: list[DateDiscount] = []


class DiscountEventCreate(BaseModel):
    name: str
    active: bool = False
    items: list[DiscountEventItem] = []
    bannerCover: Optional[str] = None
    activationMode: str = "manual"
    scheduledStart: Optional[datetime] = None
    scheduledEnd: Optional[datetime] = None
    discountType: str = "percent"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Event name is required")
        return v.strip()

    @field_validator("activationMode")
    @classmethod
    def validate_activation_mode(cls, v):
        if v not in ("manual", "scheduled"):
            raise ValueError("Activation mode must be manual or scheduled")
        return v

    @field_validator("discountType")
    @classmethod
    def validate_discount_type(cls, v):
        if v not in ("percent", "amount"):
            raise ValueError("Discount type must be percent or amount")
        return v

    @model_validator(mode="after")
    def validate_window(self):
        if self.scheduledStart and self.scheduledEnd and self.scheduledEnd <= self.scheduledStart:
            raise ValueError("Scheduled end must be after scheduled start")
        return self


class DiscountEventUpdate(BaseModel):
    name: Optional[str] = None
    active: Optional[bool] = None
    items: Optional[list[DiscountEventItem]] = None
    bannerCover: Optional[str] = None
    activationMode: Optional[str] = None
    scheduledStart: Optional[datetime] = None
    scheduledEnd: Optional[datetime] = None
    discountType: Optional[str] = None


class DiscountEventResponse(BaseModel):
    id: str
    name: str
    active: bool
    isLive: bool
    items: list[DiscountEventItem]
    bannerCover: Optional[str] = None
    activationMode: str
    scheduledStart: Optional[datetime] = None
    scheduledEnd: Optional[datetime] = None
    discountType: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
