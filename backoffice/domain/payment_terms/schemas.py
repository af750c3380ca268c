"""Payment term schemas - Pydantic models for payment term configuration"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

PAYMENT_TYPES = ["invalid_booking", "full_payment", "monthly_scheduled"]


def validate_monthly_percentages(percentages: Optional[list[float]]) -> Optional[list[float]]:
    """Monthly percentages must add up to 100 (to the cent)"""
    if percentages is None:
        return None
    if any(p < 0 for p in percentages):
        raise ValueError("Monthly percentages cannot be negative")
    if percentages and abs(sum(percentages) - 100) > 0.01:
        raise ValueError(f"Monthly percentages must add up to 100 (got {round(sum(percentages), 2)})")
    return percentages


class PaymentTermCreate(BaseModel):
    """Schema for creating a payment term"""

    name: str
    description: str = ""
    paymentType: str
    daysRequired: Optional[int] = None
    monthsRequired: Optional[int] = None
    monthlyPercentages: Optional[list[float]] = None
    percentage: Optional[float] = None
    depositPercentage: float = 0
    color: str = "#3b82f6"
    isActive: bool = True
    sortOrder: int = 0

    @field_validator("paymentType")
    @classmethod
    def validate_payment_type(cls, v):
        if v not in PAYMENT_TYPES:
            raise ValueError(f"Payment type must be one of: {', '.join(PAYMENT_TYPES)}")
        return v

    @field_validator("monthlyPercentages")
    @classmethod
    def validate_percentages(cls, v):
        return validate_monthly_percentages(v)

    @model_validator(mode="after")
    def validate_schedule(self):
        if self.paymentType == "monthly_scheduled":
            if not self.monthsRequired or self.monthsRequired < 1:
                raise ValueError("Monthly scheduled terms require monthsRequired")
            if self.monthlyPercentages and len(self.monthlyPercentages) != self.monthsRequired:
                raise ValueError("monthlyPercentages must have one entry per month")
        return self


class PaymentTermUpdate(BaseModel):
    """Schema for updating a payment term"""

    name: Optional[str] = None
    description: Optional[str] = None
    paymentType: Optional[str] = None
    daysRequired: Optional[int] = None
    monthsRequired: Optional[int] = None
    monthlyPercentages: Optional[list[float]] = None
    percentage: Optional[float] = None
    depositPercentage: Optional[float] = None
    color: Optional[str] = None
    isActive: Optional[bool] = None
    sortOrder: Optional[int] = None

    @field_validator("paymentType")
    @classmethod
    def validate_payment_type(cls, v):
        if v is not None and v not in PAYMENT_TYPES:
            raise ValueError(f"Payment type must be one of: {', '.join(PAYMENT_TYPES)}")
        return v

    @field_validator("monthlyPercentages")
    @classmethod
    def validate_percentages(cls, v):
        return validate_monthly_percentages(v)


class SortOrderItem(BaseModel):
    id: str
    sortOrder: int


class PaymentTermResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    paymentType: str
    daysRequired: Optional[int] = None
    monthsRequired: Optional[int] = None
    monthlyPercentages: Optional[list[float]] = None
    percentage: Optional[float] = None
    depositPercentage: float = 0
    color: Optional[str] = None
    isActive: bool
    sortOrder: int
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
