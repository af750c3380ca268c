"""Payment term service - CRUD and default seeding for payment terms"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import PaymentTerm
from .schemas import PaymentTermCreate, PaymentTermUpdate, SortOrderItem, validate_monthly_percentages

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS = [
    {
        "name": "Invalid Booking",
        "description": "Tour date is within 2 days of booking date; the booking cannot be processed.",
        "payment_type": "invalid_booking",
        "days_required": 2,
        "sort_order": 1,
        "color": "#ef4444",
    },
    {
        "name": "Full Payment Required Within 2 Days",
        "description": "Tour date is 2-30 days away with no eligible instalment dates available.",
        "payment_type": "full_payment",
        "days_required": 2,
        "percentage": 100,
        "sort_order": 2,
        "color": "#f59e0b",
    },
    {
        "name": "P1 - Single Instalment",
        "description": "Only 1 eligible payment date available, tour date 30-60 days away.",
        "payment_type": "monthly_scheduled",
        "months_required": 1,
        "monthly_percentages": [100],
        "percentage": 100,
        "sort_order": 3,
        "color": "#3b82f6",
    },
    {
        "name": "P2 - Two Instalments",
        "description": "2 eligible payment dates available, tour date 60-90 days away.",
        "payment_type": "monthly_scheduled",
        "months_required": 2,
        "monthly_percentages": [50, 50],
        "percentage": 100,
        "sort_order": 4,
        "color": "#8b5cf6",
    },
    {
        "name": "P3 - Three Instalments",
        "description": "3 eligible payment dates available, tour date 90-120 days away.",
        "payment_type": "monthly_scheduled",
        "months_required": 3,
        "monthly_percentages": [33.33, 33.33, 33.34],
        "percentage": 100,
        "sort_order": 5,
        "color": "#10b981",
    },
    {
        "name": "P4 - Four Instalments",
        "description": "4+ eligible payment dates available, tour date 120+ days away.",
        "payment_type": "monthly_scheduled",
        "months_required": 4,
        "monthly_percentages": [25, 25, 25, 25],
        "percentage": 100,
        "sort_order": 6,
        "color": "#06b6d4",
    },
]

_FIELD_MAP = {
    "name": "name",
    "description": "description",
    "paymentType": "payment_type",
    "daysRequired": "days_required",
    "monthsRequired": "months_required",
    "monthlyPercentages": "monthly_percentages",
    "percentage": "percentage",
    "depositPercentage": "deposit_percentage",
    "color": "color",
    "isActive": "is_active",
    "sortOrder": "sort_order",
}


class PaymentTermService:
    """Service layer for payment term configuration"""

    def __init__(self, db: Session):
        self.db = db

    def list_terms(self, active_only: bool = False) -> list[PaymentTerm]:
        query = self.db.query(PaymentTerm)
        if active_only:
            query = query.filter(PaymentTerm.is_active.is_(True))
        return query.order_by(PaymentTerm.sort_order.asc()).all()

    def get_term(self, term_id: str) -> PaymentTerm:
        term = self.db.query(PaymentTerm).filter(PaymentTerm.id == term_id).first()
        if not term:
            raise HTTPException(status_code=404, detail="Payment term not found")
        return term

    def create_term(self, data: PaymentTermCreate) -> PaymentTerm:
        term = PaymentTerm(**{_FIELD_MAP[key]: value for key, value in data.model_dump().items()})
        self.db.add(term)
        self.db.commit()
        self.db.refresh(term)
        logger.info(f"✅ Payment term created: {term.name}")
        return term

    def update_term(self, term_id: str, data: PaymentTermUpdate) -> PaymentTerm:
        term = self.get_term(term_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(term, _FIELD_MAP[key], value)

        if term.payment_type == "monthly_scheduled" and term.monthly_percentages:
            if term.months_required and len(term.monthly_percentages) != term.months_required:
                raise HTTPException(status_code=400, detail="monthlyPercentages must have one entry per month")
            try:
                validate_monthly_percentages(term.monthly_percentages)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e

        self.db.commit()
        self.db.refresh(term)
        return term

    def delete_term(self, term_id: str) -> None:
        term = self.get_term(term_id)
        self.db.delete(term)
        self.db.commit()

    def toggle_active(self, term_id: str) -> PaymentTerm:
        term = self.get_term(term_id)
        term.is_active = not term.is_active
        self.db.commit()
        self.db.refresh(term)
        return term

    def update_sort_order(self, items: list[SortOrderItem]) -> list[PaymentTerm]:
        for item in items:
            self.get_term(item.id).sort_order = item.sortOrder
        self.db.commit()
        return self.list_terms()

    def initialize_defaults(self) -> Optional[list[PaymentTerm]]:
        """Seed the default payment terms; returns None when terms already exist"""
        if self.db.query(PaymentTerm).count() > 0:
            logger.info("ℹ️ Payment terms already exist, skipping defaults")
            return None

        terms = [PaymentTerm(**defaults) for defaults in DEFAULT_PAYMENT_TERMS]
        self.db.add_all(terms)
        self.db.commit()
        logger.info(f"✅ Initialized {len(terms)} default payment terms")
        return self.list_terms()
