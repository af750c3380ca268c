"""Discount event service"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...calculations.booking_calculations import round_currency, to_number
from ...models import DiscountEvent
from .schemas import DiscountEventCreate, DiscountEventItem, DiscountEventUpdate

logger = logging.getLogger(__name__)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def compute_discounted_cost(original_cost, rate, discount_type: str = "percent") -> float:
    original = to_number(original_cost)
    if discount_type == "amount":
        return max(round_currency(original - to_number(rate)), 0)
    return max(round_currency(original * (1 - to_number(rate) / 100)), 0)


def price_items(items: list[DiscountEventItem], discount_type: str) -> list[dict]:
    """Items as stored, with each date's discounted cost derived from its rate"""
    priced = []
    for item in items:
        data = item.model_dump()
        for date_discount in data["dateDiscounts"]:
            date_discount["discountedCost"] = compute_discounted_cost(
                data["originalCost"], date_discount["discountRate"], discount_type
            )
        priced.append(data)
    return priced


def is_event_live(event: DiscountEvent, now: Optional[datetime] = None) -> bool:
    """Manual events follow the active flag; scheduled events follow their window"""
    now = _naive_utc(now) or datetime.utcnow()
    if event.activation_mode == "scheduled":
        if event.scheduled_start and now < event.scheduled_start:
            return False
        if event.scheduled_end and now > event.scheduled_end:
            return False
        return bool(event.scheduled_start or event.scheduled_end)
    return bool(event.active)


class DiscountEventService:
    """Service layer for discount events"""

    def __init__(self, db: Session):
        self.db = db

    def list_events(self, live_only: bool = False) -> list[DiscountEvent]:
        events = self.db.query(DiscountEvent).order_by(DiscountEvent.created_at.desc()).all()
        if live_only:
            now = datetime.utcnow()
            events = [e for e in events if is_event_live(e, now)]
        return events

    def get_event(self, event_id: str) -> DiscountEvent:
        event = self.db.query(DiscountEvent).filter(DiscountEvent.id == event_id).first()
        if not event:
            raise HTTPException(status_code=404, detail="Discount event not found")
        return event

    def create_event(self, data: DiscountEventCreate) -> DiscountEvent:
        event = DiscountEvent(
            name=data.name,
            active=data.active,
            items=price_items(data.items, data.discountType),
            banner_cover=data.bannerCover,
            activation_mode=data.activationMode,
            scheduled_start=_naive_utc(data.scheduledStart),
            scheduled_end=_naive_utc(data.scheduledEnd),
            discount_type=data.discountType,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        logger.info(f"✅ Discount event created: {event.name} ({event.id})")
        return event

    def update_event(self, event_id: str, data: DiscountEventUpdate) -> DiscountEvent:
        event = self.get_event(event_id)
        if data.name is not None:
            if not data.name.strip():
                raise HTTPException(status_code=400, detail="Event name is required")
            event.name = data.name.strip()
        if data.active is not None:
            event.active = data.active
        if data.bannerCover is not None:
            event.banner_cover = data.bannerCover
        if data.activationMode is not None:
            if data.activationMode not in ("manual", "scheduled"):
                raise HTTPException(status_code=400, detail="Activation mode must be manual or scheduled")
            event.activation_mode = data.activationMode
        if data.scheduledStart is not None:
            event.scheduled_start = _naive_utc(data.scheduledStart)
        if data.scheduledEnd is not None:
            event.scheduled_end = _naive_utc(data.scheduledEnd)
        if data.discountType is not None:
            if data.discountType not in ("percent", "amount"):
                raise HTTPException(status_code=400, detail="Discount type must be percent or amount")
            event.discount_type = data.discountType

        if data.items is not None:
            event.items = price_items(data.items, event.discount_type)
        elif data.discountType is not None:
            event.items = price_items([DiscountEventItem(**item) for item in event.items or []], event.discount_type)

        if event.scheduled_start and event.scheduled_end and event.scheduled_end <= event.scheduled_start:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Scheduled end must be after scheduled start")

        self.db.commit()
        self.db.refresh(event)
        return event

    def toggle_active(self, event_id: str) -> DiscountEvent:
        event = self.get_event(event_id)
        event.active = not event.active
        self.db.commit()
        self.db.refresh(event)
        logger.info(f"🔄 Discount event {event.name} {'activated' if event.active else 'deactivated'}")
        return event

    def delete_event(self, event_id: str) -> None:
        event = self.get_event(event_id)
        self.db.delete(event)
        self.db.commit()
        logger.info(f"🗑️ Discount event deleted: {event_id}")
