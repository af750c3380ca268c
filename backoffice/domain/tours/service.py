"""Tour package service - Business logic for tour packages and pricing history"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...calculations.booking_calculations import to_date
from ...models import TourPackage
from .repository import TourPackageRepository
from .schemas import TourPackageCreate, TourPackageUpdate

logger = logging.getLogger(__name__)


def generate_slug(name: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", (name or "").lower().strip())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def _pricing_changed(old: dict, new: dict) -> bool:
    return any((old or {}).get(key) != new.get(key) for key in ("original", "discounted", "deposit", "currency"))


class TourPackageService:
    """Service layer for tour package business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TourPackageRepository()

    def list_tours(self, status: Optional[str] = None) -> list[TourPackage]:
        return self.repo.list_tours(self.db, status)

    def get_tour(self, tour_id: str) -> TourPackage:
        tour = self.repo.get_by_id(self.db, tour_id)
        if not tour:
            raise HTTPException(status_code=404, detail="Tour package not found")
        return tour

    def get_tour_by_name(self, name: str) -> Optional[TourPackage]:
        return self.repo.get_by_name(self.db, name)

    def create_tour(self, data: TourPackageCreate, created_by: Optional[str] = None) -> TourPackage:
        slug = generate_slug(data.slug or data.name)
        if not slug:
            raise HTTPException(status_code=400, detail="Tour slug cannot be empty")
        if self.repo.get_by_slug(self.db, slug):
            raise HTTPException(status_code=409, detail="A tour with this slug already exists")

        tour = TourPackage(
            name=data.name,
            slug=slug,
            tour_code=data.tourCode,
            description=data.description,
            location=data.location,
            duration=data.duration,
            pricing=data.pricing.model_dump(),
            details=data.details.model_dump(),
            media=data.media.model_dump(),
            travel_dates=[d.model_dump() for d in data.travelDates],
            status=data.status,
            pricing_history=[],
            current_version=1,
            created_by=created_by,
        )
        tour = self.repo.create_tour(self.db, tour)
        logger.info(f"✅ Tour package created: {tour.name} ({tour.id})")
        return tour

    def update_tour(self, tour_id: str, data: TourPackageUpdate, changed_by: Optional[str] = None) -> TourPackage:
        """Update a tour; a pricing change archives the previous pricing and bumps the version"""
        tour = self.get_tour(tour_id)

        if data.name is not None:
            tour.name = data.name.strip()
        if data.slug is not None:
            slug = generate_slug(data.slug)
            existing = self.repo.get_by_slug(self.db, slug)
            if existing and existing.id != tour.id:
                raise HTTPException(status_code=409, detail="A tour with this slug already exists")
            tour.slug = slug
        if data.tourCode is not None:
            tour.tour_code = data.tourCode
        if data.description is not None:
            tour.description = data.description
        if data.location is not None:
            tour.location = data.location
        if data.duration is not None:
            tour.duration = data.duration
        if data.details is not None:
            tour.details = data.details.model_dump()
        if data.media is not None:
            media = data.media.model_dump()
            current = tour.media or {}
            tour.media = {
                "coverImage": media["coverImage"] or current.get("coverImage", ""),
                "gallery": media["gallery"] or current.get("gallery", []),
            }
        if data.travelDates is not None:
            tour.travel_dates = [d.model_dump() for d in data.travelDates]
        if data.status is not None:
            tour.status = data.status

        if data.pricing is not None:
            new_pricing = data.pricing.model_dump()
            if _pricing_changed(tour.pricing, new_pricing):
                history_entry = {
                    "version": tour.current_version or 1,
                    "effectiveDate": datetime.now(timezone.utc).isoformat(),
                    "pricing": dict(tour.pricing or {}),
                    "changedBy": changed_by or "system",
                    "reason": data.priceChangeReason or "Price update",
                }
                tour.pricing_history = [*(tour.pricing_history or []), history_entry]
                tour.current_version = (tour.current_version or 1) + 1
                logger.info(f"💳 Pricing for {tour.name} moved to version {tour.current_version}")
            tour.pricing = new_pricing

        return self.repo.save(self.db, tour)

    def delete_tour(self, tour_id: str) -> None:
        tour = self.get_tour(tour_id)
        self.repo.delete_tour(self.db, tour)
        logger.info(f"🗑️ Tour package deleted: {tour_id}")

    def discounted_cost_for(self, tour_package_name: str, tour_date) -> Optional[float]:
        """Custom discounted cost of the matching travel date, else the package discount"""
        tour = self.repo.get_by_name(self.db, tour_package_name)
        if not tour:
            return None

        target = to_date(tour_date)
        if target:
            for travel_date in tour.travel_dates or []:
                start = to_date(travel_date.get("startDate"))
                if start and start.date() == target.date():
                    if travel_date.get("hasCustomDiscounted") and travel_date.get("customDiscounted"):
                        return float(travel_date["customDiscounted"])
                    break

        discounted = (tour.pricing or {}).get("discounted")
        return float(discounted) if discounted else None
