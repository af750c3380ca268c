"""Booking service - sheet row business logic"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...calculations.booking_calculations import (
    calculate_payment_plan_update,
    compute_return_date,
    create_booking_data,
    extract_payment_plan_type,
)
from ...config import DEFAULT_RESERVATION_FEE, REMINDER_DAYS_BEFORE
from ...jobs import enqueue_job
from ...models import Booking, PaymentTerm, TourPackage
from ..columns.dependency_graph import recompute_row
from ..payment_reminders.service import PaymentReminderService
from ..payment_terms.service import PaymentTermService
from ..tours.service import TourPackageService
from ..versions.service import VersionHistoryService, snapshot_of
from .repository import BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "Revolut"
DEFAULT_TOUR_CODE = "XXX"


def generate_access_token() -> str:
    return secrets.token_urlsafe(32)


def plan_for_term(term: PaymentTerm) -> str:
    """Plan code (Full Payment, P1..P4) for a payment term; empty when the term cannot be selected"""
    if term.payment_type == "full_payment":
        return "Full Payment"
    if term.payment_type == "monthly_scheduled" and term.months_required in (1, 2, 3, 4):
        return f"P{term.months_required}"
    plan = extract_payment_plan_type(term.name)
    return plan if plan in ("Full Payment", "P1", "P2", "P3", "P4") else ""


def reminder_toggle(old: dict, new: dict) -> Optional[bool]:
    """True when reminders were switched on, False when switched off, None otherwise"""
    before = bool(old.get("enablePaymentReminder"))
    after = bool(new.get("enablePaymentReminder"))
    if before == after:
        return None
    return after


class BookingService:
    """Service layer for booking rows"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository
        self.versions = VersionHistoryService(db)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def list_bookings(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        tour_package_name: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Booking]:
        return self.repo.list_bookings(self.db, search, status, tour_package_name, limit, offset)

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repo.get_by_id(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_booking_by_access_token(self, access_token: str) -> Booking:
        booking = self.repo.get_by_access_token(self.db, access_token)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_stats(self) -> dict:
        return self.repo.get_stats(self.db)

    # ========================================================================
    # CREATE
    # ========================================================================

    def build_new_booking_data(self, details: dict, tour: TourPackage, now: Optional[datetime] = None) -> dict:
        """
        Full sheet values for a new booking on ``tour``.

        ``details`` carries the guest fields (email, firstName, lastName,
        bookingType, tourDate, reservationFee, paidAmount, paymentMethod, ...).
        Pricing comes from the tour package and is snapshotted on the row.
        """
        now = now or datetime.now(timezone.utc)
        pricing = tour.pricing or {}
        tour_service = TourPackageService(self.db)
        discounted = tour_service.discounted_cost_for(tour.name, details.get("tourDate"))
        reservation_fee = details.get("reservationFee")
        if reservation_fee in (None, ""):
            reservation_fee = pricing.get("deposit") or DEFAULT_RESERVATION_FEE

        data = create_booking_data(
            {
                **details,
                "tourPackageName": tour.name,
                "tourCode": tour.tour_code or DEFAULT_TOUR_CODE,
                "tourDuration": tour.duration or "",
                "returnDate": compute_return_date(details.get("tourDate"), tour.duration),
                "reservationFee": reservation_fee,
                "paidAmount": details.get("paidAmount") if details.get("paidAmount") is not None else reservation_fee,
                "originalTourCost": pricing.get("original") or 0,
                "discountedTourCost": discounted,
                "existingBookingsCount": self.repo.count_for_tour_package(self.db, tour.name),
                "totalBookingsCount": self.repo.max_row(self.db),
            },
            now,
        )
        data["tourPackagePricingVersion"] = tour.current_version or 1
        data["priceSnapshotDate"] = now.isoformat()
        data["lockPricing"] = True
        return recompute_row(data)

    def create_booking(
        self,
        data: BookingCreate,
        created_by: Optional[str] = None,
        created_by_name: Optional[str] = None,
    ) -> Booking:
        tour = TourPackageService(self.db).get_tour_by_name(data.tourPackageName)
        if not tour:
            raise HTTPException(status_code=404, detail="Tour package not found")

        values = self.build_new_booking_data(data.model_dump(), tour)
        values["tags"] = ["manual"]
        booking = self.create_from_values(
            values, created_by=created_by, created_by_name=created_by_name, description="Booking created manually"
        )
        return booking

    def create_from_values(
        self,
        values: dict,
        access_token: Optional[str] = None,
        created_by: Optional[str] = None,
        created_by_name: Optional[str] = None,
        description: str = "Booking created",
    ) -> Booking:
        token = access_token or generate_access_token()
        booking = self.repo.create_booking(self.db, values, access_token=token)
        self.versions.create_version_snapshot(
            booking_id=booking.id,
            document_snapshot=snapshot_of(booking),
            change_type="create",
            created_by=created_by,
            created_by_name=created_by_name,
            change_description=description,
        )
        logger.info(f"✅ Booking created: {booking.booking_id} ({booking.id})")
        return booking

    # ========================================================================
    # UPDATE
    # ========================================================================

    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
        updated_by: Optional[str] = None,
        updated_by_name: Optional[str] = None,
    ) -> dict:
        """
        Apply edited cells, recompute dependent columns and record a version.

        Switching ``enablePaymentReminder`` on queues the reminder setup job;
        switching it off cancels the pending reminders.
        """
        booking = self.get_booking(booking_id)
        old = dict(booking.data or {})
        previous_snapshot = snapshot_of(booking)

        new = {**old, **fields}
        new = recompute_row(new, list(fields.keys()))
        new["updatedAt"] = datetime.now(timezone.utc).isoformat()
        booking = self.repo.save_booking(self.db, booking, new)

        version = self.versions.create_version_snapshot(
            booking_id=booking.id,
            document_snapshot=snapshot_of(booking),
            change_type="update",
            created_by=updated_by,
            created_by_name=updated_by_name,
            change_description=f"Updated {', '.join(sorted(fields.keys()))}",
            previous_snapshot=previous_snapshot,
        )

        result = {"booking": booking, "versionId": version.id, "reminderJobId": None, "remindersCancelled": 0}
        toggled = reminder_toggle(old, new)
        if toggled is True:
            result["reminderJobId"] = await enqueue_job("setup_payment_reminders", booking.id)
        elif toggled is False:
            result["remindersCancelled"] = PaymentReminderService(self.db).cancel_reminders(booking)
        return result

    async def select_payment_plan(self, booking: Booking, payment_term_id: str) -> Booking:
        """Apply a payment term to a booking that has no plan yet and enable reminders"""
        data = dict(booking.data or {})
        if data.get("paymentPlan"):
            raise HTTPException(status_code=409, detail="Payment plan already selected")

        term = PaymentTermService(self.db).get_term(payment_term_id)
        plan = plan_for_term(term)
        if not plan:
            raise HTTPException(status_code=400, detail=f"Unsupported payment term: {term.name}")

        previous_snapshot = snapshot_of(booking)
        update = calculate_payment_plan_update(
            {
                "paymentPlan": plan,
                "reservationDate": data.get("reservationDate"),
                "tourDate": data.get("tourDate"),
                "paymentCondition": data.get("paymentCondition"),
                "originalTourCost": data.get("originalTourCost"),
                "discountedTourCost": data.get("discountedTourCost"),
                "reservationFee": data.get("reservationFee"),
                "isMainBooker": data.get("isMainBooking") is not False,
                "creditAmount": data.get("creditAmount"),
                "creditFrom": data.get("creditFrom"),
                "reminderDaysBefore": REMINDER_DAYS_BEFORE,
            }
        )
        data.update(update)
        data["paymentTermId"] = term.id
        data["paidTerms"] = 0
        data["enablePaymentReminder"] = True
        if not data.get("paymentMethod"):
            data["paymentMethod"] = DEFAULT_PAYMENT_METHOD

        booking = self.repo.save_booking(self.db, booking, data)
        self.versions.create_version_snapshot(
            booking_id=booking.id,
            document_snapshot=snapshot_of(booking),
            change_type="update",
            change_description=f"Payment plan selected: {plan}",
            previous_snapshot=previous_snapshot,
        )
        logger.info(f"💳 Payment plan {plan} selected for booking {booking.booking_id}")

        await enqueue_job("setup_payment_reminders", booking.id)
        return booking

    # ========================================================================
    # DELETE
    # ========================================================================

    def delete_booking(
        self, booking_id: str, deleted_by: Optional[str] = None, deleted_by_name: Optional[str] = None
    ) -> None:
        booking = self.get_booking(booking_id)
        self.versions.create_version_snapshot(
            booking_id=booking.id,
            document_snapshot=snapshot_of(booking),
            change_type="delete",
            created_by=deleted_by,
            created_by_name=deleted_by_name,
            change_description="Booking deleted",
            commit=False,
        )
        PaymentReminderService(self.db).cancel_reminders(booking)
        self.repo.delete_booking(self.db, booking)
        logger.info(f"🗑️ Booking deleted: {booking_id}")

    def batch_delete(
        self, booking_ids: list[str], deleted_by: Optional[str] = None, deleted_by_name: Optional[str] = None
    ) -> int:
        if not booking_ids:
            raise HTTPException(status_code=400, detail="No booking ids provided")
        deleted = self.repo.batch_delete(self.db, booking_ids)
        if deleted:
            self.versions.create_bulk_operation_snapshot(
                operation_type="delete",
                affected_booking_ids=[b.id for b in deleted],
                description=f"Deleted {len(deleted)} bookings",
                created_by=deleted_by,
                created_by_name=deleted_by_name,
            )
        logger.info(f"🗑️ Batch deleted {len(deleted)} bookings")
        return len(deleted)

    def delete_all(self, deleted_by: Optional[str] = None, deleted_by_name: Optional[str] = None) -> int:
        affected = [b.id for b in self.repo.list_bookings(self.db)]
        deleted = self.repo.delete_all(self.db)
        if deleted:
            self.versions.create_bulk_operation_snapshot(
                operation_type="delete",
                affected_booking_ids=affected,
                description=f"Deleted all {deleted} bookings",
                created_by=deleted_by,
                created_by_name=deleted_by_name,
                total_count=deleted,
            )
        logger.info(f"🗑️ Deleted all bookings: {deleted}")
        return deleted
