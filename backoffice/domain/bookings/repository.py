"""Booking repository - Database operations for booking rows"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Booking


def apply_booking_data(booking: Booking, data: dict) -> Booking:
    """Store sheet values and mirror the indexed fields"""
    booking.data = dict(data)
    booking.booking_id = data.get("bookingId") or None
    booking.tour_package_name = data.get("tourPackageName") or None
    booking.email = data.get("emailAddress") or None
    booking.booking_status = data.get("bookingStatus") or None
    booking.payment_plan = data.get("paymentPlan") or None
    if data.get("row") not in (None, ""):
        try:
            booking.row = int(data["row"])
        except (TypeError, ValueError):
            pass
    if data.get("access_token"):
        booking.access_token = data["access_token"]
    return booking


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def list_bookings(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        tour_package_name: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Booking]:
        """List bookings ordered by sheet row"""
        query = db.query(Booking)

        if status:
            query = query.filter(Booking.booking_status.ilike(f"{status}%"))
        if tour_package_name:
            query = query.filter(func.lower(Booking.tour_package_name) == tour_package_name.lower())
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Booking.booking_id.ilike(pattern),
                    Booking.email.ilike(pattern),
                    Booking.tour_package_name.ilike(pattern),
                )
            )

        query = query.order_by(Booking.row.asc(), Booking.created_at.asc()).offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_by_id(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_by_access_token(db: Session, access_token: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.access_token == access_token).first()

    @staticmethod
    def count_all(db: Session) -> int:
        return db.query(func.count(Booking.id)).scalar() or 0

    @staticmethod
    def count_for_tour_package(db: Session, tour_package_name: str) -> int:
        return (
            db.query(func.count(Booking.id))
            .filter(func.lower(Booking.tour_package_name) == (tour_package_name or "").lower())
            .scalar()
            or 0
        )

    @staticmethod
    def max_row(db: Session) -> int:
        return db.query(func.max(Booking.row)).scalar() or 0

    @staticmethod
    def create_booking(db: Session, data: dict, access_token: Optional[str] = None, commit: bool = True) -> Booking:
        booking = Booking(access_token=access_token)
        apply_booking_data(booking, data)
        db.add(booking)
        if commit:
            db.commit()
            db.refresh(booking)
        else:
            db.flush()
        return booking

    @staticmethod
    def save_booking(db: Session, booking: Booking, data: dict) -> Booking:
        apply_booking_data(booking, data)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def delete_booking(db: Session, booking: Booking) -> None:
        db.delete(booking)
        db.commit()

    @staticmethod
    def batch_delete(db: Session, booking_ids: list[str]) -> list[Booking]:
        """Delete the given bookings and return the rows that existed"""
        bookings = db.query(Booking).filter(Booking.id.in_(booking_ids)).all()
        for booking in bookings:
            db.delete(booking)
        db.commit()
        return bookings

    @staticmethod
    def delete_all(db: Session, commit: bool = True) -> int:
        deleted = db.query(Booking).delete(synchronize_session=False)
        if commit:
            db.commit()
        return deleted

    @staticmethod
    def get_stats(db: Session) -> dict:
        """Booking counts overall, by status and by tour package"""
        total = db.query(func.count(Booking.id)).scalar() or 0

        by_status: dict = {}
        for booking_status, count in db.query(Booking.booking_status, func.count(Booking.id)).group_by(
            Booking.booking_status
        ):
            # "Installment 1/3 — last paid ..." groups under "Installment 1/3"
            key = (booking_status or "Unknown").split(" — ")[0]
            by_status[key] = by_status.get(key, 0) + count

        by_tour_package = {
            (name or "Unknown"): count
            for name, count in db.query(Booking.tour_package_name, func.count(Booking.id)).group_by(
                Booking.tour_package_name
            )
        }

        return {"total": total, "byStatus": by_status, "byTourPackage": by_tour_package}
