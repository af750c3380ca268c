"""Payment reminder router - manual setup and cancellation of a booking's reminders"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser
from ..bookings.repository import BookingRepository
from .service import PaymentReminderService

router = APIRouter(prefix="/bookings", tags=["Payment Reminders"])


def get_reminder_service(db: Session = Depends(get_db)) -> PaymentReminderService:
    """Dependency injection for PaymentReminderService"""
    return PaymentReminderService(db)


@router.post("/{booking_id}/reminders/setup")
async def setup_booking_reminders(
    booking_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentReminderService = Depends(get_reminder_service),
):
    """Run reminder setup now instead of waiting for the worker"""
    return await service.setup_reminders(booking_id)


@router.post("/{booking_id}/reminders/cancel")
async def cancel_booking_reminders(
    booking_id: str,
    current_user: AdminUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: PaymentReminderService = Depends(get_reminder_service),
):
    booking = BookingRepository.get_by_id(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return {"bookingId": booking_id, "cancelled": service.cancel_reminders(booking)}
