"""Booking router - FastAPI endpoints for booking rows"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, Booking
from .schemas import (
    PUBLIC_BOOKING_FIELDS,
    BatchDeleteRequest,
    BookingCreate,
    BookingResponse,
    BookingStatsResponse,
    BookingUpdate,
    BookingUpdateResponse,
    DeleteResult,
    PublicBookingResponse,
    SelectPaymentPlanRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def to_booking_response(b: Booking) -> BookingResponse:
    return BookingResponse(
        id=b.id,
        bookingId=b.booking_id,
        row=b.row,
        tourPackageName=b.tour_package_name,
        email=b.email,
        bookingStatus=b.booking_status,
        paymentPlan=b.payment_plan,
        accessToken=b.access_token,
        data=b.data or {},
        createdAt=b.created_at,
        updatedAt=b.updated_at,
    )


def to_public_booking_response(b: Booking) -> PublicBookingResponse:
    data = b.data or {}
    return PublicBookingResponse(
        bookingId=b.booking_id,
        data={key: data.get(key) for key in PUBLIC_BOOKING_FIELDS if key in data},
    )


# ============================================================================
# GUEST ENDPOINTS (access token)
# ============================================================================


@router.get("/public/{access_token}", response_model=PublicBookingResponse)
async def get_public_booking(access_token: str, service: BookingService = Depends(get_booking_service)):
    """Guest view of a booking through its access token link"""
    return to_public_booking_response(service.get_booking_by_access_token(access_token))


@router.post("/public/{access_token}/payment-plan", response_model=PublicBookingResponse)
async def select_public_payment_plan(
    access_token: str,
    data: SelectPaymentPlanRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking_by_access_token(access_token)
    booking = await service.select_payment_plan(booking, data.paymentTermId)
    return to_public_booking_response(booking)


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================


@router.get("", response_model=list[BookingResponse])
async def get_bookings(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    tour_package_name: Optional[str] = Query(None, alias="tourPackageName"),
    limit: Optional[int] = Query(None, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    bookings = service.list_bookings(search, status, tour_package_name, limit, offset)
    return [to_booking_response(b) for b in bookings]


@router.get("/stats", response_model=BookingStatsResponse)
async def get_booking_stats(
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingStatsResponse(**service.get_stats())


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.create_booking(data, created_by=current_user.firebase_uid, created_by_name=current_user.full_name)
    return to_booking_response(booking)


@router.post("/batch/delete", response_model=DeleteResult)
async def batch_delete_bookings(
    data: BatchDeleteRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    deleted = service.batch_delete(data.ids, deleted_by=current_user.firebase_uid, deleted_by_name=current_user.full_name)
    return DeleteResult(deleted=deleted)


@router.delete("", response_model=DeleteResult)
async def delete_all_bookings(
    confirm: bool = Query(False),
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Remove every booking row; requires ?confirm=true"""
    if not confirm:
        raise HTTPException(status_code=400, detail="Pass confirm=true to delete all bookings")
    deleted = service.delete_all(deleted_by=current_user.firebase_uid, deleted_by_name=current_user.full_name)
    return DeleteResult(deleted=deleted)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return to_booking_response(service.get_booking(booking_id))


@router.patch("/{booking_id}", response_model=BookingUpdateResponse)
async def update_booking(
    booking_id: str,
    data: BookingUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.update_booking(
        booking_id, data.fields, updated_by=current_user.firebase_uid, updated_by_name=current_user.full_name
    )
    return BookingUpdateResponse(
        booking=to_booking_response(result["booking"]),
        versionId=result["versionId"],
        reminderJobId=result["reminderJobId"],
        remindersCancelled=result["remindersCancelled"],
    )


@router.post("/{booking_id}/payment-plan", response_model=BookingResponse)
async def select_payment_plan(
    booking_id: str,
    data: SelectPaymentPlanRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id)
    return to_booking_response(await service.select_payment_plan(booking, data.paymentTermId))


@router.delete("/{booking_id}", status_code=204)
async def delete_booking(
    booking_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    service.delete_booking(booking_id, deleted_by=current_user.firebase_uid, deleted_by_name=current_user.full_name)
