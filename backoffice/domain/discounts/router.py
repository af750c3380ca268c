"""Discount event router - FastAPI endpoints for discount events"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, DiscountEvent
from .schemas import DiscountEventCreate, DiscountEventItem, DiscountEventResponse, DiscountEventUpdate
from .service import DiscountEventService, is_event_live

router = APIRouter(prefix="/discount-events", tags=["Discount Events"])


def get_discount_service(db: Session = Depends(get_db)) -> DiscountEventService:
    """Dependency injection for DiscountEventService"""
    return DiscountEventService(db)


def to_discount_event_response(e: DiscountEvent) -> DiscountEventResponse:
    return DiscountEventResponse(
        id=e.id,
        name=e.name,
        active=bool(e.active),
        isLive=is_event_live(e),
        items=[DiscountEventItem(**item) for item in e.items or []],
        bannerCover=e.banner_cover,
        activationMode=e.activation_mode,
        scheduledStart=e.scheduled_start,
        scheduledEnd=e.scheduled_end,
        discountType=e.discount_type,
        createdAt=e.created_at,
        updatedAt=e.updated_at,
    )


@router.get("", response_model=list[DiscountEventResponse])
async def get_discount_events(
    live: bool = Query(False),
    current_user: AdminUser = Depends(get_current_user),
    service: DiscountEventService = Depends(get_discount_service),
):
    return [to_discount_event_response(e) for e in service.list_events(live_only=live)]


@router.post("", response_model=DiscountEventResponse, status_code=201)
async def create_discount_event(
    data: DiscountEventCreate,
    current_user: AdminUser = Depends(get_current_user),
    service: DiscountEventService = Depends(get_discount_service),
):
    return to_discount_event_response(service.create_event(data))


@router.get("/{event_id}", response_model=DiscountEventResponse)
async def get_discount_event(
    event_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: DiscountEventService = Depends(get_discount_service),
):
    return to_discount_event_response(service.get_event(event_id))


@router.put("/{event_id}", response_model=DiscountEventResponse)
async def update_discount_event(
    event_id: str,
    data: DiscountEventUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: DiscountEventService = Depends(get_discount_service),
):
    return to_discount_event_response(service.update_event(event_id, data))


@router.patch("/{event_id}/toggle", response_model=DiscountEventResponse)
async def toggle_discount_event(
    event_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: DiscountEventService = Depends(get_discount_service),
):
    return to_discount_event_response(service.toggle_active(event_id))


@router.delete("/{event_id}", status_code=204)
async def delete_discount_event(
    event_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: DiscountEventService = Depends(get_discount_service),
):
    service.delete_event(event_id)
