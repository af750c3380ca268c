"""Tour package router - FastAPI endpoints for tour packages"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, TourPackage
from .schemas import TourPackageCreate, TourPackageResponse, TourPackageUpdate
from .service import TourPackageService

router = APIRouter(prefix="/tours", tags=["Tour Packages"])


def get_tour_service(db: Session = Depends(get_db)) -> TourPackageService:
    """Dependency injection for TourPackageService"""
    return TourPackageService(db)


def to_tour_response(t: TourPackage) -> TourPackageResponse:
    return TourPackageResponse(
        id=t.id,
        name=t.name,
        slug=t.slug,
        tourCode=t.tour_code,
        description=t.description,
        location=t.location,
        duration=t.duration,
        pricing=t.pricing or {},
        details=t.details,
        media=t.media,
        travelDates=t.travel_dates or [],
        status=t.status,
        pricingHistory=t.pricing_history or [],
        currentVersion=t.current_version or 1,
        createdBy=t.created_by,
        createdAt=t.created_at,
        updatedAt=t.updated_at,
    )


@router.get("", response_model=list[TourPackageResponse])
async def get_tours(
    status: Optional[str] = Query(None),
    current_user: AdminUser = Depends(get_current_user),
    service: TourPackageService = Depends(get_tour_service),
):
    return [to_tour_response(t) for t in service.list_tours(status)]


@router.get("/{tour_id}", response_model=TourPackageResponse)
async def get_tour(
    tour_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: TourPackageService = Depends(get_tour_service),
):
    return to_tour_response(service.get_tour(tour_id))


@router.post("", response_model=TourPackageResponse, status_code=201)
async def create_tour(
    data: TourPackageCreate,
    current_user: AdminUser = Depends(get_current_user),
    service: TourPackageService = Depends(get_tour_service),
):
    return to_tour_response(service.create_tour(data, created_by=current_user.firebase_uid))


@router.put("/{tour_id}", response_model=TourPackageResponse)
async def update_tour(
    tour_id: str,
    data: TourPackageUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: TourPackageService = Depends(get_tour_service),
):
    return to_tour_response(service.update_tour(tour_id, data, changed_by=current_user.email))


@router.delete("/{tour_id}")
async def delete_tour(
    tour_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: TourPackageService = Depends(get_tour_service),
):
    service.delete_tour(tour_id)
    return {"message": "Tour package deleted successfully"}
