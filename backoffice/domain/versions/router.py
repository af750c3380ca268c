"""Version history router - FastAPI endpoints for booking versions"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, BookingVersion
from .schemas import (
    CleanupRequest,
    CleanupResponse,
    RestoreResponse,
    VersionComparisonResponse,
    VersionResponse,
)
from .service import VersionHistoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/versions", tags=["Version History"])


def get_version_service(db: Session = Depends(get_db)) -> VersionHistoryService:
    """Dependency injection for VersionHistoryService"""
    return VersionHistoryService(db)


def to_version_response(v: BookingVersion) -> VersionResponse:
    return VersionResponse(
        id=v.id,
        bookingId=v.booking_id,
        versionNumber=v.version_number,
        branchId=v.branch_id,
        documentSnapshot=v.document_snapshot or {},
        createdBy=v.created_by,
        createdByName=v.created_by_name,
        changeType=v.change_type,
        changeDescription=v.change_description,
        isRestorePoint=bool(v.is_restore_point),
        restoredFromVersionId=v.restored_from_version_id,
        bulkOperation=v.bulk_operation,
        changes=v.changes or [],
        branchInfo=v.branch_info,
        createdAt=v.created_at,
    )


@router.get("/recent", response_model=list[VersionResponse])
async def get_recent_versions(
    limit: int = Query(100, ge=1, le=500),
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    """Latest versions across all bookings"""
    return [to_version_response(v) for v in service.list_recent_versions(limit)]


@router.get("/compare", response_model=VersionComparisonResponse)
async def compare_versions(
    from_version_id: str = Query(..., alias="from"),
    to_version_id: str = Query(..., alias="to"),
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    comparison = service.compare_versions(from_version_id, to_version_id)
    return VersionComparisonResponse(
        fromVersion=to_version_response(comparison["fromVersion"]),
        toVersion=to_version_response(comparison["toVersion"]),
        changedFields=comparison["changedFields"],
        addedFields=comparison["addedFields"],
        removedFields=comparison["removedFields"],
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_versions(
    data: CleanupRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    """Apply the retention policy now instead of waiting for the nightly job"""
    return CleanupResponse(**service.cleanup_old_versions(data.retentionDays, data.minVersionsPerBooking))


@router.get("/booking/{booking_id}", response_model=list[VersionResponse])
async def get_booking_versions(
    booking_id: str,
    limit: int = Query(50, ge=1, le=500),
    change_type: Optional[str] = Query(None, alias="changeType"),
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    return [to_version_response(v) for v in service.list_versions(booking_id, limit, change_type)]


@router.get("/booking/{booking_id}/count")
async def get_booking_version_count(
    booking_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    return {"bookingId": booking_id, "count": service.get_version_count(booking_id)}


@router.post("/booking/{booking_id}/restore/{version_id}", response_model=RestoreResponse)
async def restore_version(
    booking_id: str,
    version_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    """Restore a booking to a previous version"""
    version = service.restore_version(
        booking_id,
        version_id,
        user_id=current_user.firebase_uid,
        user_name=current_user.full_name or current_user.email,
    )
    return RestoreResponse(
        success=True,
        newVersionId=version.id,
        newVersionNumber=version.version_number,
        branchId=version.branch_id,
    )


@router.get("/{version_id}", response_model=VersionResponse)
async def get_version(
    version_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: VersionHistoryService = Depends(get_version_service),
):
    return to_version_response(service.get_version(version_id))
