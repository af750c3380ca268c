"""Sheet router - booking sheet import and export endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser
from .service import SheetService

router = APIRouter(prefix="/sheets", tags=["Booking Sheet"])


class SyncRequest(BaseModel):
    spreadsheetId: Optional[str] = None
    sheetName: Optional[str] = None


class ImportResult(BaseModel):
    imported: int
    deleted: int


def get_sheet_service(db: Session = Depends(get_db)) -> SheetService:
    """Dependency injection for SheetService"""
    return SheetService(db)


@router.get("/export")
async def export_bookings(
    current_user: AdminUser = Depends(get_current_user),
    service: SheetService = Depends(get_sheet_service),
):
    content = service.export_bookings_csv()
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="bookings.csv"'},
    )


@router.post("/import", response_model=ImportResult)
async def import_bookings_csv(
    file: UploadFile = File(...),
    current_user: AdminUser = Depends(get_current_user),
    service: SheetService = Depends(get_sheet_service),
):
    """Replace all bookings with the rows of an uploaded CSV (header on row 3)"""
    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded") from e
    return ImportResult(**service.import_csv(content, current_user.firebase_uid, current_user.full_name))


@router.post("/sync", response_model=ImportResult)
async def sync_google_sheet(
    data: SyncRequest,
    current_user: AdminUser = Depends(get_current_user),
    service: SheetService = Depends(get_sheet_service),
):
    """Replace all bookings with the contents of the Google Sheet"""
    result = service.sync_from_google_sheets(
        data.spreadsheetId, data.sheetName, current_user.firebase_uid, current_user.full_name
    )
    return ImportResult(**result)
