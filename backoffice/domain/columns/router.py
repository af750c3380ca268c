"""Column router - FastAPI endpoints for booking sheet columns"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, BookingSheetColumn
from .schemas import ColumnDependenciesResponse, ColumnResponse, ColumnUpdate
from .service import ColumnService

router = APIRouter(prefix="/columns", tags=["Booking Sheet Columns"])


def get_column_service(db: Session = Depends(get_db)) -> ColumnService:
    """Dependency injection for ColumnService"""
    return ColumnService(db)


def to_column_response(c: BookingSheetColumn) -> ColumnResponse:
    return ColumnResponse(
        id=c.id,
        columnName=c.column_name,
        dataType=c.data_type,
        parentTab=c.parent_tab,
        order=c.order,
        width=c.width,
        color=c.color,
        function=c.function_name,
        arguments=c.arguments or [],
        includeInForms=c.include_in_forms,
    )


@router.get("", response_model=list[ColumnResponse])
async def get_columns(
    current_user: AdminUser = Depends(get_current_user),
    service: ColumnService = Depends(get_column_service),
):
    return [to_column_response(c) for c in service.list_columns()]


@router.get("/graph")
async def get_dependency_graph(
    current_user: AdminUser = Depends(get_current_user),
    service: ColumnService = Depends(get_column_service),
):
    """Full dependency graph of the computed columns"""
    return service.get_graph()


@router.get("/{column_id}", response_model=ColumnResponse)
async def get_column(
    column_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: ColumnService = Depends(get_column_service),
):
    return to_column_response(service.get_column(column_id))


@router.put("/{column_id}", response_model=ColumnResponse)
async def update_column(
    column_id: str,
    data: ColumnUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: ColumnService = Depends(get_column_service),
):
    return to_column_response(service.update_column(column_id, data))


@router.get("/{column_id}/dependencies", response_model=ColumnDependenciesResponse)
async def get_column_dependencies(
    column_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: ColumnService = Depends(get_column_service),
):
    return ColumnDependenciesResponse(**service.get_dependencies(column_id))
