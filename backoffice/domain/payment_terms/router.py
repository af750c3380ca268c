"""Payment term router - FastAPI endpoints for payment term configuration"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, PaymentTerm
from .schemas import PaymentTermCreate, PaymentTermResponse, PaymentTermUpdate, SortOrderItem
from .service import PaymentTermService

router = APIRouter(prefix="/payment-terms", tags=["Payment Terms"])


def get_payment_term_service(db: Session = Depends(get_db)) -> PaymentTermService:
    """Dependency injection for PaymentTermService"""
    return PaymentTermService(db)


def to_term_response(t: PaymentTerm) -> PaymentTermResponse:
    return PaymentTermResponse(
        id=t.id,
        name=t.name,
        description=t.description,
        paymentType=t.payment_type,
        daysRequired=t.days_required,
        monthsRequired=t.months_required,
        monthlyPercentages=t.monthly_percentages,
        percentage=t.percentage,
        depositPercentage=t.deposit_percentage or 0,
        color=t.color,
        isActive=t.is_active,
        sortOrder=t.sort_order,
        createdAt=t.created_at,
        updatedAt=t.updated_at,
    )


@router.get("", response_model=list[PaymentTermResponse])
async def get_payment_terms(
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return [to_term_response(t) for t in service.list_terms()]


@router.get("/active", response_model=list[PaymentTermResponse])
async def get_active_payment_terms(
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return [to_term_response(t) for t in service.list_terms(active_only=True)]


@router.post("/initialize-defaults")
async def initialize_default_terms(
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    """Seed the default payment terms when none exist"""
    terms = service.initialize_defaults()
    if terms is None:
        raise HTTPException(status_code=409, detail="Payment terms already exist")
    return {"message": f"Initialized {len(terms)} default payment terms", "terms": [to_term_response(t) for t in terms]}


@router.put("/sort-order", response_model=list[PaymentTermResponse])
async def update_sort_order(
    items: list[SortOrderItem],
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return [to_term_response(t) for t in service.update_sort_order(items)]


@router.get("/{term_id}", response_model=PaymentTermResponse)
async def get_payment_term(
    term_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return to_term_response(service.get_term(term_id))


@router.post("", response_model=PaymentTermResponse, status_code=201)
async def create_payment_term(
    data: PaymentTermCreate,
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return to_term_response(service.create_term(data))


@router.put("/{term_id}", response_model=PaymentTermResponse)
async def update_payment_term(
    term_id: str,
    data: PaymentTermUpdate,
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return to_term_response(service.update_term(term_id, data))


@router.patch("/{term_id}/toggle", response_model=PaymentTermResponse)
async def toggle_payment_term(
    term_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    return to_term_response(service.toggle_active(term_id))


@router.delete("/{term_id}")
async def delete_payment_term(
    term_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: PaymentTermService = Depends(get_payment_term_service),
):
    service.delete_term(term_id)
    return {"message": "Payment term deleted successfully"}
