"""Stripe payment router - guest checkout, webhook and admin payment endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AdminUser, StripePayment
from .schemas import (
    CleanupResult,
    InstallmentCheckoutRequest,
    InstallmentCheckoutResponse,
    RefundResponse,
    ReservationPaymentRequest,
    ReservationPaymentResponse,
    StripePaymentResponse,
)
from .service import StripePaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> StripePaymentService:
    """Dependency injection for StripePaymentService"""
    return StripePaymentService(db)


def to_payment_response(p: StripePayment) -> StripePaymentResponse:
    return StripePaymentResponse(
        id=p.id,
        type=p.type,
        status=p.status,
        email=p.email,
        tourPackageId=p.tour_package_id,
        tourPackageName=p.tour_package_name,
        amount=p.amount,
        currency=p.currency,
        stripeIntentId=p.stripe_intent_id,
        checkoutSessionId=p.checkout_session_id,
        installmentTerm=p.installment_term,
        bookingDocumentId=p.booking_document_id,
        bookingId=p.booking_id,
        meta=p.meta,
        refundDetails=p.refund_details,
        createdAt=p.created_at,
        updatedAt=p.updated_at,
        paidAt=p.paid_at,
        refundedAt=p.refunded_at,
        failedAt=p.failed_at,
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.post("/reservation", response_model=ReservationPaymentResponse)
async def init_reservation_payment(
    data: ReservationPaymentRequest, service: StripePaymentService = Depends(get_payment_service)
):
    """Start (or resume) the reservation fee payment from the booking form"""
    return ReservationPaymentResponse(**service.init_reservation_payment(data))


@router.post("/checkout/{access_token}", response_model=InstallmentCheckoutResponse)
async def create_installment_checkout(
    access_token: str,
    data: InstallmentCheckoutRequest,
    service: StripePaymentService = Depends(get_payment_service),
):
    """Checkout Session for an installment, authorised by the booking access token"""
    return InstallmentCheckoutResponse(**service.create_installment_checkout(access_token, data.installmentId))


@router.post("/webhook")
async def stripe_webhook(request: Request, service: StripePaymentService = Depends(get_payment_service)):
    """Stripe webhook endpoint, authenticated by signature verification"""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        return await service.handle_webhook(payload, signature)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Stripe webhook processing error: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================


@router.get("", response_model=list[StripePaymentResponse])
async def get_payments(
    status: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: AdminUser = Depends(get_current_user),
    service: StripePaymentService = Depends(get_payment_service),
):
    return [to_payment_response(p) for p in service.list_payments(status, email, limit)]


@router.post("/cleanup", response_model=CleanupResult)
async def cleanup_abandoned_payments(
    current_user: AdminUser = Depends(get_current_user),
    service: StripePaymentService = Depends(get_payment_service),
):
    return CleanupResult(**service.cleanup_abandoned_payments())


@router.get("/{payment_id}", response_model=StripePaymentResponse)
async def get_payment(
    payment_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: StripePaymentService = Depends(get_payment_service),
):
    return to_payment_response(service.get_payment(payment_id))


@router.post("/{payment_id}/refund", response_model=RefundResponse)
async def refund_payment(
    payment_id: str,
    current_user: AdminUser = Depends(get_current_user),
    service: StripePaymentService = Depends(get_payment_service),
):
    logger.info(f"🔄 Refund requested by {current_user.email} for payment {payment_id}")
    return RefundResponse(**service.refund_payment(payment_id))
