"""Stripe payment service - reservation fees, installment checkout, webhooks and refunds"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...calculations.booking_calculations import generate_group_id, generate_group_member_id, to_number
from ...config import (
    ABANDONED_PAYMENT_DAYS,
    DEFAULT_RESERVATION_FEE,
    FRONTEND_URL,
    STRIPE_CURRENCY,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from ...email_service import send_installment_receipt, send_reservation_confirmation
from ...models import Booking, CleanupLog, ProcessedStripeEvent, StripePayment
from ..bookings.repository import BookingRepository
from ..bookings.service import DEFAULT_PAYMENT_METHOD, BookingService
from ..columns.dependency_graph import recompute_row
from ..tours.repository import TourPackageRepository
from ..versions.service import VersionHistoryService, snapshot_of
from .schemas import ReservationPaymentRequest

logger = logging.getLogger(__name__)

REFUNDABLE_STATUSES = ["succeeded", "reserve_paid", "reservation_paid", "terms_selected"]
ABANDONED_STATUSES = ["pending", "reserve_pending"]
PAYMENT_TOKEN_TTL = timedelta(hours=24)

# Sheet column prefix per installment id
INSTALLMENT_PREFIXES = {
    "full_payment": "fullPayment",
    "p1": "p1",
    "p2": "p2",
    "p3": "p3",
    "p4": "p4",
}
INSTALLMENT_LABELS = {
    "full_payment": "Full Payment",
    "p1": "Installment 1",
    "p2": "Installment 2",
    "p3": "Installment 3",
    "p4": "Installment 4",
}


def to_minor_units(amount: float) -> int:
    """GBP → pence"""
    return int(round(to_number(amount) * 100))


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or a plain dict"""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def _configure_stripe() -> None:
    if not STRIPE_SECRET_KEY:
        raise HTTPException(status_code=503, detail="Stripe is not configured")
    stripe.api_key = STRIPE_SECRET_KEY


class StripePaymentService:
    """Service layer for Stripe payments"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # QUERIES
    # ========================================================================

    def list_payments(self, status: Optional[str] = None, email: Optional[str] = None, limit: int = 100):
        query = self.db.query(StripePayment)
        if status:
            query = query.filter(StripePayment.status == status)
        if email:
            query = query.filter(StripePayment.email == email.lower())
        return query.order_by(StripePayment.created_at.desc()).limit(limit).all()

    def get_payment(self, payment_id: str) -> StripePayment:
        payment = self.db.query(StripePayment).filter(StripePayment.id == payment_id).first()
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment

    # ========================================================================
    # RESERVATION FEE
    # ========================================================================

    def init_reservation_payment(self, data: ReservationPaymentRequest) -> dict:
        """Create (or reuse) the PaymentIntent for a reservation fee"""
        tour = TourPackageRepository.get_by_id(self.db, data.tourPackageId)
        if not tour:
            raise HTTPException(status_code=404, detail="Tour package not found")

        _configure_stripe()
        amount = to_number((tour.pricing or {}).get("deposit")) or DEFAULT_RESERVATION_FEE

        existing = (
            self.db.query(StripePayment)
            .filter(
                StripePayment.email == data.email,
                StripePayment.tour_package_id == tour.id,
                StripePayment.type == "reservationFee",
                StripePayment.status.in_(ABANDONED_STATUSES),
            )
            .first()
        )
        if existing and existing.stripe_intent_id:
            try:
                intent = stripe.PaymentIntent.retrieve(existing.stripe_intent_id)
                if _get(intent, "status") != "succeeded":
                    existing.meta = data.model_dump()
                    self.db.commit()
                    logger.info(f"🔄 Reusing payment intent {existing.stripe_intent_id} for {data.email}")
                    return {
                        "clientSecret": _get(intent, "client_secret"),
                        "paymentDocId": existing.id,
                        "amount": existing.amount,
                        "currency": existing.currency,
                        "reused": True,
                    }
            except stripe.StripeError as e:
                logger.warning(f"⚠️ Could not retrieve payment intent {existing.stripe_intent_id}: {e}")

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=STRIPE_CURRENCY,
                automatic_payment_methods={"enabled": True},
                description=f"Reservation fee for {tour.name}",
                receipt_email=data.email,
                metadata={
                    "email": data.email,
                    "tourPackageId": tour.id,
                    "tourPackageName": tour.name,
                    "type": "reservationFee",
                },
                idempotency_key=f"reservationFee:{data.email}:{tour.id}",
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe PaymentIntent creation failed for {data.email}: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e

        payment = StripePayment(
            type="reservationFee",
            status="reserve_pending",
            email=data.email,
            tour_package_id=tour.id,
            tour_package_name=tour.name,
            amount=amount,
            currency="GBP",
            stripe_intent_id=_get(intent, "id"),
            meta=data.model_dump(),
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"💳 Reservation payment initialised for {data.email}: {payment.id}")

        return {
            "clientSecret": _get(intent, "client_secret"),
            "paymentDocId": payment.id,
            "amount": amount,
            "currency": "GBP",
            "reused": False,
        }

    # ========================================================================
    # INSTALLMENT CHECKOUT
    # ========================================================================

    def create_installment_checkout(self, access_token: str, installment_id: str, now: Optional[datetime] = None) -> dict:
        """Stripe Checkout Session for one unpaid installment of a booking"""
        now = now or datetime.utcnow()
        booking = BookingRepository.get_by_access_token(self.db, access_token)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        prefix = INSTALLMENT_PREFIXES.get(installment_id)
        if not prefix:
            raise HTTPException(status_code=400, detail="Invalid installment")

        data = dict(booking.data or {})
        due_date = data.get(f"{prefix}DueDate")
        amount = to_number(data.get(f"{prefix}Amount"))
        if not due_date or amount <= 0:
            raise HTTPException(status_code=400, detail="Installment is not part of this payment plan")
        if data.get(f"{prefix}DatePaid"):
            raise HTTPException(status_code=409, detail="Installment already paid")

        tokens = dict(data.get("paymentTokens") or {})
        current = tokens.get(installment_id) or {}
        if current.get("status") == "processing":
            expires = current.get("expiresAt")
            if expires and datetime.fromisoformat(expires) > now:
                raise HTTPException(status_code=409, detail="Payment already in progress")

        _configure_stripe()
        payment_token = secrets.token_urlsafe(32)
        expires_at = now + PAYMENT_TOKEN_TTL
        payment = StripePayment(
            type="installment",
            status="installment_pending",
            email=data.get("emailAddress") or booking.email,
            tour_package_name=data.get("tourPackageName"),
            amount=amount,
            currency="GBP",
            installment_term=installment_id,
            payment_token=payment_token,
            payment_token_expires_at=expires_at,
            booking_document_id=booking.id,
            booking_id=booking.booking_id,
        )
        self.db.add(payment)
        self.db.flush()

        label = INSTALLMENT_LABELS[installment_id]
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": STRIPE_CURRENCY,
                            "product_data": {"name": f"{data.get('tourPackageName') or 'Tour'} - {label}"},
                            "unit_amount": to_minor_units(amount),
                        },
                        "quantity": 1,
                    }
                ],
                customer_email=payment.email,
                success_url=f"{FRONTEND_URL}/booking-status/{access_token}?payment=success&installment={installment_id}",
                cancel_url=f"{FRONTEND_URL}/booking-status/{access_token}?payment=cancelled",
                metadata={
                    "stripe_payment_doc_id": payment.id,
                    "booking_document_id": booking.id,
                    "installment_id": installment_id,
                    "payment_token": payment_token,
                },
            )
        except stripe.StripeError as e:
            self.db.rollback()
            logger.error(f"❌ Stripe checkout creation failed for booking {booking.id}: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e

        payment.checkout_session_id = _get(session, "id")
        tokens[installment_id] = {
            "token": payment_token,
            "status": "processing",
            "expiresAt": expires_at.isoformat(),
            "checkoutSessionId": payment.checkout_session_id,
        }
        data["paymentTokens"] = tokens
        BookingRepository.save_booking(self.db, booking, data)
        logger.info(f"💳 Checkout session {payment.checkout_session_id} created for {installment_id} of {booking.id}")

        return {"checkoutUrl": _get(session, "url"), "sessionId": payment.checkout_session_id, "paymentDocId": payment.id}

    # ========================================================================
    # WEBHOOK
    # ========================================================================

    def construct_event(self, payload: bytes, signature: Optional[str]):
        if not signature:
            raise HTTPException(status_code=400, detail="No signature")
        try:
            return stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.error(f"❌ Webhook signature verification failed: {e}")
            raise HTTPException(status_code=400, detail="Invalid signature") from e

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        event = self.construct_event(payload, signature)
        event_id = _get(event, "id")
        event_type = _get(event, "type")
        obj = _get(_get(event, "data", {}), "object", {})

        if event_id and self.db.query(ProcessedStripeEvent).filter(ProcessedStripeEvent.event_id == event_id).first():
            logger.info(f"ℹ️ Stripe event {event_id} already processed")
            return {"received": True, "duplicate": True}

        logger.info(f"📥 Received Stripe webhook: {event_type}")

        if event_type == "payment_intent.succeeded":
            await self.handle_payment_intent_succeeded(obj)
        elif event_type == "checkout.session.completed":
            await self.handle_checkout_completed(obj)
        elif event_type == "checkout.session.async_payment_failed":
            self.handle_checkout_failed(obj)
        elif event_type == "payment_intent.payment_failed":
            self.handle_payment_intent_failed(obj)
        else:
            logger.info(f"ℹ️ Unhandled Stripe event type: {event_type}")

        if event_id:
            self.db.add(ProcessedStripeEvent(event_id=event_id, event_type=event_type or ""))
            self.db.commit()
        return {"received": True}

    async def handle_payment_intent_succeeded(self, intent) -> Optional[Booking]:
        """A paid reservation fee creates the booking row"""
        intent_id = _get(intent, "id")
        payment = self.db.query(StripePayment).filter(StripePayment.stripe_intent_id == intent_id).first()
        if not payment:
            logger.warning(f"⚠️ No payment record for intent {intent_id}")
            return None
        if payment.type != "reservationFee" or payment.status == "reserve_paid":
            return None

        tour = TourPackageRepository.get_by_id(self.db, payment.tour_package_id)
        if not tour:
            logger.error(f"❌ Tour package {payment.tour_package_id} not found for payment {payment.id}")
            return None

        meta = payment.meta or {}
        booking_type = meta.get("bookingType") or "Single Booking"
        is_group = booking_type in ("Duo Booking", "Group Booking")

        bookings = BookingService(self.db)
        values = bookings.build_new_booking_data(
            {
                "email": payment.email,
                "firstName": meta.get("firstName") or "",
                "lastName": meta.get("lastName") or "",
                "bookingType": booking_type,
                "tourDate": meta.get("tourDate") or "",
                "reservationFee": payment.amount,
                "paidAmount": payment.amount,
                "paymentMethod": DEFAULT_PAYMENT_METHOD,
                "groupId": (meta.get("groupCode") or generate_group_id()) if is_group else "",
                "isMainBooking": True,
            },
            tour,
        )
        if meta.get("returnDate"):
            values["returnDate"] = meta["returnDate"]
        if is_group:
            member_id = generate_group_member_id(
                booking_type, tour.name, meta.get("firstName"), meta.get("lastName"), payment.email, True
            )
            values["isMainBooker"] = True
            values["groupIdGroupIdGenerator"] = member_id
            values["groupId"] = member_id
        values["priceSource"] = "snapshot"

        booking = bookings.create_from_values(values, description="Booking created from reservation payment")

        payment.status = "reserve_paid"
        payment.booking_document_id = booking.id
        payment.booking_id = booking.booking_id
        payment.paid_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"✅ Reservation paid, booking {booking.booking_id} created from payment {payment.id}")

        try:
            await send_reservation_confirmation(
                to=payment.email,
                full_name=values.get("fullName") or "",
                tour_package=tour.name,
                booking_id=booking.booking_id or "",
                amount=payment.amount,
                access_token=booking.access_token,
            )
        except Exception as e:
            logger.error(f"❌ Failed to send reservation confirmation for {booking.id}: {e}")

        return booking

    def _mark_token(self, booking: Optional[Booking], installment_id: str, status: str, error: Optional[str] = None):
        if not booking or not installment_id:
            return
        data = dict(booking.data or {})
        tokens = dict(data.get("paymentTokens") or {})
        entry = dict(tokens.get(installment_id) or {})
        entry["status"] = status
        if error:
            entry["errorMessage"] = error
        tokens[installment_id] = entry
        data["paymentTokens"] = tokens
        BookingRepository.save_booking(self.db, booking, data)

    async def handle_checkout_completed(self, session, now: Optional[datetime] = None) -> Optional[Booking]:
        """A completed installment checkout marks the term paid and recomputes totals"""
        now = now or datetime.utcnow()
        metadata = _get(session, "metadata", {})
        payment_id = _get(metadata, "stripe_payment_doc_id")
        booking_document_id = _get(metadata, "booking_document_id")
        installment_id = _get(metadata, "installment_id")
        payment_token = _get(metadata, "payment_token")

        payment = self.db.query(StripePayment).filter(StripePayment.id == payment_id).first() if payment_id else None
        if not payment:
            logger.error(f"❌ Invalid payment document in checkout session {_get(session, 'id')}")
            return None

        booking = BookingRepository.get_by_id(self.db, booking_document_id) if booking_document_id else None

        if payment.payment_token != payment_token:
            logger.error(f"❌ Payment token mismatch for payment {payment.id}")
            self._mark_token(booking, installment_id, "failed", "Security validation failed")
            return None
        if payment.payment_token_expires_at and payment.payment_token_expires_at < now:
            logger.error(f"❌ Payment token expired for payment {payment.id}")
            self._mark_token(booking, installment_id, "expired", "Payment token expired")
            return None
        if payment.type != "installment":
            logger.warning(f"⚠️ Payment {payment.id} is '{payment.type}', expected 'installment'")
            return None

        payment.status = "installment_paid"
        payment.paid_at = now
        self.db.commit()

        if not booking:
            logger.error(f"❌ Booking {booking_document_id} not found for payment {payment.id}")
            return None

        prefix = INSTALLMENT_PREFIXES.get(installment_id)
        if not prefix:
            logger.error(f"❌ Unknown installment id {installment_id}")
            return None

        previous_snapshot = snapshot_of(booking)
        data = dict(booking.data or {})
        date_paid_field = f"{prefix}DatePaid"
        data[date_paid_field] = now.isoformat()

        tokens = dict(data.get("paymentTokens") or {})
        tokens[installment_id] = {
            **(tokens.get(installment_id) or {}),
            "status": "success",
            "paidAt": now.isoformat(),
            "token": None,
        }
        data["paymentTokens"] = tokens
        data.setdefault("priceSnapshotDate", now.isoformat())
        data.setdefault("priceSource", "snapshot")
        data.setdefault("lockPricing", True)

        data = recompute_row(data, [date_paid_field])
        booking = BookingRepository.save_booking(self.db, booking, data)
        VersionHistoryService(self.db).create_version_snapshot(
            booking_id=booking.id,
            document_snapshot=snapshot_of(booking),
            change_type="update",
            change_description=f"{INSTALLMENT_LABELS[installment_id]} paid via Stripe",
            previous_snapshot=previous_snapshot,
        )
        logger.info(
            f"✅ {installment_id} paid for booking {booking.id}: "
            f"paid {data.get('paid')}, remaining {data.get('remainingBalance')}, status {data.get('bookingStatus')}"
        )

        try:
            await send_installment_receipt(
                to=data.get("emailAddress") or payment.email,
                full_name=data.get("fullName") or "",
                term_label=INSTALLMENT_LABELS[installment_id],
                amount=payment.amount,
                tour_package=data.get("tourPackageName") or "",
                remaining_balance=data.get("remainingBalance"),
            )
        except Exception as e:
            logger.error(f"❌ Failed to send installment receipt for {booking.id}: {e}")

        return booking

    def handle_checkout_failed(self, session) -> None:
        metadata = _get(session, "metadata", {})
        payment_id = _get(metadata, "stripe_payment_doc_id")
        payment = self.db.query(StripePayment).filter(StripePayment.id == payment_id).first() if payment_id else None
        if payment:
            payment.status = "failed"
            payment.failed_at = datetime.utcnow()
            self.db.commit()

        booking_document_id = _get(metadata, "booking_document_id")
        booking = BookingRepository.get_by_id(self.db, booking_document_id) if booking_document_id else None
        self._mark_token(booking, _get(metadata, "installment_id"), "failed", "Payment failed")
        logger.warning(f"⚠️ Checkout payment failed for payment {payment_id}")

    def handle_payment_intent_failed(self, intent) -> None:
        intent_id = _get(intent, "id")
        payment = self.db.query(StripePayment).filter(StripePayment.stripe_intent_id == intent_id).first()
        if not payment:
            logger.warning(f"⚠️ No payment record for failed intent {intent_id}")
            return
        payment.status = "failed"
        payment.failed_at = datetime.utcnow()
        self.db.commit()
        error = _get(_get(intent, "last_payment_error", {}), "message")
        logger.warning(f"⚠️ Payment intent {intent_id} failed: {error}")

    # ========================================================================
    # REFUNDS AND CLEANUP
    # ========================================================================

    def refund_payment(self, payment_id: str) -> dict:
        payment = self.get_payment(payment_id)
        if not payment.stripe_intent_id:
            raise HTTPException(status_code=400, detail="No Stripe payment intent found for this payment")
        if payment.status == "refunded":
            raise HTTPException(status_code=400, detail="This payment has already been refunded")
        if payment.status not in REFUNDABLE_STATUSES:
            raise HTTPException(
                status_code=400, detail=f"Payment cannot be refunded. Current status: {payment.status}"
            )

        _configure_stripe()
        try:
            refund = stripe.Refund.create(payment_intent=payment.stripe_intent_id, reason="requested_by_customer")
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe refund failed for payment {payment.id}: {e}")
            raise HTTPException(status_code=502, detail=f"Failed to process refund with Stripe: {e}") from e

        now = datetime.utcnow()
        payment.status = "refunded"
        payment.refunded_at = now
        payment.refund_details = {
            "refundId": _get(refund, "id"),
            "amount": _get(refund, "amount"),
            "currency": _get(refund, "currency"),
            "status": _get(refund, "status"),
            "reason": _get(refund, "reason"),
        }
        self.db.commit()

        if payment.booking_document_id:
            booking = BookingRepository.get_by_id(self.db, payment.booking_document_id)
            if booking:
                data = dict(booking.data or {})
                data["status"] = "refunded"
                data["refundedAt"] = now.isoformat()
                BookingRepository.save_booking(self.db, booking, data)
            else:
                logger.warning(f"⚠️ Booking {payment.booking_document_id} not found while refunding {payment.id}")

        logger.info(f"✅ Payment {payment.id} refunded: {payment.refund_details['refundId']}")
        return {
            "success": True,
            "refundId": payment.refund_details["refundId"],
            "amount": to_number(payment.refund_details["amount"]) / 100,
            "currency": payment.refund_details["currency"] or payment.currency,
            "status": payment.refund_details["status"],
        }

    def cleanup_abandoned_payments(self, now: Optional[datetime] = None) -> dict:
        """Delete unfinished reservation payments that never produced a booking"""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=ABANDONED_PAYMENT_DAYS)
        recent = now - timedelta(hours=24)

        candidates = (
            self.db.query(StripePayment)
            .filter(
                StripePayment.status.in_(ABANDONED_STATUSES),
                StripePayment.created_at < cutoff,
                StripePayment.booking_document_id.is_(None),
            )
            .all()
        )

        deleted = 0
        skipped = 0
        for payment in candidates:
            if payment.updated_at and payment.updated_at >= recent:
                skipped += 1
                continue
            self.db.delete(payment)
            deleted += 1

        self.db.add(
            CleanupLog(
                type="abandoned_payments",
                deleted_count=deleted,
                skipped_count=skipped,
                total_processed=len(candidates),
                cutoff_date=cutoff,
                success=True,
            )
        )
        self.db.commit()
        logger.info(f"🧹 Abandoned payments cleanup: {deleted} deleted, {skipped} skipped")
        return {"deleted": deleted, "skipped": skipped, "totalProcessed": len(candidates)}
