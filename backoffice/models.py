import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a unique string identifier for documents"""
    return str(uuid.uuid4())


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    last_login_at = Column(DateTime, nullable=True)


class TourPackage(Base):
    __tablename__ = "tour_packages"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    tour_code = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    duration = Column(String(100), nullable=True)
    # {"original": 2000, "discounted": 1800, "deposit": 250, "currency": "GBP"}
    pricing = Column(JSON, nullable=False, default=dict)
    # {"highlights": [...], "itinerary": [...], "requirements": [...]}
    details = Column(JSON, nullable=True, default=dict)
    media = Column(JSON, nullable=True, default=dict)
    # [{"startDate": "2026-03-10", "endDate": "...", "hasCustomDiscounted": true, "customDiscounted": 1500}]
    travel_dates = Column(JSON, nullable=True, default=list)
    status = Column(String(20), default="draft", nullable=False, index=True)  # active, draft, archived
    pricing_history = Column(JSON, nullable=False, default=list)
    current_version = Column(Integer, default=1, nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class PaymentTerm(Base):
    __tablename__ = "payment_terms"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    payment_type = Column(String(50), nullable=False)  # invalid_booking, full_payment, monthly_scheduled
    days_required = Column(Integer, nullable=True)
    months_required = Column(Integer, nullable=True)
    monthly_percentages = Column(JSON, nullable=True, default=list)
    percentage = Column(Float, nullable=True)
    deposit_percentage = Column(Float, default=0, nullable=False)
    color = Column(String(7), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Booking(Base):
    """A row of the booking sheet.

    The sheet values live in ``data`` keyed by column id; the indexed columns
    mirror the values the API filters on.
    """

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(100), index=True, nullable=True)
    row = Column(Integer, index=True, nullable=True)
    tour_package_name = Column(String(255), index=True, nullable=True)
    email = Column(String(255), index=True, nullable=True)
    booking_status = Column(String(255), nullable=True)
    payment_plan = Column(String(50), nullable=True)
    access_token = Column(String(100), unique=True, index=True, nullable=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BookingSheetColumn(Base):
    __tablename__ = "booking_sheet_columns"

    id = Column(String(100), primary_key=True)
    column_name = Column(String(255), nullable=False)
    data_type = Column(String(50), nullable=False)
    parent_tab = Column(String(100), nullable=True)
    order = Column(Integer, default=0, nullable=False)
    width = Column(Integer, nullable=True)
    color = Column(String(20), nullable=True)
    function_name = Column(String(255), nullable=True)
    arguments = Column(JSON, nullable=True, default=list)
    include_in_forms = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BookingVersion(Base):
    __tablename__ = "booking_versions"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(100), index=True, nullable=False)
    version_number = Column(Integer, nullable=False)
    branch_id = Column(String(255), nullable=False)
    document_snapshot = Column(JSON, nullable=False, default=dict)
    created_by = Column(String(255), nullable=True)
    created_by_name = Column(String(255), nullable=True)
    change_type = Column(String(50), nullable=False, index=True)
    change_description = Column(Text, nullable=True)
    is_restore_point = Column(Boolean, default=False, nullable=False)
    restored_from_version_id = Column(String(36), nullable=True)
    bulk_operation = Column(JSON, nullable=True)
    changes = Column(JSON, nullable=False, default=list)
    branch_info = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    variables = Column(JSON, nullable=False, default=list)
    variable_definitions = Column(JSON, nullable=True, default=list)
    status = Column(String(20), default="draft", nullable=False, index=True)  # active, draft, archived
    bcc_groups = Column(JSON, nullable=True, default=list)
    created_by = Column(String(255), nullable=True)
    used_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ScheduledEmail(Base):
    __tablename__ = "scheduled_emails"

    id = Column(String(36), primary_key=True, default=generate_id)
    to_address = Column(String(500), nullable=False)
    subject = Column(String(500), nullable=False)
    html_content = Column(Text, nullable=False)
    cc = Column(JSON, nullable=True, default=list)
    bcc = Column(JSON, nullable=True, default=list)
    from_address = Column(String(255), nullable=True)
    reply_to = Column(String(255), nullable=True)
    scheduled_for = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), default="pending", nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    message_id = Column(String(255), nullable=True)
    email_type = Column(String(100), nullable=True, index=True)  # payment-reminder, custom, ...
    booking_id = Column(String(36), nullable=True, index=True)
    template_id = Column(String(36), nullable=True)
    template_variables = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StripePayment(Base):
    __tablename__ = "stripe_payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    type = Column(String(50), nullable=False)  # reservationFee, installment
    status = Column(String(50), nullable=False, index=True)
    email = Column(String(255), index=True, nullable=True)
    tour_package_id = Column(String(36), nullable=True)
    tour_package_name = Column(String(255), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="GBP", nullable=False)
    stripe_intent_id = Column(String(255), index=True, nullable=True)
    checkout_session_id = Column(String(255), nullable=True)
    installment_term = Column(String(20), nullable=True)  # full_payment, p1..p4
    payment_token = Column(String(100), nullable=True)
    payment_token_expires_at = Column(DateTime, nullable=True)
    booking_document_id = Column(String(36), nullable=True, index=True)
    booking_id = Column(String(100), nullable=True)
    # Guest details captured at checkout (firstName, lastName, bookingType, tourDate, ...)
    meta = Column(JSON, nullable=True, default=dict)
    refund_details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    paid_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)


class ProcessedStripeEvent(Base):
    __tablename__ = "processed_stripe_events"

    event_id = Column(String(255), primary_key=True)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime, default=datetime.utcnow)


class CleanupLog(Base):
    __tablename__ = "cleanup_logs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(100), nullable=False)
    deleted_count = Column(Integer, default=0)
    skipped_count = Column(Integer, default=0)
    total_processed = Column(Integer, default=0)
    cutoff_date = Column(DateTime, nullable=True)
    success = Column(Boolean, default=True, nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class DiscountEvent(Base):
    __tablename__ = "discount_events"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=False, nullable=False)
    # [{"tourPackageId", "tourPackageName", "originalCost", "dateDiscounts": [{"date", "discountRate", "discountedCost"}]}]
    items = Column(JSON, nullable=False, default=list)
    banner_cover = Column(String(500), nullable=True)
    activation_mode = Column(String(20), default="manual", nullable=False)  # manual, scheduled
    scheduled_start = Column(DateTime, nullable=True)
    scheduled_end = Column(DateTime, nullable=True)
    discount_type = Column(String(20), default="percent", nullable=False)  # percent, amount
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
