"""
ARQ Background Worker
Handles payment reminder setup and the daily maintenance crons
"""

import logging
import os

from arq.cron import cron

from . import models  # noqa: F401 - register models before any session is opened
from .config import get_redis_settings
from .database import SessionLocal
from .domain.payment_reminders.service import PaymentReminderService
from .domain.payments.service import StripePaymentService
from .domain.scheduled_emails.service import ScheduledEmailService
from .domain.versions.service import VersionHistoryService

logger = logging.getLogger(__name__)


async def setup_payment_reminders(ctx, booking_id: str):
    """Send the reminder summary email and schedule one reminder per term"""
    logger.info(f"🔄 Setting up payment reminders for booking {booking_id}")

    db = SessionLocal()
    try:
        result = await PaymentReminderService(db).setup_reminders(booking_id)
        logger.info(f"✅ Payment reminders set up for booking {booking_id}: {len(result['scheduled'])} scheduled")
        return result
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Payment reminder setup failed for booking {booking_id}: {str(e)}")
        raise
    finally:
        db.close()


async def process_scheduled_emails_task(ctx):
    """
    Daily cron job that sends every pending email that is due.
    Runs at 01:00 UTC, which is 09:00 in Asia/Singapore.
    """
    logger.info("📧 Starting scheduled email dispatch")

    db = SessionLocal()
    try:
        summary = await ScheduledEmailService(db).process_scheduled_emails()
        logger.info(f"Scheduled email dispatch complete: {summary}")
        return summary
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Scheduled email dispatch failed: {str(e)}")
        raise
    finally:
        db.close()


async def cleanup_abandoned_payments_task(ctx):
    """Daily cron job deleting stale pending payment records"""
    logger.info("🧹 Starting abandoned payment cleanup")

    db = SessionLocal()
    try:
        summary = StripePaymentService(db).cleanup_abandoned_payments()
        logger.info(f"Abandoned payment cleanup complete: {summary}")
        return summary
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Abandoned payment cleanup failed: {str(e)}")
        raise
    finally:
        db.close()


async def cleanup_old_versions_task(ctx):
    """Daily cron job applying the version history retention policy"""
    logger.info("🧹 Starting version history retention")

    db = SessionLocal()
    try:
        summary = VersionHistoryService(db).cleanup_old_versions()
        logger.info(f"Version history retention complete: {summary}")
        return summary
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Version history retention failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [
        setup_payment_reminders,
        process_scheduled_emails_task,
        cleanup_abandoned_payments_task,
        cleanup_old_versions_task,
    ]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "10"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "600"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))  # Keep job results for 1 hour

    health_check_interval = 60

    # Retry failed jobs up to 3 times
    max_tries = 3

    cron_jobs = [
        cron(process_scheduled_emails_task, hour=1, minute=0),  # 9 AM Asia/Singapore
        cron(cleanup_abandoned_payments_task, hour=2, minute=0),
        cron(cleanup_old_versions_task, hour=3, minute=0),
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
