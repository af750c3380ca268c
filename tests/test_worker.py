import asyncio

import pytest

from backoffice import worker


class RecordingSession:
    def __init__(self):
        self.calls = []

    def rollback(self):
        self.calls.append("rollback")

    def close(self):
        self.calls.append("close")


@pytest.fixture
def session(monkeypatch):
    session = RecordingSession()
    monkeypatch.setattr(worker, "SessionLocal", lambda: session)
    return session


class BrokenService:
    def __init__(self, db):
        self.db = db

    async def process_scheduled_emails(self):
        raise RuntimeError("database gone")

    def cleanup_abandoned_payments(self):
        raise RuntimeError("database gone")

    def cleanup_old_versions(self):
        raise RuntimeError("database gone")


@pytest.mark.parametrize(
    "task, service_name",
    [
        (worker.process_scheduled_emails_task, "ScheduledEmailService"),
        (worker.cleanup_abandoned_payments_task, "StripePaymentService"),
        (worker.cleanup_old_versions_task, "VersionHistoryService"),
    ],
)
def test_failed_cron_rolls_back_and_closes_session(monkeypatch, session, task, service_name):
    monkeypatch.setattr(worker, service_name, BrokenService)

    with pytest.raises(RuntimeError):
        asyncio.run(task({}))

    assert session.calls == ["rollback", "close"]


def test_dispatcher_returns_summary(monkeypatch, session):
    class Service:
        def __init__(self, db):
            pass

        async def process_scheduled_emails(self):
            return {"processed": 1, "sent": 1, "failed": 0}

    monkeypatch.setattr(worker, "ScheduledEmailService", Service)

    assert asyncio.run(worker.process_scheduled_emails_task({})) == {"processed": 1, "sent": 1, "failed": 0}
    assert session.calls == ["close"]


def test_worker_registers_crons():
    names = {job.name for job in worker.WorkerSettings.cron_jobs}
    assert len(names) == 3
    assert worker.setup_payment_reminders in worker.WorkerSettings.functions
