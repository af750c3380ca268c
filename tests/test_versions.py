from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from backoffice.domain.bookings.repository import BookingRepository
from backoffice.domain.versions.service import VersionHistoryService, detect_field_changes
from backoffice.models import BookingVersion


def test_detect_field_changes_skips_bookkeeping_fields():
    changes = detect_field_changes(
        {"firstName": "John", "updatedAt": "a", "paid": 250},
        {"firstName": "Jane", "updatedAt": "b", "paid": 250, "notes": "vip"},
    )
    assert [change["fieldPath"] for change in changes] == ["firstName", "notes"]
    assert changes[0]["fieldName"] == "First Name"
    assert changes[0]["oldValue"] == "John"
    assert changes[0]["newValue"] == "Jane"


def test_detect_field_changes_ignores_blank_strings():
    assert detect_field_changes({}, {"firstName": ""}) == []


class TestSnapshots:
    def test_version_numbers_are_sequential_per_booking(self, db):
        service = VersionHistoryService(db)
        first = service.create_version_snapshot("b1", {"firstName": "John"}, "create")
        second = service.create_version_snapshot(
            "b1", {"firstName": "Jane"}, "update", previous_snapshot={"firstName": "John"}
        )
        other = service.create_version_snapshot("b2", {}, "create")

        assert (first.version_number, second.version_number, other.version_number) == (1, 2, 1)
        assert first.branch_id == "main-b1"
        assert first.changes[0]["fieldPath"] == "_row_created"
        assert second.changes[0]["fieldPath"] == "firstName"
        assert service.get_version_count("b1") == 2
        assert service.get_latest_version("b1").id == second.id

    def test_invalid_change_type(self, db):
        with pytest.raises(HTTPException) as exc:
            VersionHistoryService(db).create_version_snapshot("b1", {}, "rename")
        assert exc.value.status_code == 400

    def test_bulk_operation_snapshot(self, db):
        version = VersionHistoryService(db).create_bulk_operation_snapshot(
            "delete", ["b1", "b2"], "Deleted 2 bookings", created_by="admin-uid"
        )
        assert version.booking_id.startswith("bulk_delete_")
        assert version.branch_id.startswith("bulk-delete-")
        assert version.change_type == "bulk_delete"
        assert version.bulk_operation["totalCount"] == 2

    def test_compare_versions(self, db):
        service = VersionHistoryService(db)
        old = service.create_version_snapshot("b1", {"firstName": "John", "tags": []}, "create")
        new = service.create_version_snapshot("b1", {"firstName": "Jane", "notes": "x"}, "update")
        result = service.compare_versions(old.id, new.id)
        assert result["addedFields"] == ["notes"]
        assert result["removedFields"] == ["tags"]


class TestRestore:
    def test_restore_overwrites_booking_and_records_restore_point(self, db):
        booking = BookingRepository.create_booking(db, {"firstName": "John", "emailAddress": "j@example.com"})
        service = VersionHistoryService(db)
        original = service.create_version_snapshot(booking.id, dict(booking.data), "create")

        BookingRepository.save_booking(db, booking, {**booking.data, "firstName": "Changed"})
        restored = service.restore_version(booking.id, original.id, user_id="admin-uid")

        db.refresh(booking)
        assert booking.data["firstName"] == "John"
        assert restored.is_restore_point
        assert restored.change_type == "restore"
        assert restored.restored_from_version_id == original.id
        assert restored.branch_id.startswith("restore-")

    def test_restore_rejects_versions_of_other_bookings(self, db):
        service = VersionHistoryService(db)
        version = service.create_version_snapshot("someone-else", {}, "create")
        with pytest.raises(HTTPException) as exc:
            service.restore_version("b1", version.id)
        assert exc.value.status_code == 400

    def test_unknown_version(self, db):
        with pytest.raises(HTTPException) as exc:
            VersionHistoryService(db).get_version("missing")
        assert exc.value.status_code == 404


def test_cleanup_keeps_recent_versions_and_restore_points(db):
    service = VersionHistoryService(db)
    old = datetime(2029, 1, 1)
    versions = [service.create_version_snapshot("b1", {"n": i}, "update") for i in range(5)]
    for index, version in enumerate(versions):
        version.created_at = old + timedelta(minutes=index)
    versions[1].is_restore_point = True
    recent = service.create_version_snapshot("b2", {}, "create")
    recent.created_at = datetime(2029, 12, 31)
    db.commit()
    ids = [version.id for version in versions]
    recent_id = recent.id

    result = service.cleanup_old_versions(retention_days=90, min_versions_per_booking=2, now=datetime(2030, 1, 1))

    assert result == {"deleted": 2, "retained": 4}
    remaining = {v.id for v in db.query(BookingVersion).all()}
    assert remaining == {ids[1], ids[3], ids[4], recent_id}
