"""Version history service - snapshots of booking rows and restore"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...config import VERSION_MIN_PER_BOOKING, VERSION_RETENTION_DAYS
from ...models import Booking, BookingVersion
from ..bookings.repository import BookingRepository
from ..columns.registry import COLUMNS_BY_ID

logger = logging.getLogger(__name__)

CHANGE_TYPES = ["create", "update", "delete", "restore", "bulk_update", "bulk_delete", "bulk_import", "import", "system"]

# Bookkeeping fields that never count as a change
IGNORED_FIELDS = {"updatedAt", "createdAt"}


def _infer_data_type(field_path: str, value: Any) -> str:
    column = COLUMNS_BY_ID.get(field_path)
    if column:
        return column["dataType"]
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, datetime):
        return "date"
    return "string"


def detect_field_changes(old: Optional[dict], new: Optional[dict]) -> list[dict]:
    """Per-field differences between two booking snapshots"""
    old = old or {}
    new = new or {}
    changes = []

    for field_path in sorted(set(old) | set(new)):
        if field_path in IGNORED_FIELDS:
            continue
        old_value = old.get(field_path)
        new_value = new.get(field_path)
        if old_value == new_value:
            continue

        data_type = _infer_data_type(field_path, new_value if new_value is not None else old_value)
        if old_value is None and new_value == "" and data_type == "string":
            continue

        column = COLUMNS_BY_ID.get(field_path)
        changes.append(
            {
                "fieldPath": field_path,
                "fieldName": column["columnName"] if column else field_path,
                "oldValue": old_value,
                "newValue": new_value,
                "dataType": data_type,
            }
        )

    return changes


class VersionHistoryService:
    """Service layer for booking version history"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def create_version_snapshot(
        self,
        booking_id: str,
        document_snapshot: dict,
        change_type: str,
        created_by: Optional[str] = None,
        created_by_name: Optional[str] = None,
        change_description: Optional[str] = None,
        changes: Optional[list] = None,
        previous_snapshot: Optional[dict] = None,
        is_restore_point: bool = False,
        restored_from_version_id: Optional[str] = None,
        bulk_operation: Optional[dict] = None,
        commit: bool = True,
    ) -> BookingVersion:
        """Record a snapshot of a booking row"""
        if change_type not in CHANGE_TYPES:
            raise HTTPException(status_code=400, detail=f"Invalid change type: {change_type}")

        if changes is None:
            if change_type == "create":
                changes = [
                    {
                        "fieldPath": "_row_created",
                        "fieldName": "Row Created",
                        "oldValue": None,
                        "newValue": "Added new row",
                        "dataType": "string",
                    }
                ]
            elif change_type == "delete":
                changes = [
                    {
                        "fieldPath": "_row_deleted",
                        "fieldName": "Row Deleted",
                        "oldValue": "Row existed",
                        "newValue": None,
                        "dataType": "string",
                    }
                ]
            elif previous_snapshot is not None:
                changes = detect_field_changes(previous_snapshot, document_snapshot)
            else:
                changes = []

        now = datetime.utcnow()
        if is_restore_point:
            branch_id = f"restore-{int(now.timestamp() * 1000)}-{booking_id}"
        else:
            branch_id = f"main-{booking_id}"

        version = BookingVersion(
            booking_id=booking_id,
            version_number=self._next_version_number(booking_id),
            branch_id=branch_id,
            document_snapshot=dict(document_snapshot or {}),
            created_by=created_by,
            created_by_name=created_by_name,
            change_type=change_type,
            change_description=change_description,
            is_restore_point=is_restore_point,
            restored_from_version_id=restored_from_version_id,
            bulk_operation=bulk_operation,
            changes=changes,
            branch_info={
                "isMainBranch": not is_restore_point,
                "branchName": "Restored Version" if is_restore_point else None,
                "hasChildBranches": False,
                "childBranchIds": [],
            },
            created_at=now,
        )
        self.db.add(version)
        if commit:
            self.db.commit()
            self.db.refresh(version)
        else:
            self.db.flush()

        logger.info(f"📸 Version {version.version_number} ({change_type}) recorded for booking {booking_id}")
        return version

    def create_bulk_operation_snapshot(
        self,
        operation_type: str,
        affected_booking_ids: list[str],
        description: str,
        created_by: Optional[str] = None,
        created_by_name: Optional[str] = None,
        total_count: Optional[int] = None,
        commit: bool = True,
    ) -> BookingVersion:
        """One snapshot describing a bulk delete/import/update across many bookings"""
        change_type = {"delete": "bulk_delete", "import": "bulk_import", "update": "bulk_update"}.get(
            operation_type, f"bulk_{operation_type}"
        )
        timestamp = int(datetime.utcnow().timestamp() * 1000)
        bulk_operation = {
            "operationType": operation_type,
            "affectedBookingIds": affected_booking_ids,
            "totalCount": total_count if total_count is not None else len(affected_booking_ids),
            "description": description,
        }

        version = self.create_version_snapshot(
            booking_id=f"bulk_{operation_type}_{timestamp}",
            document_snapshot={},
            change_type=change_type,
            created_by=created_by,
            created_by_name=created_by_name,
            change_description=description,
            changes=[
                {
                    "fieldPath": "_bulk_operation",
                    "fieldName": "Bulk Operation",
                    "oldValue": None,
                    "newValue": description,
                    "dataType": "string",
                }
            ],
            bulk_operation=bulk_operation,
            commit=False,
        )
        version.branch_id = f"bulk-{operation_type}-{timestamp}"
        if commit:
            self.db.commit()
            self.db.refresh(version)
        return version

    # ========================================================================
    # QUERIES
    # ========================================================================

    def _next_version_number(self, booking_id: str) -> int:
        latest = (
            self.db.query(func.max(BookingVersion.version_number))
            .filter(BookingVersion.booking_id == booking_id)
            .scalar()
        )
        return (latest or 0) + 1

    def list_versions(
        self, booking_id: str, limit: int = 50, change_type: Optional[str] = None
    ) -> list[BookingVersion]:
        query = self.db.query(BookingVersion).filter(BookingVersion.booking_id == booking_id)
        if change_type:
            query = query.filter(BookingVersion.change_type == change_type)
        return query.order_by(BookingVersion.version_number.desc()).limit(limit).all()

    def list_recent_versions(self, limit: int = 100) -> list[BookingVersion]:
        """Latest versions across all bookings"""
        return self.db.query(BookingVersion).order_by(BookingVersion.created_at.desc()).limit(limit).all()

    def get_version(self, version_id: str) -> BookingVersion:
        version = self.db.query(BookingVersion).filter(BookingVersion.id == version_id).first()
        if not version:
            raise HTTPException(status_code=404, detail="Version not found")
        return version

    def get_latest_version(self, booking_id: str) -> Optional[BookingVersion]:
        return (
            self.db.query(BookingVersion)
            .filter(BookingVersion.booking_id == booking_id)
            .order_by(BookingVersion.version_number.desc())
            .first()
        )

    def get_version_count(self, booking_id: str) -> int:
        return (
            self.db.query(func.count(BookingVersion.id)).filter(BookingVersion.booking_id == booking_id).scalar()
            or 0
        )

    def compare_versions(self, from_version_id: str, to_version_id: str) -> dict:
        from_version = self.get_version(from_version_id)
        to_version = self.get_version(to_version_id)

        from_snapshot = from_version.document_snapshot or {}
        to_snapshot = to_version.document_snapshot or {}

        return {
            "fromVersion": from_version,
            "toVersion": to_version,
            "changedFields": detect_field_changes(from_snapshot, to_snapshot),
            "addedFields": [field for field in to_snapshot if field not in from_snapshot],
            "removedFields": [field for field in from_snapshot if field not in to_snapshot],
        }

    # ========================================================================
    # RESTORE AND RETENTION
    # ========================================================================

    def restore_version(
        self,
        booking_id: str,
        version_id: str,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> BookingVersion:
        """Overwrite a booking with a stored snapshot and record the restore"""
        version = self.get_version(version_id)
        if version.booking_id != booking_id:
            raise HTTPException(status_code=400, detail="Version does not belong to this booking")

        booking = BookingRepository.get_by_id(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        snapshot = dict(version.document_snapshot or {})
        snapshot.pop("id", None)
        BookingRepository.save_booking(self.db, booking, snapshot)

        logger.info(f"♻️ Booking {booking_id} restored from version {version.version_number}")
        return self.create_version_snapshot(
            booking_id=booking_id,
            document_snapshot=snapshot,
            change_type="restore",
            created_by=user_id,
            created_by_name=user_name,
            change_description=f"Restored from version {version.version_number}",
            changes=[],
            is_restore_point=True,
            restored_from_version_id=version.id,
        )

    def cleanup_old_versions(
        self,
        retention_days: int = VERSION_RETENTION_DAYS,
        min_versions_per_booking: int = VERSION_MIN_PER_BOOKING,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Delete versions older than the retention window.

        The newest ``min_versions_per_booking`` versions of every booking and
        all restore points are always kept.
        """
        cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
        versions = self.db.query(BookingVersion).order_by(BookingVersion.created_at.desc()).all()

        by_booking: dict[str, list[BookingVersion]] = {}
        for version in versions:
            by_booking.setdefault(version.booking_id, []).append(version)

        deleted = 0
        retained = 0
        for booking_versions in by_booking.values():
            retained += min(len(booking_versions), min_versions_per_booking)
            for version in booking_versions[min_versions_per_booking:]:
                if version.created_at and version.created_at < cutoff and not version.is_restore_point:
                    self.db.delete(version)
                    deleted += 1
                else:
                    retained += 1

        self.db.commit()
        logger.info(f"🧹 Version retention: deleted {deleted}, retained {retained}")
        return {"deleted": deleted, "retained": retained}


def snapshot_of(booking: Booking) -> dict:
    """Snapshot payload for a booking row"""
    data = dict(booking.data or {})
    data["id"] = booking.id
    return data
