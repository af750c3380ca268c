"""Version history schemas - Pydantic models for booking versions"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class FieldChange(BaseModel):
    fieldPath: str
    fieldName: str
    oldValue: Any = None
    newValue: Any = None
    dataType: str = "string"


class VersionResponse(BaseModel):
    """Schema for a booking version"""

    id: str
    bookingId: str
    versionNumber: int
    branchId: str
    documentSnapshot: dict
    createdBy: Optional[str] = None
    createdByName: Optional[str] = None
    changeType: str
    changeDescription: Optional[str] = None
    isRestorePoint: bool = False
    restoredFromVersionId: Optional[str] = None
    bulkOperation: Optional[dict] = None
    changes: list[FieldChange] = []
    branchInfo: Optional[dict] = None
    createdAt: Optional[datetime] = None


class VersionComparisonResponse(BaseModel):
    fromVersion: VersionResponse
    toVersion: VersionResponse
    changedFields: list[FieldChange]
    addedFields: list[str]
    removedFields: list[str]


class RestoreResponse(BaseModel):
    success: bool
    newVersionId: str
    newVersionNumber: int
    branchId: str


class CleanupRequest(BaseModel):
    retentionDays: int = 30
    minVersionsPerBooking: int = 10


class CleanupResponse(BaseModel):
    deleted: int
    retained: int
