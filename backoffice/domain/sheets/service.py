"""Sheet service - CSV export, CSV import and Google Sheets sync of the booking sheet"""

import csv
import io
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import GOOGLE_SHEETS_SHEET_NAME, GOOGLE_SHEETS_SPREADSHEET_ID
from ...models import BookingSheetColumn
from ...services.sheets_client import SheetsSyncError, fetch_sheet_values
from ..bookings.repository import BookingRepository
from ..bookings.service import generate_access_token
from ..columns.service import ColumnService
from ..versions.service import VersionHistoryService

logger = logging.getLogger(__name__)

HEADER_ROW_INDEX = 2  # row 3 of the sheet
# fmt: off
CURRENCY_SYMBOLS = [
    "$", "€", "£", "¥", "₹", "₽", "¢", "₱", "₦", "₩", "₪", "₨", "₡", "₵", "₫", "﷼",
    "USD", "EUR", "GBP", "JPY", "CAD", "AUD", "CNY", "INR", "PHP", "SGD", "HKD", "THB", "MYR", "KRW", "TWD", "VND",
]
# fmt: on
_CURRENCY_MARK = re.compile(r"[$€£¥₹₽¢₱₦₩₪₨₡₵₫﷼]")


# ============================================================================
# VALUE CONVERSION
# ============================================================================


def parse_currency_value(value: Any) -> Optional[float]:
    """
    "£1,234.50" → 1234.5, "(£20)" → -20, "GBP 15" → 15.

    Returns None when nothing numeric is left.
    """
    if value is None:
        return None
    working = str(value).strip()
    if not working:
        return None

    negative = False
    if working.startswith("(") and working.endswith(")"):
        negative = True
        working = working[1:-1].strip()

    for symbol in CURRENCY_SYMBOLS:
        if working.lower().startswith(symbol.lower()):
            working = working[len(symbol) :].strip()
            break
    for symbol in CURRENCY_SYMBOLS:
        if working.lower().endswith(symbol.lower()):
            working = working[: len(working) - len(symbol)].strip()
            break

    working = re.sub(r"[,\s]", "", working)
    if working.startswith("-") or working.endswith("-"):
        negative = True
        working = working.replace("-", "")

    working = re.sub(r"[^\d.]", "", working)
    parts = working.split(".")
    if len(parts) > 2:
        working = f"{parts[0]}.{parts[-1]}"

    try:
        number = float(working)
    except ValueError:
        return None
    return -number if negative else number


def convert_value(value: Any, data_type: str) -> Any:
    """Cell text → stored value for a column data type"""
    if value is None or value == "":
        return None
    text = str(value).strip()
    if not text:
        return None

    if data_type in ("string", "email", "select"):
        return text
    if data_type == "number":
        # Formatted numbers such as "1,200" stay text
        try:
            number = float(text)
        except ValueError:
            return text
        if "," in text:
            return text
        return int(number) if number.is_integer() and "." not in text else number
    if data_type == "currency":
        return parse_currency_value(text)
    if data_type == "boolean":
        lowered = text.lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        return None
    if data_type == "date":
        try:
            return date_parser.parse(text).isoformat()
        except (ValueError, OverflowError):
            return None
    if data_type == "function":
        return parse_currency_value(text) if _CURRENCY_MARK.search(text) else text
    return text


def _export_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (list, dict)):
        return ", ".join(str(v) for v in value) if isinstance(value, list) else ""
    return str(value)


class SheetService:
    """Service layer for booking sheet import and export"""

    def __init__(self, db: Session):
        self.db = db
        self.columns = ColumnService(db)

    def _sheet_columns(self) -> list[BookingSheetColumn]:
        return self.columns.list_columns()

    # ========================================================================
    # EXPORT
    # ========================================================================

    def export_bookings_csv(self) -> str:
        """Header row of column names, then one row per booking in column order"""
        columns = self._sheet_columns()
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow([c.column_name for c in columns])
        for booking in BookingRepository.list_bookings(self.db):
            data = booking.data or {}
            writer.writerow([_export_cell(data.get(c.id)) for c in columns])
        logger.info(f"📄 Exported bookings CSV with {len(columns)} columns")
        return output.getvalue()

    # ========================================================================
    # IMPORT
    # ========================================================================

    def rows_to_bookings(self, rows: list[list], now: Optional[datetime] = None) -> list[dict]:
        """
        Map raw sheet rows to booking values.

        Row 3 holds the headers, data starts on row 4 and rows with an
        empty column A are skipped. Headers match column names case-insensitively.
        """
        if len(rows) <= HEADER_ROW_INDEX + 1:
            raise HTTPException(status_code=400, detail="Sheet must have at least 4 rows (header on row 3)")
        headers = rows[HEADER_ROW_INDEX]
        if not any(str(h).strip() for h in headers):
            raise HTTPException(status_code=400, detail="Header row (row 3) is empty")

        header_index = {str(h).strip().lower(): i for i, h in reversed(list(enumerate(headers))) if str(h).strip()}
        columns = self._sheet_columns()
        # Plain columns first so function values never get overwritten
        ordered = [c for c in columns if c.data_type != "function"] + [c for c in columns if c.data_type == "function"]
        mapping = [
            (header_index[c.column_name.strip().lower()], c)
            for c in ordered
            if c.column_name.strip().lower() in header_index
        ]

        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        valid_rows = [row for row in rows[HEADER_ROW_INDEX + 1 :] if row and str(row[0]).strip()]

        bookings = []
        for number, row in enumerate(valid_rows, start=1):
            values: dict = {"row": number, "createdAt": timestamp, "updatedAt": timestamp}
            for index, column in mapping:
                cell = row[index] if index < len(row) else None
                values[column.id] = convert_value(cell, column.data_type)
            bookings.append(values)
        return bookings

    def replace_all_bookings(
        self,
        bookings: list[dict],
        description: str,
        created_by: Optional[str] = None,
        created_by_name: Optional[str] = None,
    ) -> dict:
        """
        Delete every booking, insert the imported rows and record one bulk-import version.

        Runs as a single transaction: a failing row leaves the existing bookings untouched.
        """
        try:
            deleted = BookingRepository.delete_all(self.db, commit=False)
            created_ids = []
            for values in bookings:
                token = values.get("access_token") or generate_access_token()
                booking = BookingRepository.create_booking(self.db, values, access_token=token, commit=False)
                created_ids.append(booking.id)

            VersionHistoryService(self.db).create_bulk_operation_snapshot(
                operation_type="import",
                affected_booking_ids=created_ids,
                description=f"{description}: {len(created_ids)} bookings imported, {deleted} replaced",
                created_by=created_by,
                created_by_name=created_by_name,
                commit=False,
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ {description} failed, existing bookings kept: {e}")
            raise
        logger.info(f"✅ {description}: {len(created_ids)} imported, {deleted} deleted")
        return {"imported": len(created_ids), "deleted": deleted}

    def import_csv(
        self, content: str, created_by: Optional[str] = None, created_by_name: Optional[str] = None
    ) -> dict:
        try:
            rows = list(csv.reader(io.StringIO(content)))
        except csv.Error as e:
            raise HTTPException(status_code=400, detail=f"Failed to parse CSV data: {e}") from e
        bookings = self.rows_to_bookings(rows)
        return self.replace_all_bookings(bookings, "CSV import", created_by, created_by_name)

    def sync_from_google_sheets(
        self,
        spreadsheet_id: Optional[str] = None,
        sheet_name: Optional[str] = None,
        created_by: Optional[str] = None,
        created_by_name: Optional[str] = None,
    ) -> dict:
        spreadsheet_id = spreadsheet_id or GOOGLE_SHEETS_SPREADSHEET_ID
        sheet_name = sheet_name or GOOGLE_SHEETS_SHEET_NAME
        if not spreadsheet_id:
            raise HTTPException(status_code=400, detail="Spreadsheet id is required")

        try:
            rows = fetch_sheet_values(spreadsheet_id, sheet_name)
        except SheetsSyncError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        bookings = self.rows_to_bookings(rows)
        return self.replace_all_bookings(bookings, "Google Sheets sync", created_by, created_by_name)
