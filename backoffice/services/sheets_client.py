"""
Google Sheets client

Reads the booking sheet with a service account through gspread.
"""

import json
import logging
import os
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials

from ..config import GOOGLE_SERVICE_ACCOUNT_FILE

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class SheetsSyncError(Exception):
    """Raised when the spreadsheet cannot be read"""


def _load_credentials() -> Credentials:
    raw = (os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON") or "").strip()
    if raw:
        try:
            info = json.loads(raw)
        except json.JSONDecodeError:
            info = json.loads(raw.replace("\\n", "\n"))
        return Credentials.from_service_account_info(info, scopes=SCOPES)

    if not GOOGLE_SERVICE_ACCOUNT_FILE or not os.path.exists(GOOGLE_SERVICE_ACCOUNT_FILE):
        raise SheetsSyncError("Google service account credentials are not configured")
    return Credentials.from_service_account_file(GOOGLE_SERVICE_ACCOUNT_FILE, scopes=SCOPES)


def gs_client() -> gspread.Client:
    return gspread.authorize(_load_credentials())


def fetch_sheet_values(spreadsheet_id: str, sheet_name: str, client: Optional[gspread.Client] = None) -> list[list]:
    """All cell values of a worksheet as a list of rows"""
    try:
        client = client or gs_client()
        worksheet = client.open_by_key(spreadsheet_id).worksheet(sheet_name)
        values = worksheet.get_all_values()
    except SheetsSyncError:
        raise
    except gspread.exceptions.WorksheetNotFound as e:
        logger.error(f"❌ Sheet '{sheet_name}' not found in spreadsheet {spreadsheet_id}")
        raise SheetsSyncError(f"Sheet '{sheet_name}' not found") from e
    except gspread.exceptions.SpreadsheetNotFound as e:
        logger.error(f"❌ Spreadsheet {spreadsheet_id} not found or not shared with the service account")
        raise SheetsSyncError("Spreadsheet not found or not shared with the service account") from e
    except gspread.exceptions.APIError as e:
        logger.error(f"❌ Google Sheets API error: {e}")
        raise SheetsSyncError(f"Google Sheets API error: {e}") from e

    if not values:
        raise SheetsSyncError("No data found in the specified sheet")
    logger.info(f"📄 Fetched {len(values)} rows from '{sheet_name}'")
    return values
