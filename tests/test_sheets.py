import csv
import io

import pytest
from fastapi import HTTPException

from backoffice.domain.bookings.repository import BookingRepository
from backoffice.domain.sheets.service import SheetService, convert_value, parse_currency_value
from backoffice.models import Booking, BookingVersion
from backoffice.services.sheets_client import SheetsSyncError

HEADERS = ["Booking ID", "Email Address", "First Name", "Original Tour Cost", "Is Main Booking?", "Unknown Column"]

SHEET_ROWS = [
    ["Main Dashboard"],
    [""],
    HEADERS,
    ["SB-PHS-20300601-JD001", "john@example.com", "John", "£2,000.00", "TRUE", "ignored"],
    ["", "skipped@example.com", "Nobody", "£1", "FALSE", ""],
    ["SB-PHS-20300601-JS002", "jane@example.com", "Jane", "(£20)", "no"],
]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("£1,234.50", 1234.5),
        ("(£20)", -20),
        ("GBP 15", 15),
        ("15 EUR", 15),
        ("-£5", -5),
        ("", None),
        ("n/a", None),
    ],
)
def test_parse_currency_value(raw, expected):
    assert parse_currency_value(raw) == expected


@pytest.mark.parametrize(
    "raw, data_type, expected",
    [
        ("  hello ", "string", "hello"),
        ("42", "number", 42),
        ("42.5", "number", 42.5),
        ("1,200", "number", "1,200"),
        ("£10", "currency", 10),
        ("Yes", "boolean", True),
        ("0", "boolean", False),
        ("maybe", "boolean", None),
        ("2025-12-02", "date", "2025-12-02T00:00:00"),
        ("£875.00", "function", 875),
        ("Installment 1/2", "function", "Installment 1/2"),
        ("", "string", None),
    ],
)
def test_convert_value(raw, data_type, expected):
    assert convert_value(raw, data_type) == expected


class TestRowsToBookings:
    def test_maps_headers_to_columns(self, db):
        bookings = SheetService(db).rows_to_bookings(SHEET_ROWS)

        assert len(bookings) == 2
        first, second = bookings
        assert first["bookingId"] == "SB-PHS-20300601-JD001"
        assert first["emailAddress"] == "john@example.com"
        assert first["originalTourCost"] == 2000
        assert first["isMainBooking"] is True
        assert first["row"] == 1
        assert "Unknown Column" not in first
        assert second["originalTourCost"] == -20
        assert second["isMainBooking"] is False
        assert second["row"] == 2

    def test_needs_a_data_row(self, db):
        with pytest.raises(HTTPException) as exc:
            SheetService(db).rows_to_bookings(SHEET_ROWS[:3])
        assert exc.value.status_code == 400

    def test_needs_headers(self, db):
        with pytest.raises(HTTPException):
            SheetService(db).rows_to_bookings([[], [], ["", ""], ["x"]])


def test_import_replaces_existing_bookings(db):
    BookingRepository.create_booking(db, {"bookingId": "OLD-1"})
    output = io.StringIO()
    csv.writer(output).writerows(SHEET_ROWS)

    result = SheetService(db).import_csv(output.getvalue(), created_by="admin-uid")

    assert result == {"imported": 2, "deleted": 1}
    assert {b.booking_id for b in db.query(Booking).all()} == {"SB-PHS-20300601-JD001", "SB-PHS-20300601-JS002"}
    assert all(b.access_token for b in db.query(Booking).all())
    assert db.query(BookingVersion).filter(BookingVersion.change_type == "bulk_import").count() == 1


def test_failed_import_keeps_existing_bookings(db, monkeypatch):
    BookingRepository.create_booking(db, {"bookingId": "SB-KEEP"})
    create_booking = BookingRepository.create_booking
    inserted = []

    def fail_on_second_row(db, data, access_token=None, commit=True):
        inserted.append(data["bookingId"])
        if len(inserted) == 2:
            raise RuntimeError("insert failed")
        return create_booking(db, data, access_token=access_token, commit=commit)

    monkeypatch.setattr(BookingRepository, "create_booking", staticmethod(fail_on_second_row))

    with pytest.raises(RuntimeError):
        SheetService(db).replace_all_bookings([{"bookingId": "SB-1"}, {"bookingId": "SB-2"}], "CSV import")

    assert [b.booking_id for b in db.query(Booking).all()] == ["SB-KEEP"]
    assert db.query(BookingVersion).count() == 0


def test_sync_uses_google_sheet_rows(db, monkeypatch):
    calls = []

    def fake_fetch(spreadsheet_id, sheet_name):
        calls.append((spreadsheet_id, sheet_name))
        return SHEET_ROWS

    monkeypatch.setattr("backoffice.domain.sheets.service.fetch_sheet_values", fake_fetch)

    result = SheetService(db).sync_from_google_sheets("sheet-123", "Main Dashboard")

    assert result["imported"] == 2
    assert calls == [("sheet-123", "Main Dashboard")]


def test_sync_errors_become_bad_gateway(db, monkeypatch):
    def fake_fetch(spreadsheet_id, sheet_name):
        raise SheetsSyncError("permission denied")

    monkeypatch.setattr("backoffice.domain.sheets.service.fetch_sheet_values", fake_fetch)

    with pytest.raises(HTTPException) as exc:
        SheetService(db).sync_from_google_sheets("sheet-123")
    assert exc.value.status_code == 502


def test_export_and_import_endpoints(client, db):
    BookingRepository.create_booking(db, {"bookingId": "SB-1", "emailAddress": "a@example.com", "isMainBooking": True})

    exported = client.get("/sheets/export")
    assert exported.status_code == 200
    assert exported.headers["content-type"].startswith("text/csv")
    header, row = list(csv.reader(io.StringIO(exported.text)))
    assert row[header.index("Booking ID")] == "SB-1"
    assert row[header.index("Is Main Booking?")] == "TRUE"

    output = io.StringIO()
    csv.writer(output).writerows(SHEET_ROWS)
    response = client.post("/sheets/import", files={"file": ("bookings.csv", output.getvalue().encode(), "text/csv")})
    assert response.status_code == 200
    assert response.json()["imported"] == 2
