"""Column service - booking sheet column metadata and dependencies"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import BookingSheetColumn
from .dependency_graph import get_default_graph
from .registry import BOOKING_COLUMNS, COLUMNS_BY_ID
from .schemas import ColumnUpdate

logger = logging.getLogger(__name__)


class ColumnService:
    """Service layer for booking sheet columns"""

    def __init__(self, db: Session):
        self.db = db

    def seed_columns(self) -> int:
        """Insert registry columns missing from the table. Returns the number added."""
        existing = {column_id for (column_id,) in self.db.query(BookingSheetColumn.id).all()}
        added = 0
        for column in BOOKING_COLUMNS:
            if column["id"] in existing:
                continue
            self.db.add(
                BookingSheetColumn(
                    id=column["id"],
                    column_name=column["columnName"],
                    data_type=column["dataType"],
                    parent_tab=column.get("parentTab"),
                    order=column.get("order", 0),
                    color=column.get("color"),
                    function_name=column.get("function"),
                    arguments=column.get("arguments") or [],
                    include_in_forms=column.get("includeInForms", True),
                )
            )
            added += 1
        if added:
            self.db.commit()
            logger.info(f"✅ Seeded {added} booking sheet columns")
        return added

    def list_columns(self) -> list[BookingSheetColumn]:
        self.seed_columns()
        return self.db.query(BookingSheetColumn).order_by(BookingSheetColumn.order.asc()).all()

    def get_column(self, column_id: str) -> BookingSheetColumn:
        column = self.db.query(BookingSheetColumn).filter(BookingSheetColumn.id == column_id).first()
        if not column:
            if column_id in COLUMNS_BY_ID:
                self.seed_columns()
                return self.get_column(column_id)
            raise HTTPException(status_code=404, detail="Column not found")
        return column

    def update_column(self, column_id: str, data: ColumnUpdate) -> BookingSheetColumn:
        """Update display metadata; data type and function wiring stay fixed"""
        column = self.get_column(column_id)
        if data.columnName is not None:
            if not data.columnName.strip():
                raise HTTPException(status_code=400, detail="Column name cannot be empty")
            column.column_name = data.columnName.strip()
        if data.width is not None:
            column.width = data.width
        if data.order is not None:
            column.order = data.order
        if data.color is not None:
            column.color = data.color
        self.db.commit()
        self.db.refresh(column)
        return column

    def get_dependencies(self, column_id: str) -> dict:
        if column_id not in COLUMNS_BY_ID:
            raise HTTPException(status_code=404, detail="Column not found")
        graph = get_default_graph()
        return {
            "columnId": column_id,
            "dependencies": graph.get_dependencies(column_id),
            "dependents": graph.get_dependents(column_id),
            "columnsToRecompute": graph.get_columns_to_recompute(column_id),
        }

    def get_graph(self) -> dict:
        graph = get_default_graph()
        return {**graph.to_dict(), "hasCircularDependencies": graph.has_circular_dependencies()}
