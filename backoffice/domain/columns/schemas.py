"""Column schemas - Pydantic models for booking sheet columns"""

from typing import Any, Optional

from pydantic import BaseModel, field_validator


class ColumnArgument(BaseModel):
    name: str
    columnReference: Optional[str] = None
    value: Any = None


class ColumnResponse(BaseModel):
    id: str
    columnName: str
    dataType: str
    parentTab: Optional[str] = None
    order: int
    width: Optional[int] = None
    color: Optional[str] = None
    function: Optional[str] = None
    arguments: list[ColumnArgument] = []
    includeInForms: bool = True


class ColumnUpdate(BaseModel):
    """Display metadata an admin may change"""

    columnName: Optional[str] = None
    width: Optional[int] = None
    order: Optional[int] = None
    color: Optional[str] = None

    @field_validator("width")
    @classmethod
    def validate_width(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Width must be positive")
        return v


class ColumnDependenciesResponse(BaseModel):
    columnId: str
    dependencies: list[str]
    dependents: list[str]
    columnsToRecompute: list[str]
