"""
ProductRecord model representing one canonical product row bound for the store.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .cell import Cell


class ProductRecord(BaseModel):
    """
    Canonical persisted unit.

    Records are never mutated in place; use ``model_copy(update=...)``
    to derive a corrected value.

    Attributes:
        natural_key: Product code / SKU, the uniqueness boundary
        name: Product name
        category: Product category
        price: Decimal when parseable, raw text when not, None when empty
        description: Free-form description
        created_at: Assigned by the pipeline right before insertion
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "natural_key": "A1",
                "name": "Widget",
                "category": "Hardware",
                "price": "9.99",
                "description": "Standard widget",
                "created_at": None,
            }
        },
    )

    natural_key: str = Field(..., min_length=1)
    name: str | None = None
    category: str | None = None
    price: Decimal | str | None = None
    description: str | None = None
    created_at: datetime | None = None

    @field_validator("natural_key")
    @classmethod
    def check_key_not_blank(cls, v: str) -> str:
        """Reject keys made only of whitespace."""
        if not v.strip():
            raise ValueError("natural_key must not be blank")
        return v

    def stamped(self, created_at: datetime) -> "ProductRecord":
        return self.model_copy(update={"created_at": created_at})

    def as_row(self) -> tuple[Any, ...]:
        """
        Column values in table order (code, name, category, price, description, created_at).

        The price column is text, so prices are rendered as strings.
        """
        return (
            self.natural_key,
            self.name,
            self.category,
            None if self.price is None else str(self.price),
            self.description,
            self.created_at,
        )


class RejectedRow(BaseModel):
    """
    A data row the mapper could not turn into a ProductRecord.

    Attributes:
        row_number: 1-based position among the table's data rows
        cells: The row exactly as parsed
        reason: Why the row was rejected
    """

    model_config = ConfigDict(frozen=True)

    row_number: int = Field(..., ge=1)
    cells: list[Cell]
    reason: str
