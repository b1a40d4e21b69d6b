"""
Cell variant carried from parsing into mapping.

A cell is exactly one of TextCell, NumberCell or EmptyCell. Parsers never
emit anything else, so downstream code can branch on ``kind`` instead of
inspecting arbitrary Python values.
"""

from datetime import date, datetime, time
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class TextCell(BaseModel):
    """A cell holding text exactly as it appeared in the source."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    value: str

    @property
    def is_empty(self) -> bool:
        return self.value.strip() == ""

    def display(self) -> str:
        return self.value


class NumberCell(BaseModel):
    """A numeric cell (spreadsheet sources only)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    value: int | float

    @property
    def is_empty(self) -> bool:
        return False

    def display(self) -> int | float:
        return self.value

    def as_text(self) -> str:
        """Render without a spurious '.0' for integral floats."""
        if isinstance(self.value, float) and self.value.is_integer():
            return str(int(self.value))
        return str(self.value)


class EmptyCell(BaseModel):
    """An absent or blank cell."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"

    @property
    def is_empty(self) -> bool:
        return True

    def display(self) -> None:
        return None


Cell = Annotated[Union[TextCell, NumberCell, EmptyCell], Field(discriminator="kind")]

EMPTY = EmptyCell()


def text_or_empty(value: str) -> TextCell | EmptyCell:
    """Wrap a parsed text field; the empty string becomes EmptyCell."""
    if value == "":
        return EMPTY
    return TextCell(value=value)


def cell_from_value(value: Any) -> TextCell | NumberCell | EmptyCell:
    """
    Convert a raw workbook value into a cell.

    Args:
        value: Value as returned by openpyxl or xlrd

    Returns:
        The matching cell variant. Booleans and dates are kept as text
        so that no information is lost and nothing raises.
    """
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return TextCell(value="TRUE" if value else "FALSE")
    if isinstance(value, (int, float)):
        return NumberCell(value=value)
    if isinstance(value, (datetime, date, time)):
        return TextCell(value=value.isoformat())
    return text_or_empty(str(value))
