"""
ValidationResult model representing the outcome of validating a parsed table (ephemeral).
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ValidationResult(BaseModel):
    """
    Outcome of the structural checks run over a ParsedTable.

    Note: ValidationResult is ephemeral, not persisted to database.
    Errors are data, accumulated in check order; nothing is raised.

    Attributes:
        is_valid: True iff errors is empty
        errors: Human-readable violation descriptions
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "is_valid": False,
                "errors": [
                    "Some column headers are empty",
                    "2 rows have inconsistent column counts",
                ],
            }
        },
    )

    is_valid: bool
    errors: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_valid_consistency(self) -> "ValidationResult":
        """Validate that is_valid mirrors the absence of errors."""
        if self.is_valid == bool(self.errors):
            raise ValueError("is_valid must be True exactly when errors is empty")
        return self

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(is_valid=not errors, errors=list(errors))
