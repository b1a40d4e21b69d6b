"""
Result models for the write side of a run: InsertOutcome, BatchResult and
the terminal RunOutcome.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .validation_result import ValidationResult


class InsertOutcome(BaseModel):
    """
    Result of one bulk insert call.

    Attributes:
        inserted_count: Rows written (0 whenever first_error is set)
        first_error: The store failure, if the write failed
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    inserted_count: int = Field(0, ge=0)
    first_error: Exception | None = None

    @model_validator(mode="after")
    def check_failed_batch_is_empty(self) -> "InsertOutcome":
        if self.first_error is not None and self.inserted_count != 0:
            raise ValueError("a failed batch reports zero inserted rows")
        return self

    @property
    def succeeded(self) -> bool:
        return self.first_error is None


class BatchResult(BaseModel):
    """
    Terminal counts for one ingestion run.

    Attributes:
        requested: Data rows in the uploaded file
        inserted: Rows written to the product table
        skipped_as_duplicate: Rows whose natural key already existed
        rejected_invalid: Rows dropped by validation or mapping
        error: Set only when the insert step failed
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "requested": 2,
                "inserted": 1,
                "skipped_as_duplicate": 1,
                "rejected_invalid": 0,
                "error": None,
            }
        },
    )

    requested: int = Field(..., ge=0)
    inserted: int = Field(0, ge=0)
    skipped_as_duplicate: int = Field(0, ge=0)
    rejected_invalid: int = Field(0, ge=0)
    error: str | None = None

    @model_validator(mode="after")
    def check_accounting(self) -> "BatchResult":
        """Every requested row is accounted for unless the insert failed."""
        accounted = self.inserted + self.skipped_as_duplicate + self.rejected_invalid
        if self.error is None and accounted != self.requested:
            raise ValueError(
                f"requested ({self.requested}) must equal inserted + skipped + rejected ({accounted})"
            )
        if self.error is not None and accounted > self.requested:
            raise ValueError("accounted rows exceed requested rows")
        return self


class RunState(str, Enum):
    """States of one orchestration run."""

    PARSING = "parsing"
    VALIDATING = "validating"
    MAPPING = "mapping"
    RESOLVING_DUPLICATES = "resolving_duplicates"
    INSERTING = "inserting"
    DONE = "done"
    FAILED = "failed"


class RunOutcome(BaseModel):
    """
    Terminal report of one orchestration run.

    A run that reaches DONE always carries a BatchResult. A FAILED run
    carries a reason and whatever counts were gathered before the failure;
    it carries a BatchResult only when the insert step itself failed.
    """

    source_name: str
    state: RunState
    transitions: list[RunState] = Field(default_factory=list)
    result: BatchResult | None = None
    validation: ValidationResult | None = None
    error: str | None = None
    error_kind: str | None = None
    retryable: bool = False
    requested: int = 0
    rejected_invalid: int = 0
    skipped_as_duplicate: int = 0
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_terminal(self) -> "RunOutcome":
        if self.state not in (RunState.DONE, RunState.FAILED):
            raise ValueError(f"run outcome must be terminal, got {self.state.value}")
        if self.state is RunState.DONE and (self.result is None or self.error is not None):
            raise ValueError("a DONE run carries a result and no error")
        if self.state is RunState.FAILED and not self.error:
            raise ValueError("a FAILED run must carry a reason")
        return self

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.DONE
