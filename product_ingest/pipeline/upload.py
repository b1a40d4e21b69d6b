"""
Upload boundary: files arriving from the transport layer.

Oversized or badly named files are refused here, before any parsing.
"""

import mimetypes
from pathlib import Path

from pydantic import BaseModel, Field

from product_ingest.config import MAX_UPLOAD_BYTES
from product_ingest.core.errors import UploadRejected
from product_ingest.observability.logger import get_logger
from product_ingest.observability.metrics import increment_counter, upload_rejections_total
from product_ingest.utils.validation import ValidationError, validate_file_name

logger = get_logger(__name__)


class UploadedFile(BaseModel):
    """
    One uploaded file.

    Attributes:
        name: Original file name (base name only)
        size: Size in bytes
        content_type: Declared or inferred MIME type
        content: File bytes
    """

    name: str
    size: int = Field(..., ge=0)
    content_type: str | None = None
    content: bytes

    @classmethod
    def from_bytes(cls, name: str, content: bytes, content_type: str | None = None) -> "UploadedFile":
        return cls(name=name, size=len(content), content_type=content_type, content=content)

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedFile":
        """Load a file from disk, as the CLI does."""
        path = Path(path)
        content = path.read_bytes()
        return cls(name=path.name, size=len(content), content=content)

    def resolved_content_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or "application/octet-stream"


class UploadGate:
    """
    Admits uploaded files that are small enough and sensibly named.
    """

    def __init__(self, max_bytes: int = MAX_UPLOAD_BYTES):
        """
        Initialize gate.

        Args:
            max_bytes: Largest accepted file size in bytes
        """
        self.max_bytes = max_bytes

    def check(self, upload: UploadedFile) -> UploadedFile:
        """
        Verify one file.

        Args:
            upload: The uploaded file

        Returns:
            The same file when accepted

        Raises:
            UploadRejected: If the file is too large or its name is unsafe
        """
        try:
            validate_file_name(upload.name)
        except ValidationError as e:
            raise self._reject(upload, "invalid_name", str(e)) from e

        size = max(upload.size, len(upload.content))
        if size > self.max_bytes:
            raise self._reject(
                upload,
                "too_large",
                f"File is {size} bytes, larger than the {self.max_bytes} byte limit",
            )
        return upload

    def admit(self, uploads: list[UploadedFile]) -> tuple[list[UploadedFile], list[UploadRejected]]:
        """
        Split a multi-file upload into accepted files and rejections.

        Args:
            uploads: Files from one upload call

        Returns:
            Tuple of (accepted, rejections), both in upload order
        """
        accepted = []
        rejected = []
        for upload in uploads:
            try:
                accepted.append(self.check(upload))
            except UploadRejected as e:
                rejected.append(e)
        return accepted, rejected

    @staticmethod
    def _reject(upload: UploadedFile, reason: str, message: str) -> UploadRejected:
        increment_counter(upload_rejections_total, reason=reason)
        logger.warning(
            f"Upload rejected: {upload.name}: {message}",
            extra={"source_name": upload.name, "reason": reason},
        )
        return UploadRejected(upload.name, message)
