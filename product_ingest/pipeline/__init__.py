"""
Ingestion pipeline: upload gate, cancellation and orchestration.
"""

from .cancellation import CancellationToken
from .orchestrator import IngestionOrchestrator, split_in_file_repeats
from .upload import UploadedFile, UploadGate

__all__ = [
    "CancellationToken",
    "IngestionOrchestrator",
    "split_in_file_repeats",
    "UploadedFile",
    "UploadGate",
]
