"""
Format dispatch for uploaded tabular files.
"""

import os
from pathlib import Path
from typing import BinaryIO, Union

from product_ingest.core.errors import ParseError, ParseErrorKind
from product_ingest.core.models import ParsedTable
from product_ingest.observability.logger import get_logger, log_operation
from product_ingest.observability.metrics import parse_duration_seconds, track_duration

from .csv_reader import CSVReader
from .delimited_reader import DelimitedReader
from .spreadsheet_reader import SpreadsheetReader
from .text_decoding import decode_text

logger = get_logger(__name__)

Source = Union[bytes, bytearray, BinaryIO, str, os.PathLike]

FORMAT_BY_EXTENSION = {
    "xlsx": "spreadsheet",
    "xls": "spreadsheet",
    "csv": "csv",
    "txt": "delimited",
    "tsv": "delimited",
}


def detect_format(filename: str) -> tuple[str, str]:
    """
    Map a filename to (extension, format tag), case-insensitively.

    Raises:
        ParseError: UNSUPPORTED_FORMAT for any other extension
    """
    extension = Path(filename).suffix.lower().lstrip(".")
    source_format = FORMAT_BY_EXTENSION.get(extension)
    if source_format is None:
        raise ParseError(
            ParseErrorKind.UNSUPPORTED_FORMAT,
            filename,
            f"Unsupported file type: .{extension}" if extension else "File has no extension",
        )
    return extension, source_format


class TabularParser:
    """
    Converts a raw file into a ParsedTable.

    Supports spreadsheet workbooks (.xlsx, .xls), comma-delimited text
    (.csv) and generically delimited text (.txt, .tsv). Parsing is
    all-or-nothing: a ParseError is raised and no partial table escapes.
    """

    def __init__(self, fallback_encoding: str = "cp1252"):
        """
        Initialize the parser.

        Args:
            fallback_encoding: Encoding tried for text files that are not UTF-8
        """
        self.fallback_encoding = fallback_encoding
        self.csv_reader = CSVReader()
        self.delimited_reader = DelimitedReader()
        self.spreadsheet_reader = SpreadsheetReader()

    def parse(self, source: Source, filename: str | None = None) -> ParsedTable:
        """
        Parse a file.

        Args:
            source: File bytes, a binary stream, or a filesystem path
            filename: Original filename; required unless source is a path

        Returns:
            ParsedTable

        Raises:
            ParseError: UNSUPPORTED_FORMAT, IO_FAILURE or DECODE_FAILURE
        """
        if filename is None:
            if not isinstance(source, (str, os.PathLike)):
                raise ValueError("filename is required when parsing bytes or a stream")
            filename = Path(source).name

        extension, source_format = detect_format(filename)
        raw = self._read_bytes(source, filename)

        with log_operation("Parsing file", logger=logger, source_name=filename, source_format=source_format):
            with track_duration(parse_duration_seconds, source_format=source_format):
                if source_format == "spreadsheet":
                    return self.spreadsheet_reader.read(raw, filename, extension)

                text = decode_text(raw, filename, self.fallback_encoding)
                if source_format == "csv":
                    return self.csv_reader.read(text, filename)
                return self.delimited_reader.read(text, filename)

    @staticmethod
    def _read_bytes(source: Source, filename: str) -> bytes:
        try:
            if isinstance(source, (bytes, bytearray)):
                return bytes(source)
            if isinstance(source, (str, os.PathLike)):
                with open(source, "rb") as f:
                    return f.read()
            data = source.read()
        except (OSError, ValueError) as e:
            # ValueError: read on a closed stream
            raise ParseError(ParseErrorKind.IO_FAILURE, filename, f"Failed to read file: {e}") from e

        if not isinstance(data, (bytes, bytearray)):
            raise ParseError(ParseErrorKind.IO_FAILURE, filename, "Stream did not yield bytes")
        return bytes(data)
