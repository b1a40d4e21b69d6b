"""
Tabular file readers.
"""

from .csv_reader import CSVReader, split_csv_line
from .delimited_reader import CANDIDATE_DELIMITERS, DelimitedReader, sniff_delimiter
from .spreadsheet_reader import SpreadsheetReader, matrix_to_table
from .tabular_parser import FORMAT_BY_EXTENSION, TabularParser, detect_format
from .text_decoding import decode_text

__all__ = [
    "TabularParser",
    "detect_format",
    "FORMAT_BY_EXTENSION",
    "CSVReader",
    "split_csv_line",
    "DelimitedReader",
    "sniff_delimiter",
    "CANDIDATE_DELIMITERS",
    "SpreadsheetReader",
    "matrix_to_table",
    "decode_text",
]
