"""
Comma-delimited reader with quote-aware field splitting.
"""

from product_ingest.core.models import ParsedTable, text_or_empty

from .text_decoding import non_blank_lines


def split_csv_line(line: str) -> list[str]:
    """
    Split one line into trimmed fields.

    A double quote toggles quoted mode; commas inside quotes are kept.
    The field ends at the end of the line whatever the quote state, so an
    unterminated quote is not an error. Quote characters are dropped.

    Args:
        line: A single line of text

    Returns:
        The trimmed fields
    """
    fields = []
    current = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


class CSVReader:
    """
    Reads comma-delimited text into a ParsedTable.

    Blank lines are discarded before rows are indexed, so they never
    appear as data rows. The first remaining line is the header.
    """

    def read(self, text: str, source_name: str) -> ParsedTable:
        """
        Parse decoded CSV text.

        Args:
            text: Decoded file content
            source_name: Original filename

        Returns:
            ParsedTable tagged "csv"
        """
        lines = non_blank_lines(text)
        if not lines:
            return ParsedTable.build([], [], source_name, "csv")

        headers = split_csv_line(lines[0])
        rows = [
            [text_or_empty(field) for field in split_csv_line(line)]
            for line in lines[1:]
        ]

        return ParsedTable.build(headers, rows, source_name, "csv")
