"""
Reader for text files whose delimiter is not known in advance.
"""

from product_ingest.core.models import ParsedTable, text_or_empty

from .text_decoding import non_blank_lines

# Preference order; earlier candidates win ties
CANDIDATE_DELIMITERS = ("\t", ",", "|", ";", ":")


def sniff_delimiter(line: str) -> str:
    """
    Pick the candidate delimiter that splits the line into the most fields.

    Ties keep the earlier candidate, so a line containing none of the
    candidates resolves to tab.

    Args:
        line: Sample line (the header line)

    Returns:
        The chosen delimiter
    """
    best = CANDIDATE_DELIMITERS[0]
    best_count = 0
    for delimiter in CANDIDATE_DELIMITERS:
        count = len(line.split(delimiter))
        if count > best_count:
            best = delimiter
            best_count = count
    return best


class DelimitedReader:
    """
    Reads generically delimited text (.txt, .tsv) into a ParsedTable.

    The delimiter is sniffed from the header line only and then applied
    unchanged to every data line. Quotes have no special meaning here.
    """

    def read(self, text: str, source_name: str) -> ParsedTable:
        """
        Parse decoded delimited text.

        Args:
            text: Decoded file content
            source_name: Original filename

        Returns:
            ParsedTable tagged "delimited", with the sniffed delimiter
        """
        lines = non_blank_lines(text)
        if not lines:
            return ParsedTable.build([], [], source_name, "delimited")

        delimiter = sniff_delimiter(lines[0])
        headers = [header.strip() for header in lines[0].split(delimiter)]
        rows = [
            [text_or_empty(value.strip()) for value in line.split(delimiter)]
            for line in lines[1:]
        ]

        return ParsedTable.build(headers, rows, source_name, "delimited", delimiter=delimiter)
