"""
Unit tests for the tabular parser and its readers.

Includes property-based testing with hypothesis for blank-line handling.
"""

import io
from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from product_ingest.core.errors import ParseError, ParseErrorKind
from product_ingest.core.models import EMPTY, NumberCell, TextCell
from product_ingest.parsing import (
    CSVReader,
    TabularParser,
    decode_text,
    detect_format,
    matrix_to_table,
    sniff_delimiter,
    split_csv_line,
)


def texts(*values):
    return [TextCell(value=v) if v else EMPTY for v in values]


@pytest.fixture
def parser():
    return TabularParser()


class TestFormatDetection:
    """Tests for extension dispatch"""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("p.xlsx", "spreadsheet"),
            ("p.XLS", "spreadsheet"),
            ("p.csv", "csv"),
            ("p.Csv", "csv"),
            ("p.txt", "delimited"),
            ("p.tsv", "delimited"),
        ],
    )
    def test_supported_extensions(self, filename, expected):
        assert detect_format(filename)[1] == expected

    @pytest.mark.parametrize("filename", ["p.json", "p.parquet", "noextension", "p.csv.gz"])
    def test_unsupported_extension(self, filename):
        with pytest.raises(ParseError) as exc_info:
            detect_format(filename)
        assert exc_info.value.parse_kind is ParseErrorKind.UNSUPPORTED_FORMAT


class TestCSV:
    """Tests for comma-delimited parsing"""

    def test_round_trip(self, parser):
        table = parser.parse(b"a,b\n1,2\n", "t.csv")

        assert table.headers == ["a", "b"]
        assert table.rows == [texts("1", "2")]
        assert table.total_rows == 1
        assert table.source_format == "csv"
        assert table.delimiter is None
        assert table.preview == [{"a": "1", "b": "2"}]

    def test_quoted_commas_kept(self):
        assert split_csv_line('x, "1,5" ,y') == ["x", "1,5", "y"]

    def test_unterminated_quote_tolerated(self):
        assert split_csv_line('a,"b,c') == ["a", "b,c"]

    def test_fields_trimmed_and_empty_fields_kept(self):
        assert split_csv_line(" a ,, c ") == ["a", "", "c"]

    def test_crlf_line_endings(self, parser):
        table = parser.parse(b"code,name\r\nA1,Widget\r\n", "t.csv")
        assert table.headers == ["code", "name"]
        assert table.rows == [texts("A1", "Widget")]

    def test_empty_field_becomes_empty_cell(self, parser):
        table = parser.parse(b"a,b,c\n1,,3\n", "t.csv")
        assert table.rows[0][1] == EMPTY

    def test_empty_file_gives_empty_table(self, parser):
        table = parser.parse(b"", "t.csv")
        assert table.headers == []
        assert table.rows == []
        assert table.total_rows == 0

    @given(
        st.lists(
            st.lists(st.text(alphabet="abcxyz019", min_size=1, max_size=5), min_size=3, max_size=3),
            min_size=1,
            max_size=12,
        ),
        st.lists(st.sampled_from(["", "   ", "\t", " \t "]), max_size=12),
        st.randoms(use_true_random=False),
    )
    def test_property_blank_lines_ignored(self, rows, blanks, rnd):
        """Property test: interspersed blank lines never change the parse"""
        lines = [",".join(row) for row in rows]
        noisy = list(lines)
        for blank in blanks:
            noisy.insert(rnd.randint(0, len(noisy)), blank)

        reader = CSVReader()
        clean_table = reader.read("\n".join(lines), "t.csv")
        noisy_table = reader.read("\n".join(noisy), "t.csv")

        assert noisy_table.headers == clean_table.headers
        assert noisy_table.rows == clean_table.rows
        assert noisy_table.total_rows == clean_table.total_rows


class TestDelimited:
    """Tests for generic delimiter sniffing"""

    def test_semicolon_sniffed(self, parser):
        table = parser.parse(b"a;b;c\n1;2;3\n4;5;6\n", "t.txt")

        assert table.delimiter == ";"
        assert table.headers == ["a", "b", "c"]
        assert all(len(row) == 3 for row in table.rows)

    def test_tab_wins_over_commas_in_values(self, parser):
        table = parser.parse(b"a\tb\tc\n1,5\t2,0\t3\n", "t.tsv")

        assert table.delimiter == "\t"
        assert table.rows == [texts("1,5", "2,0", "3")]

    def test_ties_keep_earlier_candidate(self):
        assert sniff_delimiter("a,b|c") == ","
        assert sniff_delimiter("a|b;c") == "|"

    def test_no_candidate_defaults_to_tab(self):
        assert sniff_delimiter("single") == "\t"

    def test_sniffing_uses_header_only(self, parser):
        table = parser.parse(b"a|b\n1;2;3;4|5\n", "t.txt")

        assert table.delimiter == "|"
        assert table.rows == [texts("1;2;3;4", "5")]

    def test_headers_and_values_trimmed(self, parser):
        table = parser.parse(b" code | name \n A1 |  Widget \n", "t.txt")
        assert table.headers == ["code", "name"]
        assert table.rows == [texts("A1", "Widget")]

    def test_blank_lines_skipped(self, parser):
        table = parser.parse(b"a:b\n\n1:2\n   \n3:4\n", "t.txt")
        assert table.total_rows == 2


class TestSpreadsheet:
    """Tests for workbook parsing"""

    def test_xlsx_first_sheet(self, parser, xlsx_bytes):
        raw = xlsx_bytes([["code", "name", "price"], ["A1", "Widget", 9.99], ["A2", "Gadget", 5]])

        table = parser.parse(raw, "products.xlsx")

        assert table.source_format == "spreadsheet"
        assert table.headers == ["code", "name", "price"]
        assert table.total_rows == 2
        assert table.rows[0] == [TextCell(value="A1"), TextCell(value="Widget"), NumberCell(value=9.99)]
        assert table.rows[1][2] == NumberCell(value=5)

    def test_xlsx_blank_header_cell(self, parser, xlsx_bytes):
        raw = xlsx_bytes([["code", None, "price"], ["A1", "Widget", 1]])

        table = parser.parse(raw, "blank.xlsx")

        assert table.headers == ["code", "", "price"]

    def test_xlsx_absent_cells_become_empty(self, parser, xlsx_bytes):
        raw = xlsx_bytes([["code", "name", "price"], ["A1"]])

        table = parser.parse(raw, "short.xlsx")

        assert table.rows == [[TextCell(value="A1"), EMPTY, EMPTY]]

    def test_matrix_skips_empty_rows_and_pads(self):
        table = matrix_to_table(
            [("code", "name"), (None, None), ("A1", None), ("A2", "Gadget", None)],
            "m.xlsx",
        )

        assert table.headers == ["code", "name"]
        assert table.rows == [[TextCell(value="A1"), EMPTY], texts("A2", "Gadget")]

    def test_matrix_numeric_header_rendered_as_text(self):
        table = matrix_to_table([(2024.0, "name"), (1, "x")], "m.xlsx")
        assert table.headers == ["2024", "name"]

    def test_empty_sheet(self):
        table = matrix_to_table([], "m.xlsx")
        assert table.headers == []
        assert table.total_rows == 0

    def test_xls_first_sheet(self, parser, xls_bytes):
        raw = xls_bytes(
            [
                ["code", "name", "price", "listed"],
                ["A1", "Widget", 9.99, date(2024, 1, 15)],
                ["A2", "", 5, True],
                ["A3", None, "ask", None],
            ]
        )

        table = parser.parse(raw, "legacy.xls")

        assert table.source_format == "spreadsheet"
        assert table.headers == ["code", "name", "price", "listed"]
        assert table.total_rows == 3
        assert table.rows[0] == [
            TextCell(value="A1"),
            TextCell(value="Widget"),
            NumberCell(value=9.99),
            TextCell(value="2024-01-15T00:00:00"),
        ]
        assert table.rows[1] == [TextCell(value="A2"), EMPTY, NumberCell(value=5.0), TextCell(value="TRUE")]
        assert table.rows[2] == [TextCell(value="A3"), EMPTY, TextCell(value="ask"), EMPTY]

    def test_xls_rows_map_to_products(self, xls_bytes):
        from product_ingest.pipeline import IngestionOrchestrator
        from product_ingest.warehouse import SimulatedProductStore

        store = SimulatedProductStore()
        raw = xls_bytes([["SKU", "Product_Name", "Unit_Price"], ["X-1", "Kettle", 39.5], [1002, "Toaster", None]])

        outcome = IngestionOrchestrator(store).run(raw, "kitchen.xls")

        assert outcome.succeeded
        assert outcome.result.inserted == 2
        assert store.existing_keys(["X-1", "1002"]) == {"X-1", "1002"}

    @pytest.mark.parametrize("filename", ["corrupt.xlsx", "corrupt.xls"])
    def test_corrupt_workbook(self, parser, filename):
        with pytest.raises(ParseError) as exc_info:
            parser.parse(b"this is not a workbook", filename)

        assert exc_info.value.parse_kind is ParseErrorKind.DECODE_FAILURE
        assert exc_info.value.__cause__ is not None


class TestDecoding:
    """Tests for byte-to-text decoding"""

    def test_utf8_bom_stripped(self, parser):
        table = parser.parse(b"\xef\xbb\xbfcode,name\nA1,x\n", "t.csv")
        assert table.headers == ["code", "name"]

    def test_utf16_with_bom(self, parser):
        table = parser.parse("code\tname\nA1\tCafé\n".encode("utf-16"), "t.tsv")
        assert table.rows == [texts("A1", "Café")]

    def test_fallback_encoding(self):
        assert decode_text(b"caf\xe9", "t.csv") == "café"

    def test_binary_content_rejected(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse(b"PK\x03\x04\x00\x00binary", "t.csv")
        assert exc_info.value.parse_kind is ParseErrorKind.DECODE_FAILURE

    def test_undecodable_text_rejected(self):
        with pytest.raises(ParseError) as exc_info:
            decode_text(b"\x81\x8d\x8f", "t.csv", fallback_encoding="cp1252")
        assert exc_info.value.parse_kind is ParseErrorKind.DECODE_FAILURE


class TestSources:
    """Tests for the accepted source kinds"""

    def test_stream_source(self, parser):
        table = parser.parse(io.BytesIO(b"a,b\n1,2\n"), "t.csv")
        assert table.total_rows == 1

    def test_path_source_uses_file_name(self, parser, tmp_path):
        path = tmp_path / "products.csv"
        path.write_bytes(b"code\nA1\n")

        table = parser.parse(path)

        assert table.source_name == "products.csv"

    def test_missing_file_is_io_failure(self, parser, tmp_path):
        with pytest.raises(ParseError) as exc_info:
            parser.parse(tmp_path / "missing.csv")
        assert exc_info.value.parse_kind is ParseErrorKind.IO_FAILURE

    def test_failing_stream_is_io_failure(self, parser):
        class BrokenStream:
            def read(self):
                raise OSError("connection reset")

        with pytest.raises(ParseError) as exc_info:
            parser.parse(BrokenStream(), "t.csv")
        assert exc_info.value.parse_kind is ParseErrorKind.IO_FAILURE

    def test_closed_stream_is_io_failure(self, parser):
        stream = io.BytesIO(b"code\nA1\n")
        stream.close()

        with pytest.raises(ParseError) as exc_info:
            parser.parse(stream, "t.csv")

        assert exc_info.value.parse_kind is ParseErrorKind.IO_FAILURE
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_text_stream_is_io_failure(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse(io.StringIO("a,b"), "t.csv")
        assert exc_info.value.parse_kind is ParseErrorKind.IO_FAILURE

    def test_bytes_without_filename(self, parser):
        with pytest.raises(ValueError):
            parser.parse(b"a,b\n")
