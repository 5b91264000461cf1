# =============================================================================
# Unit Tests - Normalizer
# =============================================================================
#
# Pure-function tests; no API keys or network calls needed.
# =============================================================================

from app.services.normalizer import cell_text, normalize


class TestEscaping:
    """CSV quoting of individual cells."""

    def test_quotes_and_commas_are_escaped(self):
        result = normalize([['He said "hi", ok']])
        assert result == '"He said ""hi"", ok"'

    def test_plain_cells_are_not_quoted(self):
        assert normalize([["Revenue", "100"]]) == "Revenue,100"

    def test_crlf_normalized_before_quoting(self):
        assert normalize([["x\r\ny"]]) == '"x\ny"'

    def test_lone_cr_normalized(self):
        assert normalize([["x\ry"]]) == '"x\ny"'

    def test_newline_forces_quoting(self):
        assert normalize([["a\nb", "c"]]) == '"a\nb",c'


class TestTrailingTrim:
    """Only trailing empty cells are dropped."""

    def test_trailing_empties_dropped(self):
        assert normalize([["A", "", "", ""]]) == "A"

    def test_leading_and_interior_empties_preserved(self):
        assert normalize([["", "A", ""]]) == ",A"
        assert normalize([["A", "", "B"]]) == "A,,B"

    def test_none_cells_count_as_empty(self):
        assert normalize([[None, "a", None, None]]) == ",a"

    def test_whitespace_cell_is_not_trimmed(self):
        assert normalize([["a", " "]]) == "a, "


class TestBlankLines:
    """Blank-line collapsing and stripping."""

    def test_consecutive_blank_rows_collapse_to_one(self):
        rows = [["a"], [], [""], ["", ""], ["b"]]
        assert normalize(rows) == "a\n\nb"

    def test_whitespace_only_rows_are_blank(self):
        rows = [["a"], ["  "], ["   "], ["b"]]
        assert normalize(rows) == "a\n\nb"

    def test_leading_and_trailing_blank_lines_stripped(self):
        rows = [[], [""], ["a"], ["b"], [], [None]]
        assert normalize(rows) == "a\nb"

    def test_none_row_is_blank(self):
        assert normalize([["a"], None, ["b"]]) == "a\n\nb"

    def test_empty_input(self):
        assert normalize([]) == ""

    def test_only_blank_rows(self):
        assert normalize([[], [""], [None, ""]]) == ""

    def test_never_two_blank_lines_in_a_row(self):
        rows = [["x"]] + [[]] * 10 + [["y"]] + [[""]] * 4 + [["z"]]
        result = normalize(rows)
        assert "\n\n\n" not in result
        assert result == "x\n\ny\n\nz"


class TestCellText:
    """String forms of non-string cell values."""

    def test_numbers(self):
        assert normalize([[1, 2.5, 3.0]]) == "1,2.5,3"

    def test_booleans(self):
        assert cell_text(True) == "true"
        assert cell_text(False) == "false"

    def test_checkbox_row(self):
        assert normalize([["Paid", True, False]]) == "Paid,true,false"

    def test_none(self):
        assert cell_text(None) == ""


class TestIdempotence:
    """Re-normalizing the line-split output yields the same string."""

    def test_round_trip_is_stable(self):
        rows = [
            [],
            ["Month", "Revenue", "", ""],
            [],
            [],
            ["Jan", "100"],
            ["", "Feb", ""],
            [""],
        ]
        first = normalize(rows)
        second = normalize([line.split(",") for line in first.split("\n")])
        assert second == first

    def test_deterministic(self):
        rows = [["a", "b,c"], [], ["d"]]
        assert normalize(rows) == normalize(rows)
