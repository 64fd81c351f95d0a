"""Tests for CSV line tokenization."""

from catalog_explorer.csv_reader import split_lines, tokenize_line


class TestTokenizeLine:
    """Tests for tokenize_line."""

    def test_plain_fields(self):
        assert tokenize_line("a,b,c") == ["a", "b", "c"]

    def test_quoted_comma_is_literal(self):
        """Test commas inside quotes do not split fields."""
        assert tokenize_line('a,"b,c",d') == ["a", "b,c", "d"]

    def test_doubled_quote_is_escaped(self):
        """Test a doubled quote inside quotes yields one literal quote."""
        assert tokenize_line('x,"y""z",w') == ["x", 'y"z', "w"]

    def test_empty_fields_preserved(self):
        assert tokenize_line("a,,c,") == ["a", "", "c", ""]

    def test_empty_quoted_field(self):
        assert tokenize_line('a,"",c') == ["a", "", "c"]

    def test_fields_are_not_trimmed(self):
        assert tokenize_line(" a , b ") == [" a ", " b "]

    def test_unbalanced_quote_consumes_rest_of_line(self):
        """Test an unclosed quote treats the remainder as quoted content."""
        assert tokenize_line('a,"b,c,d') == ["a", "b,c,d"]

    def test_json_document_in_quotes(self):
        line = '1,"{""amount"": ""1.50"", ""currency_code"": ""USD""}"'
        assert tokenize_line(line) == ["1", '{"amount": "1.50", "currency_code": "USD"}']

    def test_empty_line_yields_single_empty_field(self):
        assert tokenize_line("") == [""]


class TestSplitLines:
    """Tests for split_lines."""

    def test_drops_blank_lines(self):
        assert split_lines("a,b\n\n  \nc,d\n") == ["a,b", "c,d"]

    def test_strips_carriage_returns(self):
        assert split_lines("a,b\r\nc,d\r\n") == ["a,b", "c,d"]

    def test_empty_content(self):
        assert split_lines("") == []
