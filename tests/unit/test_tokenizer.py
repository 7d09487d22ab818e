from __future__ import annotations

import pytest

from grc_import.tabular.tokenizer import format_line, tokenize_line


def test_basic_split_trims_fields():
    assert tokenize_line(" a , b ,c ", ",") == ["a", "b", "c"]


def test_quoted_field_keeps_delimiter():
    assert tokenize_line('1;"Gestão; Riscos";x', ";") == ["1", "Gestão; Riscos", "x"]


def test_doubled_quote_is_escaped():
    assert tokenize_line('"say ""hi""",b', ",") == ['say "hi"', "b"]


def test_trailing_delimiter_yields_empty_last_field():
    assert tokenize_line("a,b,", ",") == ["a", "b", ""]
    assert tokenize_line("", ",") == [""]


def test_field_count_is_delimiters_plus_one():
    line = "a|b||d"
    assert len(tokenize_line(line, "|")) == line.count("|") + 1


def test_format_line_quotes_only_when_needed():
    assert format_line(["a", "b;c", 'q"x', None], ";") == 'a;"b;c";"q""x";'


@pytest.mark.parametrize("delimiter", [",", ";", "\t", "|"])
def test_format_then_tokenize_returns_fields(delimiter):
    fields = ["CTRL-001", f"x{delimiter}y", 'He said "ok"', ""]
    assert tokenize_line(format_line(fields, delimiter), delimiter) == fields
