"""
Tests for the lexical scanner and balanced-brace finder.
"""

from src.patching.scanner import (
    LexicalScanner,
    UnterminatedString,
    find_block_end,
    is_escaped,
    mask_non_code,
)


def test_is_escaped_counts_backslashes():
    """Test odd/even backslash runs."""
    assert is_escaped(r'a\"', 2) is True
    assert is_escaped(r'a\\"', 3) is False
    assert is_escaped('"', 0) is False


def test_find_block_end_simple_function():
    lines = [
        "function f() {",
        "  return 1;",
        "}",
        "function g() {}",
    ]
    assert find_block_end(lines, 0) == 2


def test_find_block_end_ignores_braces_in_strings_and_comments():
    """Decoy braces in a string literal and a line comment must not end the block."""
    lines = [
        "function f() {",
        '  var s = "{";',
        "  // }",
        "  return s;",
        "}",
    ]
    assert find_block_end(lines, 0) == 4


def test_find_block_end_block_comment_spans_lines():
    lines = [
        "function f() {",
        "  /* }",
        "  } */",
        "  return 1;",
        "}",
    ]
    assert find_block_end(lines, 0) == 4


def test_find_block_end_template_literal_spans_lines():
    lines = [
        "function f() {",
        "  var t = `",
        "  }`;",
        "}",
    ]
    assert find_block_end(lines, 0) == 3


def test_find_block_end_escaped_quote():
    lines = [
        "function f() {",
        '  var s = "a\\"}";',
        "}",
    ]
    assert find_block_end(lines, 0) == 2


def test_find_block_end_negative_depth_is_not_found():
    """A stray closing brace before any opening brace is a syntax error, not a guess."""
    assert find_block_end(["}", "function f() {", "}"], 0) is None


def test_find_block_end_runs_out_of_input():
    assert find_block_end(["function f() {", "  return 1;"], 0) is None


def test_scanner_reports_unterminated_string():
    scanner = LexicalScanner.from_text("var s = \"abc;\nvar t = 1;")
    list(scanner)

    assert scanner.unterminated_strings == [UnterminatedString(0, 8, '"')]


def test_scanner_line_continuation_keeps_string_open():
    scanner = LexicalScanner.from_text("var s = 'abc\\\ndef';")
    chars = "".join(c.char for c in scanner)

    assert scanner.unterminated_strings == []
    assert "def" not in chars


def test_mask_non_code_keeps_offsets():
    masked, unterminated = mask_non_code("a { // }")
    assert masked == "a {     "
    assert unterminated == []


def test_mask_non_code_without_line_comments():
    """CSS mode: // is ordinary text."""
    masked, _ = mask_non_code("a { // }", line_comments=False)
    assert masked == "a { // }"


def test_find_block_end_skips_regex_literal_with_brace():
    lines = [
        "function f(s) {",
        "  return /\\}/.test(s);",
        "}",
    ]
    assert find_block_end(lines, 0) == 2


def test_regex_literal_quote_is_not_a_string():
    scanner = LexicalScanner.from_text("s.replace(/'/g, \"\\\\'\");")
    chars = "".join(c.char for c in scanner)

    assert scanner.unterminated_strings == []
    assert chars == "s.replace(, );"


def test_regex_character_class_may_hold_a_slash():
    masked, unterminated = mask_non_code("var r = /[/}]+/gi;")

    assert masked == "var r = " + " " * len("/[/}]+/gi") + ";"
    assert unterminated == []


def test_division_is_not_a_regex():
    masked, _ = mask_non_code("var x = (a) / 2 / b;")
    assert masked == "var x = (a) / 2 / b;"


def test_slash_without_closing_slash_is_kept():
    masked, _ = mask_non_code("var x = a +\n  / 2;")
    assert masked == "var x = a +\n  / 2;"
