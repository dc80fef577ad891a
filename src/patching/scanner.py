"""
Lexical scanner for JavaScript / Apps Script source.

Walks source text character by character while tracking string and comment
state, so callers only ever see characters that are real code. Used by the
balanced-brace finder and by the bracket checks of the syntax validator.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

STRING_DELIMITERS = ('"', "'", "`")

# A ``/`` after one of these starts a regex literal rather than a division
REGEX_PRECEDING_CHARS = frozenset("(,=:[!&|?{};+-*%<>~^")
REGEX_PRECEDING_KEYWORDS = frozenset({
    "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
    "throw", "case", "do", "else", "yield", "await",
})


def is_escaped(line: str, pos: int) -> bool:
    """Check whether the character at ``pos`` is preceded by an odd number of backslashes."""
    backslashes = 0
    while pos > 0 and line[pos - 1] == "\\":
        backslashes += 1
        pos -= 1
    return backslashes % 2 == 1


@dataclass(frozen=True)
class CodeChar:
    """A character outside strings and comments. ``line`` and ``column`` are 0-based."""
    line: int
    column: int
    char: str


@dataclass(frozen=True)
class UnterminatedString:
    line: int
    column: int
    delimiter: str


class LexicalScanner:
    """
    Iterate over the code characters of ``lines`` starting at ``start_line``.

    Quote and apostrophe strings end at the end of their line unless the line
    ends with a backslash continuation; template literals and block comments
    carry over to following lines. Strings that are still open where they must
    not be are collected in ``unterminated_strings``.

    In JavaScript mode a ``/`` that follows an operator, an opening bracket or
    a keyword such as ``return`` starts a regex literal, which is skipped up to
    its closing ``/`` (character classes included) and its flags. A ``/`` with
    no closing slash on the same line is treated as a division.

    Args:
        lines: Source split into lines (no trailing newlines)
        start_line: First line index to scan
        line_comments: JavaScript mode, where ``//`` starts a comment and
            regex literals are recognized (False for CSS)
    """

    def __init__(self, lines: Sequence[str], start_line: int = 0, line_comments: bool = True):
        self.lines = lines
        self.start_line = start_line
        self.line_comments = line_comments
        self.string_delimiter: Optional[str] = None
        self.in_block_comment = False
        self.unterminated_strings: List[UnterminatedString] = []
        self._string_start = (0, 0)
        self._previous_token = ""
        self._word: List[str] = []

    @classmethod
    def from_text(cls, text: str, **kwargs) -> "LexicalScanner":
        return cls(text.split("\n"), **kwargs)

    def __iter__(self) -> Iterator[CodeChar]:
        for line_index in range(self.start_line, len(self.lines)):
            line = self.lines[line_index]
            yield from self._scan_line(line_index, line)
            self._end_word()

            if self.string_delimiter in ('"', "'") and not line.endswith("\\"):
                start_line, start_column = self._string_start
                self.unterminated_strings.append(
                    UnterminatedString(start_line, start_column, self.string_delimiter)
                )
                self.string_delimiter = None

        if self.string_delimiter is not None:
            start_line, start_column = self._string_start
            self.unterminated_strings.append(
                UnterminatedString(start_line, start_column, self.string_delimiter)
            )
            self.string_delimiter = None

    def _scan_line(self, line_index: int, line: str) -> Iterator[CodeChar]:
        j = 0
        length = len(line)
        while j < length:
            char = line[j]
            following = line[j + 1] if j + 1 < length else ""

            if self.in_block_comment:
                if char == "*" and following == "/":
                    self.in_block_comment = False
                    j += 2
                    continue
                j += 1
                continue

            if self.string_delimiter is not None:
                if char == self.string_delimiter and not is_escaped(line, j):
                    self.string_delimiter = None
                j += 1
                continue

            if char in STRING_DELIMITERS:
                self._end_word()
                self._previous_token = char
                self.string_delimiter = char
                self._string_start = (line_index, j)
                j += 1
                continue

            if self.line_comments and char == "/" and following == "/":
                # rest of the line is a comment
                return

            if char == "/" and following == "*":
                self.in_block_comment = True
                j += 2
                continue

            if char == "/" and self.line_comments and self._regex_allowed():
                regex_end = self._regex_end(line, j)
                if regex_end is not None:
                    self._previous_token = "/"
                    j = regex_end
                    continue

            self._track_token(char)
            yield CodeChar(line_index, j, char)
            j += 1

    def _end_word(self):
        if self._word:
            self._previous_token = "".join(self._word)
            self._word = []

    def _track_token(self, char: str):
        if char.isalnum() or char in "_$":
            self._word.append(char)
            return
        self._end_word()
        if not char.isspace():
            self._previous_token = char

    def _regex_allowed(self) -> bool:
        self._end_word()
        previous = self._previous_token
        return (
            not previous
            or previous in REGEX_PRECEDING_CHARS
            or previous in REGEX_PRECEDING_KEYWORDS
        )

    @staticmethod
    def _regex_end(line: str, start: int) -> Optional[int]:
        """Index just past the flags of a regex literal opening at ``start``, or None."""
        j = start + 1
        in_class = False
        while j < len(line):
            char = line[j]
            if char == "\\":
                j += 2
                continue
            if in_class:
                if char == "]":
                    in_class = False
            elif char == "[":
                in_class = True
            elif char == "/":
                j += 1
                while j < len(line) and (line[j].isalnum() or line[j] in "_$"):
                    j += 1
                return j
            j += 1
        return None


def find_block_end(lines: Sequence[str], start_line: int) -> Optional[int]:
    """
    Find the line holding the brace that closes the first ``{`` at or after ``start_line``.

    Braces inside strings and comments are ignored. Returns None when the input
    runs out first, or when a ``}`` drives the depth negative before any ``{``
    was seen; callers must skip the region rather than guess.
    """
    brace_depth = 0
    target_depth = None

    for code_char in LexicalScanner(lines, start_line):
        if code_char.char == "{":
            brace_depth += 1
            if target_depth is None:
                target_depth = brace_depth
        elif code_char.char == "}":
            brace_depth -= 1
            if target_depth is not None and brace_depth == target_depth - 1:
                return code_char.line
            if brace_depth < 0:
                return None

    return None


def mask_non_code(text: str, line_comments: bool = True):
    """
    Blank out strings and comments.

    Returns the masked text (same length and line structure as ``text``) and the
    scanner's list of unterminated strings.
    """
    lines = text.split("\n")
    masked = [[" "] * len(line) for line in lines]
    scanner = LexicalScanner(lines, line_comments=line_comments)
    for code_char in scanner:
        masked[code_char.line][code_char.column] = code_char.char
    return "\n".join("".join(row) for row in masked), scanner.unterminated_strings
