"""
Syntax validator gating every write to an Apps Script project.

Checks are picked by file kind:
- JS / Apps Script: bracket balance (reporting what kind of bracket is
  unmatched), unterminated strings, a few known-bad constructs, and a
  change-magnitude sanity check against the pre-patch content.
- HTML: tag balance and nesting, plus the CSS and JavaScript checks on
  ``<style>`` and ``<script>`` bodies. Deep ``<div>`` nesting is a warning.
- CSS: bracket balance. JSON: strict parse. Anything else passes.

All findings carry 1-based line and column numbers.
"""

import json
import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from src.patching.models import FileKind, ValidationIssue, ValidationResult
from src.patching.scanner import mask_non_code

logger = logging.getLogger(__name__)

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}
CLOSER_NAMES = {")": "parenthesis", "]": "array bracket", "}": "brace"}

CONTROL_KEYWORDS = {"if", "for", "while", "switch", "catch", "with"}
JS_KEYWORDS = CONTROL_KEYWORDS | {
    "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
    "throw", "case", "do", "else", "try", "finally", "yield", "await",
}
OBJECT_PRECEDERS = {"=", ":", "(", ",", "[", "?", "|", "&", "!", "+", "return", "yield", "await"}

ANONYMOUS_DECLARATION = re.compile(r"\bfunction\s*\(")
STATEMENT_ENDINGS = (";", "{", "}")

BAD_PATTERNS = [
    (re.compile(r"\bif\s*\(\s*\)"), "Empty if condition"),
    (re.compile(r"\bfor\s*\(\s*\)"), "Empty for loop"),
    (re.compile(r"\bwhile\s*\(\s*\)"), "Empty while condition"),
    (re.compile(r"\bcatch\s*\(\s*\)"), "Empty catch clause"),
]

SELF_CLOSING_TAGS = frozenset({
    "br", "hr", "img", "input", "meta", "link", "area", "base",
    "col", "embed", "source", "track", "wbr",
})

TAG_PATTERN = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9-]*)\b[^>]*>")
COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)
SCRIPTLET_PATTERN = re.compile(r"<\?.*?\?>", re.DOTALL)
RAW_TEXT_PATTERN = re.compile(r"(<(script|style)\b([^>]*)>)(.*?)(</\2\s*>)", re.DOTALL | re.IGNORECASE)
SCRIPT_TYPE_PATTERN = re.compile(r"""\btype\s*=\s*["']?([^"'\s>]+)""", re.IGNORECASE)

SUGGESTIONS = {
    "Bracket": "Check bracket pairs: (), [], {}",
    "String": "Add the missing closing quote: \", ', or `",
    "Syntax": "Fix the flagged construct (missing name or empty condition)",
    "Size": "Review large changes - consider smaller patches",
    "HTML": "Check that every opened tag is closed, in the right order",
    "CSS": "Check the braces inside <style> blocks",
    "Script": "Check the JavaScript inside <script> blocks",
    "JSON": "Fix the JSON syntax at the reported position",
}


def _blank(text: str) -> str:
    """Replace everything but newlines with spaces, keeping offsets intact."""
    return re.sub(r"[^\n]", " ", text)


def _position(text: str, offset: int) -> Tuple[int, int]:
    """1-based (line, column) of a character offset."""
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


def mask_html_templating(content: str) -> str:
    """Blank out HTML comments and HtmlService scriptlets (``<? ?>``, ``<?= ?>``, ``<?!= ?>``)."""
    content = COMMENT_PATTERN.sub(lambda m: _blank(m.group(0)), content)
    return SCRIPTLET_PATTERN.sub(lambda m: _blank(m.group(0)), content)


def mask_html_noise(content: str) -> str:
    """Blank out comments, scriptlets and the bodies of <script>/<style> blocks."""
    return RAW_TEXT_PATTERN.sub(
        lambda m: m.group(1) + _blank(m.group(4)) + m.group(5), mask_html_templating(content)
    )


def is_javascript_block(attributes: str) -> bool:
    """Check whether a <script> tag's attributes declare JavaScript (the default)."""
    match = SCRIPT_TYPE_PATTERN.search(attributes)
    if not match:
        return True
    script_type = match.group(1).lower()
    return "javascript" in script_type or script_type == "module"


def _classify_opener(char: str, token_before: str) -> str:
    if char == "[":
        return "array bracket"
    if char == "(":
        if token_before in CONTROL_KEYWORDS:
            return "control-flow parenthesis"
        if token_before == "function" or (
            token_before and (token_before[0].isalnum() or token_before[0] in "_$")
            and token_before not in JS_KEYWORDS
        ):
            return "function call parenthesis"
        return "grouping parenthesis"
    if token_before in OBJECT_PRECEDERS:
        return "object brace"
    return "block brace"


def check_bracket_balance(masked: str, line_offset: int = 0) -> List[ValidationIssue]:
    """
    Check (), [] and {} balance in already-masked source.

    Stops at the first problem; later findings are usually knock-on effects.
    """
    stack = []  # (char, kind, line, column)
    token_before = ""
    word: List[str] = []

    for line_index, line in enumerate(masked.split("\n")):
        if word:
            token_before = "".join(word)
            word = []
        line_number = line_index + 1 + line_offset

        for column_index, char in enumerate(line):
            if char.isalnum() or char in "_$":
                word.append(char)
                continue
            if word:
                token_before = "".join(word)
                word = []
            if char.isspace():
                continue

            column = column_index + 1
            if char in OPENERS:
                stack.append((char, _classify_opener(char, token_before), line_number, column))
            elif char in CLOSERS:
                if not stack:
                    return [ValidationIssue(
                        "Bracket",
                        f"Unexpected closing {CLOSER_NAMES[char]} '{char}' at line {line_number}, column {column}",
                        line_number, column,
                    )]
                open_char, kind, open_line, open_column = stack.pop()
                if OPENERS[open_char] != char:
                    return [ValidationIssue(
                        "Bracket",
                        f"Mismatched brackets: {kind} '{open_char}' opened at line {open_line}, "
                        f"column {open_column} is closed by '{char}' at line {line_number}, column {column}",
                        line_number, column,
                    )]
            token_before = char

    if stack:
        open_char, kind, open_line, open_column = stack[-1]
        return [ValidationIssue(
            "Bracket",
            f"Unclosed {kind} '{open_char}' opened at line {open_line}, column {open_column}",
            open_line, open_column,
        )]
    return []


def _starts_statement(masked: str, offset: int) -> bool:
    preceding = masked[:offset].rstrip()
    return not preceding or preceding.endswith(STATEMENT_ENDINGS)


def check_bad_patterns(text: str, masked: str, line_offset: int = 0) -> List[ValidationIssue]:
    """
    Flag known-bad constructs that occur in code (not in strings or comments).

    A nameless ``function (`` is only an error where a statement starts;
    after ``=``, ``(``, ``,`` or ``return`` it is a function expression.
    """
    issues = []
    for match in ANONYMOUS_DECLARATION.finditer(masked):
        if _starts_statement(masked, match.start()):
            line, column = _position(masked, match.start())
            issues.append(ValidationIssue(
                "Syntax", f"Function declaration missing name at line {line + line_offset}, column {column}",
                line + line_offset, column,
            ))
            break

    for pattern, message in BAD_PATTERNS:
        for match in pattern.finditer(text):
            start = match.start() + len(match.group(0)) - len(match.group(0).lstrip())
            if masked[start] == " ":
                continue
            line, column = _position(text, start)
            issues.append(ValidationIssue(
                "Syntax", f"{message} at line {line + line_offset}, column {column}",
                line + line_offset, column,
            ))
            break
    return issues


def check_javascript_structure(text: str, line_offset: int = 0) -> List[ValidationIssue]:
    """Bracket, string and pattern checks shared by .gs/.js files and <script> bodies."""
    masked, unterminated = mask_non_code(text)
    issues = check_bracket_balance(masked, line_offset)
    if unterminated:
        first = unterminated[0]
        line = first.line + 1 + line_offset
        issues.append(ValidationIssue(
            "String",
            f"Unterminated string {first.delimiter} starting at line {line}, column {first.column + 1}",
            line, first.column + 1,
        ))
    issues.extend(check_bad_patterns(text, masked, line_offset))
    return issues


class SyntaxValidator:
    """
    Per-language static checks.

    Args:
        max_change_percent: Largest allowed size change relative to the original
        max_growth_factor: Largest allowed new/original size ratio
        max_div_depth: ``<div>`` nesting depth above which a warning is raised
    """

    def __init__(
        self,
        max_change_percent: float = 50.0,
        max_growth_factor: float = 10.0,
        max_div_depth: int = 10
    ):
        self.max_change_percent = max_change_percent
        self.max_growth_factor = max_growth_factor
        self.max_div_depth = max_div_depth
        self._checkers: Dict[FileKind, Callable[[str, Optional[str]], ValidationResult]] = {
            FileKind.JS: self._check_javascript,
            FileKind.HTML: self._check_html,
            FileKind.CSS: self._check_css,
            FileKind.JSON: self._check_json,
            FileKind.OTHER: lambda content, original: ValidationResult.ok(),
        }
        missing = set(FileKind) - set(self._checkers)
        if missing:
            raise NotImplementedError(f"No validator for file kinds: {sorted(k.value for k in missing)}")

    @classmethod
    def from_config(cls, config) -> "SyntaxValidator":
        """Build from a PatchEngineConfig."""
        return cls(
            max_change_percent=config.max_change_percent,
            max_growth_factor=config.max_growth_factor,
            max_div_depth=config.max_div_depth,
        )

    def validate(
        self,
        content: str,
        file_name: str,
        original_content: Optional[str] = None
    ) -> ValidationResult:
        """
        Validate ``content`` according to the extension of ``file_name``.

        ``original_content`` enables the change-magnitude check for scripts.
        """
        return self.validate_kind(content, FileKind.from_file_name(file_name), original_content)

    def validate_kind(
        self,
        content: str,
        kind: FileKind,
        original_content: Optional[str] = None
    ) -> ValidationResult:
        result = self._checkers[kind](content, original_content)
        if not result.is_valid:
            logger.debug("Validation failed for %s content: %s", kind.value, result.error)
        return result

    @staticmethod
    def _result(issues: List[ValidationIssue], warnings: Optional[List[str]] = None) -> ValidationResult:
        warnings = tuple(warnings or ())
        if not issues:
            return ValidationResult.ok(warnings)

        suggestions = []
        for issue in issues:
            suggestion = SUGGESTIONS.get(issue.category, "Review code syntax")
            if suggestion not in suggestions:
                suggestions.append(suggestion)
        return ValidationResult(
            is_valid=False,
            error=" | ".join(f"{issue.category}: {issue.message}" for issue in issues),
            suggestions=tuple(suggestions),
            warnings=warnings,
            issues=tuple(issues),
        )

    def _check_javascript(self, content: str, original_content: Optional[str]) -> ValidationResult:
        issues = check_javascript_structure(content)
        if original_content:
            issues.extend(self._check_change_size(content, original_content))
        return self._result(issues)

    def _check_change_size(self, content: str, original_content: str) -> List[ValidationIssue]:
        original_size = len(original_content)
        new_size = len(content)

        if new_size > original_size * self.max_growth_factor:
            return [ValidationIssue(
                "Size",
                f"Excessive size increase: {new_size / original_size:.1f}x larger "
                f"({original_size} -> {new_size} bytes)",
            )]

        change_percent = abs(new_size - original_size) / original_size * 100
        if change_percent > self.max_change_percent:
            return [ValidationIssue(
                "Size",
                f"Suspicious size change: {change_percent:.1f}% ({original_size} -> {new_size} bytes)",
            )]
        return []

    def _check_css(self, content: str, original_content: Optional[str]) -> ValidationResult:
        masked, _ = mask_non_code(content, line_comments=False)
        return self._result(check_bracket_balance(masked))

    def _check_json(self, content: str, original_content: Optional[str]) -> ValidationResult:
        try:
            json.loads(content)
        except json.JSONDecodeError as e:
            return self._result([ValidationIssue(
                "JSON", f"{e.msg} at line {e.lineno}, column {e.colno}", e.lineno, e.colno,
            )])
        return ValidationResult.ok()

    def _check_html(self, content: str, original_content: Optional[str]) -> ValidationResult:
        warnings: List[str] = []
        issues = self._check_tag_balance(content, warnings)

        for match in RAW_TEXT_PATTERN.finditer(mask_html_templating(content)):
            tag = match.group(2).lower()
            body = match.group(4)
            line_offset = content.count("\n", 0, match.start(4))

            if tag == "style":
                masked, _ = mask_non_code(body, line_comments=False)
                for issue in check_bracket_balance(masked, line_offset):
                    issues.append(ValidationIssue("CSS", issue.message, issue.line, issue.column))
            elif is_javascript_block(match.group(3)):
                for issue in check_javascript_structure(body, line_offset):
                    issues.append(ValidationIssue(
                        "Script", f"{issue.category}: {issue.message}", issue.line, issue.column,
                    ))

        return self._result(issues, warnings)

    def _check_tag_balance(self, content: str, warnings: List[str]) -> List[ValidationIssue]:
        masked = mask_html_noise(content)

        stack = []  # (tag, line, column)
        div_depth = 0
        deepest = (0, 0)

        for match in TAG_PATTERN.finditer(masked):
            full_tag = match.group(0)
            tag_name = match.group(2).lower()
            if tag_name in SELF_CLOSING_TAGS or full_tag.endswith("/>"):
                continue

            line, column = _position(masked, match.start())
            if match.group(1):
                if not stack:
                    return [ValidationIssue(
                        "HTML", f"Unexpected closing tag </{tag_name}> at line {line}, column {column}",
                        line, column,
                    )]
                open_tag, open_line, open_column = stack.pop()
                if open_tag != tag_name:
                    return [ValidationIssue(
                        "HTML",
                        f"Mismatched tags: <{open_tag}> opened at line {open_line}, column {open_column} "
                        f"and </{tag_name}> at line {line}, column {column}",
                        line, column,
                    )]
                if open_tag == "div":
                    div_depth -= 1
            else:
                stack.append((tag_name, line, column))
                if tag_name == "div":
                    div_depth += 1
                    if div_depth > deepest[0]:
                        deepest = (div_depth, line)

        if deepest[0] > self.max_div_depth:
            warnings.append(
                f"Deep <div> nesting: depth {deepest[0]} at line {deepest[1]} "
                f"exceeds {self.max_div_depth}"
            )

        if stack:
            unclosed = ", ".join(f"<{tag}> (line {line})" for tag, line, _ in stack)
            first_tag, first_line, first_column = stack[0]
            return [ValidationIssue("HTML", f"Unclosed HTML tags: {unclosed}", first_line, first_column)]
        return []
