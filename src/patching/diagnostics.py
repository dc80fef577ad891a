"""
Script issue diagnosis.

Turns an Apps Script error message into a focused code window, so a caller can
answer with a small unified diff instead of rewriting the whole file.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

# (pattern, group holding the file name or None, group holding the line number)
ERROR_PATTERNS = [
    # TypeError: Cannot read properties of null at main.gs:123
    (re.compile(r"(\w+Error): .+ at ([\w.-]+\.gs):(\d+)"), 2, 3),
    # ReferenceError: someFunction is not defined (line 45, file "Code")
    (re.compile(r'(\w+Error): .+ \(line (\d+), file "([^"]+)"'), 3, 2),
    # ReferenceError: someFunction is not defined (line 45)
    (re.compile(r"(\w+Error): .+ \(line (\d+)"), None, 2),
    # Exception: Range not found (Code.gs:67)
    (re.compile(r"(Exception): .+ \(([\w.-]+\.gs):(\d+)\)"), 2, 3),
]

NOT_DEFINED_PATTERN = re.compile(r"(\w+) is not defined")
READING_PATTERN = re.compile(r"Cannot read propert(?:y|ies) of \w+ \(reading '(\w+)'\)")

SNIPPET_RADIUS = 15


@dataclass(frozen=True)
class ErrorAnalysis:
    error_type: str
    file_name: Optional[str]
    line_number: Optional[int]  # 0-based
    raw_message: str


@dataclass(frozen=True)
class CodeSnippet:
    """Window of a file around a problem line. Line numbers are 0-based and inclusive."""
    text: str
    problem_line: int
    start_line: int
    end_line: int
    total_lines: int

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def output_reduction(self) -> int:
        """Percentage of the file left out of the snippet."""
        if not self.total_lines:
            return 0
        return round((1 - self.line_count / self.total_lines) * 100)


def analyze_error(message: str) -> ErrorAnalysis:
    """Extract error type, file name and line number from an Apps Script error message."""
    for pattern, file_group, line_group in ERROR_PATTERNS:
        match = pattern.search(message)
        if match:
            return ErrorAnalysis(
                error_type=match.group(1),
                file_name=match.group(file_group) if file_group else None,
                line_number=int(match.group(line_group)) - 1,
                raw_message=message,
            )
    return ErrorAnalysis(error_type="Unknown", file_name=None, line_number=None, raw_message=message)


def extract_error_keywords(message: str) -> List[str]:
    keywords = []
    match = NOT_DEFINED_PATTERN.search(message)
    if match:
        keywords.append(match.group(1))
    match = READING_PATTERN.search(message)
    if match:
        keywords.append(match.group(1))
    return keywords


def find_problem_line(lines: Sequence[str], analysis: ErrorAnalysis) -> int:
    """
    Best guess of the 0-based line the error refers to.

    Uses the explicit line number when the message carries one (clamped to the
    file), else the first line mentioning an error keyword, else the middle line.
    """
    if analysis.line_number is not None and lines:
        return max(0, min(analysis.line_number, len(lines) - 1))

    keywords = extract_error_keywords(analysis.raw_message)
    for index, line in enumerate(lines):
        if any(keyword in line for keyword in keywords):
            return index
    return len(lines) // 2


def extract_snippet(content: str, problem_line: int, radius: int = SNIPPET_RADIUS) -> CodeSnippet:
    """Numbered window of ``radius`` lines either side of ``problem_line``."""
    lines = content.split("\n")
    start = max(0, problem_line - radius)
    end = min(len(lines) - 1, problem_line + radius)
    width = len(str(end + 1))
    text = "\n".join(
        f"{number + 1:>{width}}: {lines[number]}" for number in range(start, end + 1)
    )
    return CodeSnippet(text, problem_line, start, end, len(lines))


def diagnose(content: str, file_name: str, error_message: str) -> Dict[str, Any]:
    """Full diagnosis of ``error_message`` against one file's content."""
    analysis = analyze_error(error_message)
    lines = content.split("\n")
    problem_line = find_problem_line(lines, analysis)
    snippet = extract_snippet(content, problem_line)
    return {
        "file": file_name,
        "error_type": analysis.error_type,
        "error_message": error_message,
        "problem_line": problem_line + 1,
        "snippet_start_line": snippet.start_line + 1,
        "snippet_end_line": snippet.end_line + 1,
        "snippet": snippet.text,
        "total_lines": snippet.total_lines,
        "snippet_lines": snippet.line_count,
        "output_reduction_percent": snippet.output_reduction,
        "keywords": extract_error_keywords(error_message),
    }


def fix_instructions(file_name: str) -> str:
    """Instructions asking the caller to answer a diagnosis with a unified diff."""
    return (
        "Generate a unified diff that fixes the problem shown in the snippet, "
        "then apply it with apply_code_patch (or apply_enhanced_patch with unified_diff).\n"
        "Send only the diff, not the full file. Example:\n"
        f"--- {file_name}\n"
        f"+++ {file_name}\n"
        "@@ -123,3 +123,4 @@\n"
        " // existing code\n"
        "-// broken line\n"
        "+// fixed line\n"
        "+// added line\n"
        " // existing code"
    )
