"""
Unified diff applier, the last-resort patch strategy.

Hunks seed old/new line cursors from their ``@@ -a,b +c,d @@`` headers.
Deletions are applied from the bottom of the file up, then insertions from
the top down, so no edit shifts the index of another.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Tuple

from src.patching.models import DiffMismatch, StrategyOutcome
from src.utils.exceptions import UnifiedDiffError

logger = logging.getLogger(__name__)

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class Hunk:
    old_start: int
    old_length: int
    new_start: int
    new_length: int
    # (0-based line index in the old file, expected text)
    deletions: List[Tuple[int, str]] = field(default_factory=list)
    # (0-based line index in the new file, text)
    insertions: List[Tuple[int, str]] = field(default_factory=list)
    old_seen: int = 0
    new_seen: int = 0


def _cursor(start: int) -> int:
    return start - 1 if start > 0 else 0


def parse_unified_diff(diff_text: str) -> List[Hunk]:
    """
    Parse hunks out of ``diff_text``.

    Lines before the first hunk (``---``/``+++`` file headers, commentary) are
    ignored, as are ``\\ No newline at end of file`` markers.

    Raises:
        UnifiedDiffError: If a line starting with ``@@`` is not a valid hunk header
    """
    hunks: List[Hunk] = []
    current = None
    old_cursor = new_cursor = 0

    for number, line in enumerate(diff_text.split("\n"), start=1):
        if line.startswith("@@"):
            match = HUNK_HEADER.match(line)
            if not match:
                raise UnifiedDiffError(f"Malformed hunk header at diff line {number}: {line!r}", line_number=number)
            old_start, old_length, new_start, new_length = match.groups()
            current = Hunk(
                old_start=int(old_start),
                old_length=int(old_length) if old_length is not None else 1,
                new_start=int(new_start),
                new_length=int(new_length) if new_length is not None else 1,
            )
            hunks.append(current)
            old_cursor = _cursor(current.old_start)
            new_cursor = _cursor(current.new_start)
            continue

        if current is None or line.startswith("\\"):
            continue
        if line.startswith("---") and current.old_seen >= current.old_length:
            # next file header after a complete hunk
            continue
        if line.startswith("+++") and current.new_seen >= current.new_length:
            continue

        if line.startswith("-"):
            current.deletions.append((old_cursor, line[1:]))
            old_cursor += 1
            current.old_seen += 1
        elif line.startswith("+"):
            current.insertions.append((new_cursor, line[1:]))
            new_cursor += 1
            current.new_seen += 1
        elif line.startswith(" ") or line == "":
            if line == "" and current.old_seen >= current.old_length and current.new_seen >= current.new_length:
                # trailing blank line after the hunk body
                continue
            old_cursor += 1
            new_cursor += 1
            current.old_seen += 1
            current.new_seen += 1

    return hunks


def apply_unified_diff(content: str, diff_text: str) -> StrategyOutcome:
    """
    Apply ``diff_text`` to ``content`` on a best-effort basis.

    Deletion lines whose text does not match the live file (ignoring
    surrounding whitespace) are still removed and reported in ``mismatches``.

    Raises:
        UnifiedDiffError: If a hunk header is malformed
    """
    hunks = parse_unified_diff(diff_text)
    if not hunks:
        return StrategyOutcome.failure(UnifiedDiffError("No hunks found in unified diff"))

    warnings: List[str] = []
    deletions: List[Tuple[int, str]] = []
    insertions: List[Tuple[int, str]] = []
    for hunk in hunks:
        if hunk.old_seen != hunk.old_length or hunk.new_seen != hunk.new_length:
            warnings.append(
                f"Hunk @@ -{hunk.old_start},{hunk.old_length} +{hunk.new_start},{hunk.new_length} @@ "
                f"body has {hunk.old_seen} old / {hunk.new_seen} new lines"
            )
        deletions.extend(hunk.deletions)
        insertions.extend(hunk.insertions)

    if not deletions and not insertions:
        return StrategyOutcome.failure(UnifiedDiffError("Unified diff contains no changes"))

    lines = content.split("\n")
    mismatches: List[DiffMismatch] = []

    for index, expected in sorted(deletions, key=lambda item: item[0], reverse=True):
        if index >= len(lines):
            mismatches.append(DiffMismatch(line=index + 1, expected=expected, actual=None))
            logger.warning("Unified diff deletion beyond end of file at line %d", index + 1)
            continue
        actual = lines[index]
        if actual.strip() != expected.strip():
            mismatches.append(DiffMismatch(line=index + 1, expected=expected, actual=actual))
            logger.warning("Unified diff deletion mismatch at line %d: expected %r, found %r",
                           index + 1, expected, actual)
        del lines[index]

    for index, text in sorted(insertions, key=lambda item: item[0]):
        lines.insert(min(index, len(lines)), text)

    return StrategyOutcome(
        content="\n".join(lines),
        applied=len(deletions) + len(insertions),
        total=len(deletions) + len(insertions),
        mismatches=tuple(mismatches),
        warnings=tuple(warnings),
    )
