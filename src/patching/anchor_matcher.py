"""
Anchor-based patching.

Replaces the text between two literal marker strings. Markers are addressed by
first occurrence; the end marker must appear after the start marker.
"""

import logging
import re

from src.patching.models import StrategyOutcome
from src.utils.exceptions import AnchorNotFoundError

logger = logging.getLogger(__name__)

_LEADING_WHITESPACE = re.compile(r"^[ \t]*")


def _line_start(content: str, index: int) -> int:
    return content.rfind("\n", 0, index) + 1


def reindent(replacement: str, indent: str) -> str:
    """Prefix every non-first, non-blank line of ``replacement`` with ``indent``."""
    lines = replacement.split("\n")
    return "\n".join(
        line if index == 0 or not line.strip() else indent + line
        for index, line in enumerate(lines)
    )


def apply_anchor_patch(
    content: str,
    anchor_start: str,
    anchor_end: str,
    replacement: str
) -> StrategyOutcome:
    """
    Splice ``replacement`` between ``anchor_start`` and ``anchor_end``.

    Both markers are kept. The replacement is placed on its own lines and
    indented like the line holding ``anchor_start``. On success ``span`` is the
    (start, end) character range of the original text that was replaced.
    """
    start_index = content.find(anchor_start)
    if start_index == -1:
        return StrategyOutcome.failure(AnchorNotFoundError(
            f'Start anchor not found: "{anchor_start}"',
            marker=anchor_start,
            reason=AnchorNotFoundError.START_NOT_FOUND,
        ))

    after_start = start_index + len(anchor_start)
    end_index = content.find(anchor_end, after_start)
    if end_index == -1:
        if anchor_end in content:
            return StrategyOutcome.failure(AnchorNotFoundError(
                f'End anchor "{anchor_end}" appears before start anchor "{anchor_start}"',
                marker=anchor_end,
                reason=AnchorNotFoundError.END_BEFORE_START,
            ))
        return StrategyOutcome.failure(AnchorNotFoundError(
            f'End anchor not found: "{anchor_end}"',
            marker=anchor_end,
            reason=AnchorNotFoundError.END_NOT_FOUND,
        ))

    start_line = content[_line_start(content, start_index):start_index]
    indent = _LEADING_WHITESPACE.match(start_line).group(0)

    # Keep the end marker's own indentation when it starts its line
    end_line_start = _line_start(content, end_index)
    cut = end_line_start if not content[end_line_start:end_index].strip() else end_index
    if cut <= after_start:
        cut = end_index

    before = content[:after_start]
    after = content[cut:]
    new_content = before + "\n" + reindent(replacement, indent) + "\n" + after

    logger.debug(
        "Anchor patch replaced %d characters between %r and %r",
        cut - after_start, anchor_start, anchor_end
    )
    return StrategyOutcome(content=new_content, span=(after_start, cut), applied=1, total=1)
