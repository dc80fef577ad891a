"""
Tests for the unified diff parser and applier.
"""

import pytest

from src.patching.unified_diff import apply_unified_diff, parse_unified_diff
from src.utils.exceptions import UnifiedDiffError

TEN_LINES = "\n".join(f"l{i}" for i in range(1, 11))

HUNK_A = "@@ -1,3 +1,3 @@\n l1\n-l2\n+L2\n l3"
HUNK_B = "@@ -7,3 +7,4 @@\n l7\n-l8\n+L8\n+L8b\n l9"


def test_apply_simple_replacement():
    diff = "--- a/Code.gs\n+++ b/Code.gs\n@@ -1,3 +1,3 @@\n a\n-b\n+B\n c\n"

    outcome = apply_unified_diff("a\nb\nc\nd", diff)

    assert outcome.ok
    assert outcome.content == "a\nB\nc\nd"
    assert outcome.mismatches == ()
    assert outcome.warnings == ()


def test_deletion_mismatch_is_recorded_and_still_applied():
    outcome = apply_unified_diff("a\nX\nc", "@@ -1,3 +1,3 @@\n a\n-b\n+B\n c")

    assert outcome.ok
    assert outcome.content == "a\nB\nc"
    assert len(outcome.mismatches) == 1
    mismatch = outcome.mismatches[0]
    assert (mismatch.line, mismatch.expected, mismatch.actual) == (2, "b", "X")


def test_deletion_comparison_ignores_surrounding_whitespace():
    outcome = apply_unified_diff("a\n   b  \nc", "@@ -1,3 +1,3 @@\n a\n-b\n+B\n c")

    assert outcome.mismatches == ()
    assert outcome.content == "a\nB\nc"


def test_hunk_order_does_not_matter():
    """Hunks listed in either order produce the same result."""
    forward = apply_unified_diff(TEN_LINES, f"{HUNK_A}\n{HUNK_B}")
    backward = apply_unified_diff(TEN_LINES, f"{HUNK_B}\n{HUNK_A}")

    expected = "\n".join(["l1", "L2", "l3", "l4", "l5", "l6", "l7", "L8", "L8b", "l9", "l10"])
    assert forward.content == expected
    assert backward.content == expected


def test_hunk_count_mismatch_is_a_warning():
    outcome = apply_unified_diff("a\nb\nc\nd", "@@ -1,5 +1,5 @@\n a\n-b\n+B\n c")

    assert outcome.ok
    assert outcome.content == "a\nB\nc\nd"
    assert outcome.warnings == ("Hunk @@ -1,5 +1,5 @@ body has 3 old / 3 new lines",)


def test_no_hunks_is_a_failure():
    outcome = apply_unified_diff("a\nb", "this is not a diff")

    assert not outcome.ok
    assert isinstance(outcome.error, UnifiedDiffError)
    assert "No hunks" in str(outcome.error)


def test_context_only_hunk_is_a_failure():
    outcome = apply_unified_diff("a\nb", "@@ -1,2 +1,2 @@\n a\n b")

    assert not outcome.ok
    assert "no changes" in str(outcome.error)


def test_malformed_hunk_header_raises():
    with pytest.raises(UnifiedDiffError) as exc_info:
        parse_unified_diff("@@ bogus @@\n-a")

    assert exc_info.value.line_number == 1


def test_deletion_beyond_end_of_file():
    outcome = apply_unified_diff("a\nb", "@@ -2,2 +2,1 @@\n-b\n-c\n+y")

    assert outcome.content == "a\ny"
    assert len(outcome.mismatches) == 1
    assert outcome.mismatches[0].line == 3
    assert outcome.mismatches[0].actual is None


def test_parse_tracks_line_cursors():
    hunks = parse_unified_diff(HUNK_B)

    assert len(hunks) == 1
    hunk = hunks[0]
    assert hunk.deletions == [(7, "l8")]
    assert hunk.insertions == [(7, "L8"), (8, "L8b")]
    assert (hunk.old_seen, hunk.new_seen) == (3, 4)
