"""
Fuzzy find/replace built on Google's diff-match-patch.

A patch is computed from ``find`` to ``replace`` and applied to the live
content with bitap matching, so it still lands when the file has drifted from
what the caller expected.
"""

import logging
import re
from typing import Optional

from diff_match_patch import diff_match_patch

from src.patching.models import StrategyOutcome
from src.utils.exceptions import FuzzyNoMatchError

logger = logging.getLogger(__name__)


class FuzzyMatcher:
    """
    Approximate patcher with an explicit acceptance threshold.

    Args:
        match_threshold: 0.0 demands a perfect match, 1.0 accepts anything
        delete_threshold: How closely deleted text must match the expected text
        match_distance: How far from the expected location a match may be found
        min_accuracy: Default percentage of sub-patches that must apply
    """

    def __init__(
        self,
        match_threshold: float = 0.5,
        delete_threshold: float = 0.5,
        match_distance: int = 1000,
        min_accuracy: float = 50.0
    ):
        self.dmp = diff_match_patch()
        self.dmp.Match_Threshold = match_threshold
        self.dmp.Patch_DeleteThreshold = delete_threshold
        self.dmp.Match_Distance = match_distance
        self.min_accuracy = min_accuracy

    @classmethod
    def from_config(cls, config) -> "FuzzyMatcher":
        """Build from a PatchEngineConfig."""
        return cls(
            match_threshold=config.fuzzy_match_threshold,
            delete_threshold=config.fuzzy_delete_threshold,
            match_distance=config.fuzzy_match_distance,
            min_accuracy=config.fuzzy_min_accuracy,
        )

    def apply(
        self,
        content: str,
        find: str,
        replace: str,
        min_accuracy: Optional[float] = None
    ) -> StrategyOutcome:
        """
        Replace the region of ``content`` that approximately matches ``find``.

        ``accuracy`` is the percentage of generated sub-patches that applied.
        The outcome fails when nothing applied or accuracy is below the threshold.
        """
        threshold = self.min_accuracy if min_accuracy is None else min_accuracy
        preview = find[:50]

        if find == replace:
            return StrategyOutcome.failure(FuzzyNoMatchError(
                "Fuzzy patch has nothing to change: find and replace are identical"
            ))

        diffs = self.dmp.diff_main(find, replace)
        self.dmp.diff_cleanupSemantic(diffs)
        patches = self.dmp.patch_make(find, diffs)

        # Patches are positioned relative to ``find``; move them to where it lives in the file
        hint = self._location_hint(content, find)
        for patch in patches:
            patch.start1 += hint
            patch.start2 += hint

        patched_content, results = self.dmp.patch_apply(patches, content)

        total = len(results)
        applied = sum(1 for result in results if result)
        accuracy = round(applied / total * 100, 1) if total else 0.0

        if applied == 0:
            return StrategyOutcome.failure(
                FuzzyNoMatchError(
                    f'Fuzzy patch failed - no matches found for "{preview}..."',
                    applied=applied, total=total, accuracy=accuracy
                ),
                applied=applied, total=total, accuracy=accuracy,
            )

        if accuracy < threshold:
            return StrategyOutcome.failure(
                FuzzyNoMatchError(
                    f"Fuzzy patch accuracy {accuracy:.0f}% is below the required {threshold:.0f}% "
                    f"({applied}/{total} sub-patches applied)",
                    applied=applied, total=total, accuracy=accuracy
                ),
                applied=applied, total=total, accuracy=accuracy,
            )

        logger.debug("Fuzzy patch applied %d/%d sub-patches", applied, total)
        return StrategyOutcome(
            content=patched_content,
            accuracy=accuracy,
            applied=applied,
            total=total,
        )

    @staticmethod
    def _location_hint(content: str, find: str) -> int:
        """Best guess of where ``find`` starts: exact hit, then whitespace-insensitive hit, else 0."""
        index = content.find(find)
        if index != -1:
            return index

        words = find.split()
        if not words:
            return 0
        pattern = r"\s+".join(re.escape(word) for word in words)
        match = re.search(pattern, content)
        return match.start() if match else 0
