"""
Patch orchestrator.

Runs the strategy chain (anchor -> fuzzy -> unified diff) against in-memory
content, then gates the result through the syntax validator. Performs no I/O:
committing the returned content is the caller's job.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from src.patching.anchor_matcher import apply_anchor_patch
from src.patching.fuzzy_matcher import FuzzyMatcher
from src.patching.models import (
    AnchorPatch,
    DiffMismatch,
    FuzzyPatch,
    PatchMethod,
    PatchReport,
    PatchRequest,
    StrategyOutcome,
    UnifiedDiffPatch,
    ValidationResult,
)
from src.patching.unified_diff import apply_unified_diff
from src.patching.validator import SyntaxValidator
from src.utils.exceptions import AnchorNotFoundError, UnifiedDiffError

logger = logging.getLogger(__name__)


class PatchState(Enum):
    IDLE = "idle"
    TRY_ANCHOR = "try_anchor"
    TRY_FUZZY = "try_fuzzy"
    TRY_UNIFIED_DIFF = "try_unified_diff"
    VALIDATE = "validate"
    COMMIT = "commit"
    ROLLED_BACK = "rolled_back"


STRATEGY_STATES = {
    AnchorPatch: (PatchState.TRY_ANCHOR, PatchMethod.ANCHOR),
    FuzzyPatch: (PatchState.TRY_FUZZY, PatchMethod.FUZZY),
    UnifiedDiffPatch: (PatchState.TRY_UNIFIED_DIFF, PatchMethod.UNIFIED_DIFF),
}


def new_patch_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"patch_{timestamp}_{uuid.uuid4().hex[:6]}"


@dataclass
class PatchAttempt:
    """Mutable record of one orchestration run; frozen into a PatchReport at the end."""
    file: str
    original: str
    patch_id: str = field(default_factory=new_patch_id)
    state: PatchState = PatchState.IDLE
    method: PatchMethod = PatchMethod.NONE
    content: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    anchors_found: int = 0
    replacements_applied: int = 0
    accuracy: Optional[float] = None
    mismatches: Tuple[DiffMismatch, ...] = ()
    validation: Optional[ValidationResult] = None

    def transition(self, state: PatchState) -> None:
        logger.debug("Patch %s on %s: %s -> %s", self.patch_id, self.file, self.state.value, state.value)
        self.state = state

    def to_report(self) -> PatchReport:
        committed = self.state == PatchState.COMMIT
        final_content = self.content if committed else self.original
        return PatchReport(
            file=self.file,
            patch_id=self.patch_id,
            method_used=self.method,
            bytes_before=len(self.original),
            bytes_after=len(final_content),
            syntax_ok=self.validation.is_valid if self.validation else False,
            success=committed,
            warnings=tuple(self.warnings),
            anchors_found=self.anchors_found,
            replacements_applied=self.replacements_applied,
            accuracy=self.accuracy,
            diff_mismatches=self.mismatches,
            validation=self.validation,
        )


@dataclass(frozen=True)
class PatchResult:
    """Content to commit (or the untouched original) plus the report."""
    content: str
    report: PatchReport

    def to_dict(self) -> dict:
        return {"report": self.report.to_dict(), "summary": self.report.format_summary()}


class PatchOrchestrator:
    """
    Apply a PatchRequest to file content with validation and rollback.

    Args:
        validator: Syntax validator used as the commit gate
        fuzzy_matcher: Fuzzy matcher owned by this orchestrator
    """

    def __init__(self, validator: SyntaxValidator, fuzzy_matcher: FuzzyMatcher):
        self.validator = validator
        self.fuzzy_matcher = fuzzy_matcher

    @classmethod
    def from_config(cls, config) -> "PatchOrchestrator":
        """Build the orchestrator and its components from a PatchEngineConfig."""
        return cls(SyntaxValidator.from_config(config), FuzzyMatcher.from_config(config))

    def apply(self, content: str, request: PatchRequest, file_name: str) -> PatchResult:
        """
        Run the strategy chain on ``content``.

        On any failure the returned content is ``content`` itself, unmodified.

        Raises:
            UserInputError: If the request names no usable strategy
        """
        strategies = request.strategies()
        attempt = PatchAttempt(file=file_name, original=content)

        for strategy in strategies:
            state, method = STRATEGY_STATES[type(strategy)]
            attempt.transition(state)
            outcome = self._run_strategy(strategy, content, attempt)
            if outcome is None:
                continue
            if outcome.ok:
                attempt.method = method
                attempt.content = outcome.content
                attempt.replacements_applied = outcome.applied
                break
            attempt.warnings.append(f"{method.value} failed: {outcome.error}")
            logger.warning("Patch %s: %s strategy failed: %s", attempt.patch_id, method.value, outcome.error)

        if attempt.content is None:
            attempt.warnings.append("All patch methods failed")
            attempt.transition(PatchState.ROLLED_BACK)
            return PatchResult(content, attempt.to_report())

        attempt.transition(PatchState.VALIDATE)
        attempt.validation = self.validator.validate(attempt.content, file_name, content)
        attempt.warnings.extend(attempt.validation.warnings)

        if not attempt.validation.is_valid:
            attempt.warnings.append(f"Syntax validation failed, changes rolled back: {attempt.validation.error}")
            logger.warning("Patch %s rolled back: %s", attempt.patch_id, attempt.validation.error)
            attempt.transition(PatchState.ROLLED_BACK)
            return PatchResult(content, attempt.to_report())

        attempt.transition(PatchState.COMMIT)
        return PatchResult(attempt.content, attempt.to_report())

    def _run_strategy(self, strategy, content: str, attempt: PatchAttempt) -> Optional[StrategyOutcome]:
        """Run one strategy, recording its side facts on ``attempt``."""
        if isinstance(strategy, AnchorPatch):
            outcome = apply_anchor_patch(content, strategy.anchor_start, strategy.anchor_end, strategy.replacement)
            if outcome.ok:
                attempt.anchors_found = 2
            elif isinstance(outcome.error, AnchorNotFoundError) and \
                    outcome.error.reason != AnchorNotFoundError.START_NOT_FOUND:
                attempt.anchors_found = 1
            return outcome

        if isinstance(strategy, FuzzyPatch):
            outcome = self.fuzzy_matcher.apply(content, strategy.find, strategy.replace, strategy.min_accuracy)
            attempt.accuracy = outcome.accuracy
            return outcome

        try:
            outcome = apply_unified_diff(content, strategy.diff_text)
        except UnifiedDiffError as e:
            attempt.warnings.append(f"unified_diff failed: {e}")
            logger.warning("Patch %s: unified diff rejected: %s", attempt.patch_id, e)
            return None
        attempt.mismatches = outcome.mismatches
        attempt.warnings.extend(outcome.warnings)
        attempt.warnings.extend(f"Diff mismatch at {m.describe()}" for m in outcome.mismatches)
        return outcome
