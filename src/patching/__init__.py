"""
Patch engine for Apps Script source files.
Anchor, fuzzy and unified-diff strategies behind a validating orchestrator.
"""

from src.patching.anchor_generator import AnchorGenerator
from src.patching.fuzzy_matcher import FuzzyMatcher
from src.patching.models import PatchReport, PatchRequest, ValidationResult
from src.patching.orchestrator import PatchOrchestrator, PatchResult
from src.patching.validator import SyntaxValidator

__all__ = [
    "AnchorGenerator",
    "FuzzyMatcher",
    "PatchOrchestrator",
    "PatchReport",
    "PatchRequest",
    "PatchResult",
    "SyntaxValidator",
    "ValidationResult",
]
