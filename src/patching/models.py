"""
Data model for the patch engine.

Source files, patch requests, reports, anchors and validation results. Every
transformation produces new values; nothing here is mutated in place once built.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from src.utils.exceptions import UserInputError


class FileKind(Enum):
    """Language family used to pick validator checks."""
    JS = "js"
    HTML = "html"
    CSS = "css"
    JSON = "json"
    OTHER = "other"

    @classmethod
    def from_file_name(cls, file_name: str) -> "FileKind":
        """Resolve the kind from a file name's extension."""
        if "." not in file_name:
            return cls.OTHER
        extension = file_name.rsplit(".", 1)[1].lower()
        return _EXTENSION_KINDS.get(extension, cls.OTHER)


_EXTENSION_KINDS = {
    "gs": FileKind.JS,
    "js": FileKind.JS,
    "html": FileKind.HTML,
    "htm": FileKind.HTML,
    "css": FileKind.CSS,
    "json": FileKind.JSON,
}


class ScriptFileType(Enum):
    """File types accepted by the Apps Script API."""
    SERVER_JS = "SERVER_JS"
    HTML = "HTML"
    JSON = "JSON"

    @property
    def extension(self) -> str:
        """Extension the Apps Script editor shows for this type."""
        return {
            ScriptFileType.SERVER_JS: "gs",
            ScriptFileType.HTML: "html",
            ScriptFileType.JSON: "json",
        }[self]

    @classmethod
    def parse(cls, value: str) -> "ScriptFileType":
        """Parse user input such as 'server_js', 'gs', 'HTML' or 'json'."""
        normalized = (value or "").strip().upper()
        aliases = {"GS": "SERVER_JS", "JS": "SERVER_JS", "SERVER-JS": "SERVER_JS"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise UserInputError(
                f"Unknown file type '{value}'. Use one of: server_js, html, json",
                field="file_type"
            )


@dataclass(frozen=True)
class SourceFile:
    """One file of an Apps Script project."""
    name: str
    type: ScriptFileType
    content: str
    # Other API fields (functionSet, lastModifyUser, ...) kept for resubmission
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def editor_name(self) -> str:
        """Name with the extension shown in the Apps Script editor (Code.gs)."""
        return f"{self.name}.{self.type.extension}"

    def matches(self, file_name: str) -> bool:
        """Check whether a caller-supplied name refers to this file."""
        return file_name in (self.name, self.editor_name)

    def with_content(self, content: str) -> "SourceFile":
        return replace(self, content=content)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SourceFile":
        extra = {k: v for k, v in data.items() if k not in ("name", "type", "source")}
        return cls(
            name=data["name"],
            type=ScriptFileType(data.get("type", "SERVER_JS")),
            content=data.get("source", ""),
            extra=extra,
        )

    def to_api(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update({"name": self.name, "type": self.type.value, "source": self.content})
        return payload


class PatchMethod(Enum):
    """Strategy that produced the patched content."""
    ANCHOR = "anchor"
    FUZZY = "fuzzy"
    UNIFIED_DIFF = "unified_diff"
    NONE = "none"


@dataclass(frozen=True)
class AnchorPatch:
    anchor_start: str
    anchor_end: str
    replacement: str


@dataclass(frozen=True)
class FuzzyPatch:
    find: str
    replace: str
    min_accuracy: Optional[float] = None


@dataclass(frozen=True)
class UnifiedDiffPatch:
    diff_text: str


PatchStrategy = Union[AnchorPatch, FuzzyPatch, UnifiedDiffPatch]


@dataclass(frozen=True)
class PatchRequest:
    """
    Caller-supplied patch request.

    Any combination of anchors, find/replace and unified diff may be given;
    they are tried in that order until one succeeds.
    """
    replace: Optional[str] = None
    anchor_start: Optional[str] = None
    anchor_end: Optional[str] = None
    find: Optional[str] = None
    unified_diff: Optional[str] = None
    min_accuracy: Optional[float] = None

    @classmethod
    def from_arguments(cls, arguments: Dict[str, Any]) -> "PatchRequest":
        """Build a request from tool arguments (camelCase or snake_case keys)."""
        if not isinstance(arguments, dict):
            raise UserInputError("patch_request must be an object", field="patch_request")

        def pick(*keys):
            for key in keys:
                value = arguments.get(key)
                if value is not None:
                    return value
            return None

        min_accuracy = pick("min_accuracy", "minAccuracy")
        if min_accuracy is not None:
            try:
                min_accuracy = float(min_accuracy)
            except (TypeError, ValueError):
                raise UserInputError("min_accuracy must be a number", field="min_accuracy")

        return cls(
            replace=pick("replace"),
            anchor_start=pick("anchorStart", "anchor_start") or None,
            anchor_end=pick("anchorEnd", "anchor_end") or None,
            find=pick("find") or None,
            unified_diff=pick("unified_diff", "unifiedDiff") or None,
            min_accuracy=min_accuracy,
        )

    def strategies(self) -> List[PatchStrategy]:
        """
        Return the strategies this request enables, in priority order.

        Raises:
            UserInputError: If no strategy is specified or a required field is missing
        """
        if bool(self.anchor_start) != bool(self.anchor_end):
            missing = "anchorEnd" if self.anchor_start else "anchorStart"
            raise UserInputError(f"Both anchors are required; {missing} is missing", field=missing)

        has_anchors = bool(self.anchor_start and self.anchor_end)
        if not (has_anchors or self.find or self.unified_diff):
            raise UserInputError(
                "No patch strategy specified: provide anchorStart+anchorEnd, find, or unified_diff",
                field="patch_request"
            )
        if (has_anchors or self.find) and self.replace is None:
            raise UserInputError("replace is required for anchor and fuzzy patches", field="replace")

        strategies: List[PatchStrategy] = []
        if has_anchors:
            strategies.append(AnchorPatch(self.anchor_start, self.anchor_end, self.replace))
        if self.find:
            strategies.append(FuzzyPatch(self.find, self.replace, self.min_accuracy))
        if self.unified_diff:
            strategies.append(UnifiedDiffPatch(self.unified_diff))
        return strategies


@dataclass(frozen=True)
class ValidationIssue:
    """Single finding of the syntax validator. Line and column are 1-based."""
    category: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one syntax check."""
    is_valid: bool
    error: Optional[str] = None
    suggestions: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    issues: Tuple[ValidationIssue, ...] = ()

    @classmethod
    def ok(cls, warnings: Tuple[str, ...] = ()) -> "ValidationResult":
        return cls(is_valid=True, warnings=tuple(warnings))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "error": self.error,
            "suggestions": list(self.suggestions),
            "warnings": list(self.warnings),
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class DiffMismatch:
    """Deletion line whose expected text differed from the live file."""
    line: int  # 1-based line in the pre-patch content
    expected: str
    actual: Optional[str]

    def describe(self) -> str:
        if self.actual is None:
            return f"line {self.line}: expected {self.expected!r} but the file has no such line"
        return f"line {self.line}: expected {self.expected!r}, found {self.actual!r}"


@dataclass(frozen=True)
class StrategyOutcome:
    """
    Result of one strategy attempt.

    Expected failures (missing anchor, no fuzzy match) are carried in ``error``
    instead of being raised.
    """
    content: Optional[str] = None
    error: Optional[Exception] = None
    span: Optional[Tuple[int, int]] = None
    accuracy: Optional[float] = None
    applied: int = 0
    total: int = 0
    mismatches: Tuple[DiffMismatch, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None

    @classmethod
    def failure(cls, error: Exception, **kwargs) -> "StrategyOutcome":
        return cls(error=error, **kwargs)


@dataclass(frozen=True)
class PatchReport:
    """Structured summary of one patch attempt."""
    file: str
    patch_id: str
    method_used: PatchMethod
    bytes_before: int
    bytes_after: int
    syntax_ok: bool
    success: bool
    warnings: Tuple[str, ...] = ()
    anchors_found: int = 0
    replacements_applied: int = 0
    accuracy: Optional[float] = None
    diff_mismatches: Tuple[DiffMismatch, ...] = ()
    validation: Optional[ValidationResult] = None

    @property
    def byte_delta(self) -> int:
        return self.bytes_after - self.bytes_before

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "patch_id": self.patch_id,
            "method_used": self.method_used.value,
            "anchors_found": self.anchors_found,
            "replacements_applied": self.replacements_applied,
            "bytes_before": self.bytes_before,
            "bytes_after": self.bytes_after,
            "byte_delta": self.byte_delta,
            "accuracy": self.accuracy,
            "syntax_ok": self.syntax_ok,
            "success": self.success,
            "warnings": list(self.warnings),
            "diff_mismatches": [m.describe() for m in self.diff_mismatches],
            "validation": self.validation.to_dict() if self.validation else None,
        }

    def format_summary(self) -> str:
        """Render the report as a short human/AI-readable summary."""
        lines = [
            f"Patch report for {self.file} ({self.patch_id})",
            f"Method used: {self.method_used.value}",
            f"Size change: {self.bytes_before} -> {self.bytes_after} bytes ({self.byte_delta:+d})",
            f"Syntax check: {'passed' if self.syntax_ok else 'failed'}",
            f"Success: {'yes' if self.success else 'no'}",
        ]
        if self.accuracy is not None:
            lines.append(f"Fuzzy accuracy: {self.accuracy:.0f}%")
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"- {warning}" for warning in self.warnings)
        return "\n".join(lines)


class AnchorKind(Enum):
    """Kind of region an anchor pair brackets."""
    FUNCTION = "function"
    CLASS = "class"
    DIV = "div"
    FORM = "form"
    INPUT_ELEMENT = "input_element"


@dataclass(frozen=True)
class Anchor:
    """Anchor pair for one region. Lines are 0-based indices into the un-anchored content."""
    kind: AnchorKind
    name: str
    start_marker: str
    end_marker: str
    start_line: int
    end_line: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "anchorStart": self.start_marker,
            "anchorEnd": self.end_marker,
            "start_line": self.start_line + 1,
            "end_line": self.end_line + 1,
        }
