"""
Anchor generator.

Finds function/class definitions and HTML block elements and brackets each one
with a BEGIN/END marker pair, so later edits can target the region by text
instead of by line number.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.patching.models import Anchor, AnchorKind, FileKind
from src.patching.scanner import find_block_end, mask_non_code
from src.patching.validator import RAW_TEXT_PATTERN, is_javascript_block, mask_html_noise, mask_html_templating
from src.utils.exceptions import UserInputError

logger = logging.getLogger(__name__)

FUNCTION_PATTERN = re.compile(r"(?:^|\s)function\s+([A-Za-z_$][\w$]*)\s*\(")
CLASS_PATTERN = re.compile(r"^\s*(?:export\s+)?class\s+([A-Za-z_$][\w$]*)")
BLOCK_ELEMENT_PATTERN = re.compile(r"<(div|form|input|button|select|textarea)\b([^>]*)>", re.IGNORECASE)
ID_PATTERN = re.compile(r"""\bid\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
CLASS_ATTR_PATTERN = re.compile(r"""\bclass\s*=\s*["']([^"']+)["']""", re.IGNORECASE)

ELEMENT_KINDS = {
    "div": AnchorKind.DIV,
    "form": AnchorKind.FORM,
    "input": AnchorKind.INPUT_ELEMENT,
    "button": AnchorKind.INPUT_ELEMENT,
    "select": AnchorKind.INPUT_ELEMENT,
    "textarea": AnchorKind.INPUT_ELEMENT,
}


def safe_name(name: str) -> str:
    """Reduce a name to word characters so it can live inside a marker."""
    return re.sub(r"\W", "_", name)


def js_markers(name: str) -> Tuple[str, str]:
    return f"// >>>BEGIN_{name}<<<", f"// >>>END_{name}<<<"


def html_markers(name: str) -> Tuple[str, str]:
    return f"<!-- >>>BEGIN_{name}_block<<< -->", f"<!-- >>>END_{name}_block<<< -->"


def _indent_of(line: str) -> str:
    return line[:len(line) - len(line.lstrip())]


@dataclass(frozen=True)
class AnchorGenerationResult:
    """Anchored content (unchanged in preview mode) and the anchors it holds."""
    content: str
    anchors: Tuple[Anchor, ...]
    skipped: Tuple[str, ...] = ()
    preview: bool = False

    @property
    def summary(self) -> str:
        verb = "Would add" if self.preview else "Added"
        text = f"{verb} {len(self.anchors)} anchor pair(s)"
        if self.skipped:
            text += f"; skipped {len(self.skipped)}: {', '.join(self.skipped)}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preview": self.preview,
            "summary": self.summary,
            "anchors": [anchor.to_dict() for anchor in self.anchors],
            "skipped": list(self.skipped),
        }


class AnchorGenerator:
    """Generate anchor markers for script and HTML files."""

    def generate(
        self,
        content: str,
        file_kind: FileKind,
        preview: bool = False,
        kinds: Optional[Iterable[Any]] = None
    ) -> AnchorGenerationResult:
        """
        Find anchorable regions in ``content`` and, unless ``preview`` is set,
        insert marker lines around them.

        Args:
            content: File content
            file_kind: FileKind.JS or FileKind.HTML
            preview: Only report the anchors, leave content untouched
            kinds: AnchorKind values (or their names) to generate; all by default

        Raises:
            UserInputError: For other file kinds or unknown anchor kinds
        """
        wanted = self._parse_kinds(kinds)
        lines = content.split("\n")

        if file_kind == FileKind.JS:
            candidates, skipped = self._find_code_regions(content, 0)
        elif file_kind == FileKind.HTML:
            candidates, skipped = self._find_html_regions(content)
        else:
            raise UserInputError(
                f"Anchors can only be generated for script and HTML files, not {file_kind.value}",
                field="file_name"
            )

        anchors: List[Tuple[Anchor, str]] = []
        seen = set()
        for anchor, indent in sorted(candidates, key=lambda item: (item[0].start_line, -item[0].end_line)):
            if anchor.kind not in wanted:
                continue
            if anchor.name in seen:
                skipped.append(f"{anchor.name} (duplicate name)")
                continue
            seen.add(anchor.name)
            if anchor.start_marker in content:
                skipped.append(f"{anchor.name} (already anchored)")
                continue
            anchors.append((anchor, indent))

        result_anchors = tuple(anchor for anchor, _ in anchors)
        if preview:
            return AnchorGenerationResult(content, result_anchors, tuple(skipped), preview=True)

        new_content = "\n".join(self._insert_markers(lines, anchors))
        logger.info("Inserted %d anchor pairs", len(anchors))
        return AnchorGenerationResult(new_content, result_anchors, tuple(skipped))

    @staticmethod
    def _parse_kinds(kinds: Optional[Iterable[Any]]) -> set:
        if not kinds:
            return set(AnchorKind)
        parsed = set()
        for kind in kinds:
            if isinstance(kind, AnchorKind):
                parsed.add(kind)
                continue
            try:
                parsed.add(AnchorKind(str(kind).lower()))
            except ValueError:
                valid = ", ".join(k.value for k in AnchorKind)
                raise UserInputError(f"Unknown anchor type '{kind}'. Use one of: {valid}", field="anchor_types")
        return parsed

    def _find_code_regions(self, text: str, line_offset: int, full_lines: Optional[List[str]] = None):
        """Function and class regions in JavaScript ``text`` starting at ``line_offset``."""
        candidates = []
        skipped: List[str] = []
        text_lines = text.split("\n")
        masked_lines = mask_non_code(text)[0].split("\n")
        full_lines = full_lines if full_lines is not None else text_lines

        for index, masked_line in enumerate(masked_lines):
            match = FUNCTION_PATTERN.search(masked_line)
            kind = AnchorKind.FUNCTION
            if not match:
                match = CLASS_PATTERN.match(masked_line)
                kind = AnchorKind.CLASS
            if not match:
                continue

            name = safe_name(match.group(1))
            end = find_block_end(text_lines, index)
            if end is None:
                skipped.append(f"{name} (no matching closing brace)")
                continue

            start_marker, end_marker = js_markers(name)
            line = index + line_offset
            anchor = Anchor(kind, name, start_marker, end_marker, line, end + line_offset)
            candidates.append((anchor, _indent_of(full_lines[line])))

        return candidates, skipped

    def _find_html_regions(self, content: str):
        lines = content.split("\n")
        masked = mask_html_noise(content)
        candidates = []
        skipped: List[str] = []

        for match in BLOCK_ELEMENT_PATTERN.finditer(masked):
            tag = match.group(1).lower()
            attributes = match.group(2)
            start_line = masked.count("\n", 0, match.start())

            id_match = ID_PATTERN.search(attributes)
            class_match = CLASS_ATTR_PATTERN.search(attributes)
            if id_match:
                name = id_match.group(1)
            elif class_match and class_match.group(1).split():
                name = class_match.group(1).split()[0]
            else:
                name = f"{tag}_{start_line + 1}"
            name = safe_name(name)

            if tag == "input" or match.group(0).endswith("/>"):
                end_line = masked.count("\n", 0, match.end())
            else:
                end_line = self._find_closing_tag(masked, tag, match.end())
                if end_line is None:
                    skipped.append(f"{name} (no closing </{tag}>)")
                    continue

            start_marker, end_marker = html_markers(name)
            anchor = Anchor(ELEMENT_KINDS[tag], name, start_marker, end_marker, start_line, end_line)
            candidates.append((anchor, _indent_of(lines[start_line])))

        for match in RAW_TEXT_PATTERN.finditer(mask_html_templating(content)):
            if match.group(2).lower() != "script" or not is_javascript_block(match.group(3)):
                continue
            line_offset = content.count("\n", 0, match.start(4))
            close_line = content.count("\n", 0, match.end(4))
            script_candidates, script_skipped = self._find_code_regions(match.group(4), line_offset, lines)
            skipped.extend(script_skipped)
            for anchor, indent in script_candidates:
                # marker lines would land outside the <script> element
                if anchor.start_line == line_offset or anchor.end_line == close_line:
                    skipped.append(f"{anchor.name} (shares a line with a <script> tag)")
                    continue
                candidates.append((anchor, indent))

        return candidates, skipped

    @staticmethod
    def _find_closing_tag(masked: str, tag: str, position: int) -> Optional[int]:
        """Line of the ``</tag>`` that closes an element opened just before ``position``."""
        depth = 1
        for match in re.finditer(rf"<(/?){tag}\b[^>]*>", masked[position:], re.IGNORECASE):
            if match.group(1):
                depth -= 1
                if depth == 0:
                    return masked.count("\n", 0, position + match.start())
            elif not match.group(0).endswith("/>"):
                depth += 1
        return None

    @staticmethod
    def _insert_markers(lines: List[str], anchors: List[Tuple[Anchor, str]]) -> List[str]:
        """
        Splice marker lines into ``lines``.

        BEGIN markers go before the start line, END markers after the end line.
        Insertion points are processed from the bottom of the file up, so every
        index still refers to the un-anchored content when it is used. At a
        shared index, END markers of closing regions come before BEGIN markers
        of opening ones, and nested regions stay properly nested.
        """
        # ``anchors`` is ordered outermost-first; markers inserted later at the
        # same index land above the earlier ones
        insertions = []  # (index, group, order, text)
        for seq, (anchor, indent) in enumerate(anchors):
            insertions.append((anchor.start_line, 0, (anchor.end_line, -seq), indent + anchor.start_marker))
            insertions.append((anchor.end_line + 1, 1, (anchor.start_line, seq), indent + anchor.end_marker))

        result = list(lines)
        for index, _, _, text in sorted(insertions, key=lambda item: (-item[0], item[1], item[2])):
            result.insert(index, text)
        return result
