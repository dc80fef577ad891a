"""
Patch service: the I/O boundary around the patch engine.

Each operation fetches the project's file list, works on one file in memory
and, only when the result passed validation, resubmits the whole list with
that single entry replaced.

Two concurrent writes to the same file race (read-modify-write, last writer
wins); callers are expected to keep at most one patch per file in flight.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from src.core.script_store import AppsScriptFileStore, find_file, replace_file_content, require_file
from src.patching.anchor_generator import AnchorGenerator
from src.patching import diagnostics
from src.patching.models import FileKind, PatchRequest, ScriptFileType, SourceFile
from src.patching.orchestrator import PatchOrchestrator, PatchResult
from src.patching.validator import SyntaxValidator
from src.utils.audit import AuditLogger, get_audit_trail
from src.utils.exceptions import SyntaxValidationError, UserInputError

logger = logging.getLogger(__name__)


def file_statistics(source_file: SourceFile) -> Dict[str, Any]:
    lines = source_file.content.split("\n")
    return {
        "total_lines": len(lines),
        "non_empty_lines": sum(1 for line in lines if line.strip()),
        "characters": len(source_file.content),
        "type": source_file.type.value,
    }


def with_line_numbers(content: str) -> str:
    lines = content.split("\n")
    width = len(str(len(lines)))
    return "\n".join(f"{number:>{width}}: {line}" for number, line in enumerate(lines, start=1))


class ScriptPatchService:
    """
    Patch, anchor, read and write Apps Script project files.

    Args:
        store: Remote file store
        orchestrator: Patch orchestrator (strategy chain + validation gate)
        anchor_generator: Anchor generator
        validator: Syntax validator for writes that bypass the orchestrator
        audit: Audit logger for committed writes
    """

    def __init__(
        self,
        store: AppsScriptFileStore,
        orchestrator: PatchOrchestrator,
        anchor_generator: AnchorGenerator,
        validator: SyntaxValidator,
        audit: Optional[AuditLogger] = None
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.anchor_generator = anchor_generator
        self.validator = validator
        self.audit = audit or get_audit_trail()

    async def apply_patch(self, script_id: str, file_name: str, request: PatchRequest) -> PatchResult:
        """
        Apply ``request`` to one file and commit the result if it validated.

        The project is left untouched when every strategy fails or validation
        rejects the patched content.
        """
        files = await self.store.fetch_project_files(script_id)
        target = require_file(files, file_name)

        result = self.orchestrator.apply(target.content, request, target.editor_name)
        report = result.report

        if report.success and result.content != target.content:
            await self.store.replace_project_files(
                script_id, replace_file_content(files, target.editor_name, result.content)
            )
            self.audit.log_commit(
                "patch", script_id, target.editor_name, report.bytes_before, report.bytes_after,
                method=report.method_used.value, patch_id=report.patch_id,
            )
        elif not report.success:
            logger.warning("Patch %s on %s not committed", report.patch_id, target.editor_name)

        return result

    async def add_anchors(
        self,
        script_id: str,
        file_name: str,
        preview_only: bool = False,
        anchor_types: Optional[Iterable[str]] = None
    ) -> Dict[str, Any]:
        """Insert anchor markers into one file (or only report them with ``preview_only``)."""
        files = await self.store.fetch_project_files(script_id)
        target = require_file(files, file_name)
        kind = FileKind.from_file_name(target.editor_name)

        result = self.anchor_generator.generate(target.content, kind, preview=preview_only, kinds=anchor_types)
        response = {"file": target.editor_name, "written": False, **result.to_dict()}
        if preview_only or not result.anchors:
            return response

        # Anchors legitimately grow small files, so no size comparison here
        validation = self.validator.validate(result.content, target.editor_name)
        if not validation.is_valid:
            raise SyntaxValidationError(
                f"Anchored content for {target.editor_name} failed validation: {validation.error}",
                validation=validation,
                details=validation.to_dict(),
            )

        await self.store.replace_project_files(
            script_id, replace_file_content(files, target.editor_name, result.content)
        )
        self.audit.log_commit(
            "add_anchors", script_id, target.editor_name, len(target.content), len(result.content),
        )
        response["written"] = True
        return response

    async def get_file(self, script_id: str, file_name: str, include_line_numbers: bool = False) -> Dict[str, Any]:
        files = await self.store.fetch_project_files(script_id)
        target = require_file(files, file_name)
        content = with_line_numbers(target.content) if include_line_numbers else target.content
        return {
            "file": target.editor_name,
            "content": content,
            "statistics": file_statistics(target),
        }

    async def add_file(self, script_id: str, file_name: str, content: str, file_type: str = "server_js") -> Dict[str, Any]:
        """
        Add a new file to the project.

        Raises:
            UserInputError: If the file already exists or the type is unknown
            SyntaxValidationError: If the content does not pass validation
        """
        script_type = ScriptFileType.parse(file_type)
        suffix = f".{script_type.extension}"
        name = file_name[:-len(suffix)] if file_name.endswith(suffix) else file_name
        if not name:
            raise UserInputError("file_name must not be empty", field="file_name")

        files = await self.store.fetch_project_files(script_id)
        new_file = SourceFile(name=name, type=script_type, content=content)
        if find_file(files, name) is not None or find_file(files, new_file.editor_name) is not None:
            raise UserInputError(f"File '{new_file.editor_name}' already exists", field="file_name")

        self._require_valid(new_file.editor_name, content)
        await self.store.replace_project_files(script_id, files + [new_file])
        self.audit.log_commit("add_file", script_id, new_file.editor_name, 0, len(content))
        return {"file": new_file.editor_name, "status": "added", "statistics": file_statistics(new_file)}

    async def update_file(self, script_id: str, file_name: str, content: str) -> Dict[str, Any]:
        """Replace one file's content wholesale. Sibling files are resubmitted unchanged."""
        files = await self.store.fetch_project_files(script_id)
        target = require_file(files, file_name)
        self._require_valid(target.editor_name, content)

        await self.store.replace_project_files(script_id, replace_file_content(files, target.editor_name, content))
        self.audit.log_commit("update_file", script_id, target.editor_name, len(target.content), len(content))
        return {
            "file": target.editor_name,
            "status": "updated",
            "bytes_before": len(target.content),
            "bytes_after": len(content),
            "statistics": file_statistics(target.with_content(content)),
        }

    async def validate_file(self, script_id: str, file_name: str) -> Dict[str, Any]:
        files = await self.store.fetch_project_files(script_id)
        target = require_file(files, file_name)
        validation = self.validator.validate(target.content, target.editor_name)
        return {"file": target.editor_name, **validation.to_dict()}

    async def diagnose(self, script_id: str, error_message: str, suspected_file: Optional[str] = None) -> Dict[str, Any]:
        """
        Locate the code an Apps Script error message refers to.

        The file is ``suspected_file``, else the file named in the message, else
        the first script file mentioning one of the error's keywords.
        """
        files = await self.store.fetch_project_files(script_id)
        target = self._diagnosis_target(files, error_message, suspected_file)
        return diagnostics.diagnose(target.content, target.editor_name, error_message)

    def _diagnosis_target(self, files: List[SourceFile], error_message: str, suspected_file: Optional[str]) -> SourceFile:
        file_name = suspected_file or diagnostics.analyze_error(error_message).file_name
        if file_name:
            return require_file(files, file_name)

        keywords = diagnostics.extract_error_keywords(error_message)
        scripts = [f for f in files if f.type == ScriptFileType.SERVER_JS]
        for source_file in scripts:
            if any(keyword in source_file.content for keyword in keywords):
                return source_file
        raise UserInputError(
            "Could not determine which file the error refers to; pass suspected_file",
            field="suspected_file"
        )

    def _require_valid(self, file_name: str, content: str) -> None:
        validation = self.validator.validate(content, file_name)
        if not validation.is_valid:
            raise SyntaxValidationError(
                f"Content for {file_name} failed validation: {validation.error}",
                validation=validation,
                details=validation.to_dict(),
            )
