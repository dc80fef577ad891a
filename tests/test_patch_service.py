"""
Tests for the patch service (fetch, patch in memory, validate, resubmit).
"""

import pytest

from src.patching.models import PatchRequest, ScriptFileType
from src.utils.exceptions import SyntaxValidationError, UserInputError

SCRIPT_ID = "script-1"

GREET_REQUEST = PatchRequest(
    anchor_start="// >>>BEGIN_greet<<<",
    anchor_end="// >>>END_greet<<<",
    replace="function greet(name) {\n  return 'Hi, ' + name;\n}",
)


def submitted_files(mock_store):
    """Files passed to the single replace_project_files call."""
    mock_store.replace_project_files.assert_awaited_once()
    script_id, files = mock_store.replace_project_files.await_args.args
    assert script_id == SCRIPT_ID
    return files


class TestApplyPatch:

    @pytest.mark.asyncio
    async def test_success_writes_only_the_target_file(self, patch_service, mock_store, mock_audit, project_files):
        result = await patch_service.apply_patch(SCRIPT_ID, "Code", GREET_REQUEST)

        assert result.report.success
        files = submitted_files(mock_store)
        assert len(files) == 3
        assert "return 'Hi, ' + name;" in files[0].content
        assert files[0].extra == project_files[0].extra
        assert files[1] is project_files[1]
        assert files[2] is project_files[2]

        mock_audit.log_commit.assert_called_once()
        args = mock_audit.log_commit.call_args.args
        assert args[:3] == ("patch", SCRIPT_ID, "Code.gs")
        assert mock_audit.log_commit.call_args.kwargs["method"] == "anchor"

    @pytest.mark.asyncio
    async def test_failed_patch_is_not_written(self, patch_service, mock_store, mock_audit):
        request = PatchRequest(anchor_start="// >>>BEGIN_nope<<<", anchor_end="// >>>END_nope<<<", replace="x")

        result = await patch_service.apply_patch(SCRIPT_ID, "Code.gs", request)

        assert not result.report.success
        mock_store.replace_project_files.assert_not_awaited()
        mock_audit.log_commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_rolled_back_patch_is_not_written(self, patch_service, mock_store, project_files):
        request = PatchRequest(
            anchor_start="// >>>BEGIN_greet<<<",
            anchor_end="// >>>END_greet<<<",
            replace="function greet(name) {\n  return 'Hi';",
        )

        result = await patch_service.apply_patch(SCRIPT_ID, "Code", request)

        assert not result.report.syntax_ok
        assert result.content == project_files[0].content
        mock_store.replace_project_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_file(self, patch_service):
        with pytest.raises(UserInputError) as exc_info:
            await patch_service.apply_patch(SCRIPT_ID, "Missing.gs", GREET_REQUEST)

        assert "Code.gs, Index.html, appsscript.json" in str(exc_info.value)
        assert exc_info.value.field == "file_name"


class TestAnchors:

    @pytest.mark.asyncio
    async def test_preview_does_not_write(self, patch_service, mock_store):
        response = await patch_service.add_anchors(SCRIPT_ID, "Code", preview_only=True)

        assert response["written"] is False
        assert response["preview"] is True
        assert [anchor["name"] for anchor in response["anchors"]] == ["fetchData"]
        mock_store.replace_project_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_anchors_are_written(self, patch_service, mock_store, mock_audit):
        response = await patch_service.add_anchors(SCRIPT_ID, "Code.gs")

        assert response["written"] is True
        assert response["file"] == "Code.gs"
        files = submitted_files(mock_store)
        assert "// >>>BEGIN_fetchData<<<" in files[0].content
        assert mock_audit.log_commit.call_args.args[0] == "add_anchors"

    @pytest.mark.asyncio
    async def test_html_anchors(self, patch_service, mock_store):
        response = await patch_service.add_anchors(SCRIPT_ID, "Index", preview_only=True)

        assert [anchor["name"] for anchor in response["anchors"]] == ["app", "btn"]

    @pytest.mark.asyncio
    async def test_nothing_to_anchor_does_not_write(self, patch_service, mock_store):
        response = await patch_service.add_anchors(SCRIPT_ID, "Code", anchor_types=["class"])

        assert response["anchors"] == []
        assert response["written"] is False
        mock_store.replace_project_files.assert_not_awaited()


class TestFiles:

    @pytest.mark.asyncio
    async def test_get_file_with_line_numbers(self, patch_service):
        response = await patch_service.get_file(SCRIPT_ID, "Code.gs", include_line_numbers=True)

        assert response["file"] == "Code.gs"
        assert response["content"].split("\n")[0] == " 1: // >>>BEGIN_greet<<<"
        assert response["statistics"]["total_lines"] == 10
        assert response["statistics"]["non_empty_lines"] == 9
        assert response["statistics"]["type"] == "SERVER_JS"

    @pytest.mark.asyncio
    async def test_add_file(self, patch_service, mock_store, mock_audit):
        response = await patch_service.add_file(SCRIPT_ID, "Utils.gs", "function util() {\n}")

        assert response["file"] == "Utils.gs"
        assert response["status"] == "added"
        files = submitted_files(mock_store)
        assert len(files) == 4
        assert files[-1].name == "Utils"
        assert files[-1].type == ScriptFileType.SERVER_JS
        assert mock_audit.log_commit.call_args.args[:3] == ("add_file", SCRIPT_ID, "Utils.gs")

    @pytest.mark.asyncio
    async def test_add_html_file(self, patch_service, mock_store):
        response = await patch_service.add_file(SCRIPT_ID, "Page", "<div></div>", file_type="html")

        assert response["file"] == "Page.html"
        assert submitted_files(mock_store)[-1].type == ScriptFileType.HTML

    @pytest.mark.asyncio
    async def test_add_existing_file_is_rejected(self, patch_service, mock_store):
        with pytest.raises(UserInputError):
            await patch_service.add_file(SCRIPT_ID, "Code", "var a = 1;")

        mock_store.replace_project_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_invalid_file_is_rejected(self, patch_service, mock_store):
        with pytest.raises(SyntaxValidationError):
            await patch_service.add_file(SCRIPT_ID, "Broken", "function broken() {")

        mock_store.replace_project_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_file(self, patch_service, mock_store):
        response = await patch_service.update_file(SCRIPT_ID, "Index", "<p>Replaced</p>")

        assert response["status"] == "updated"
        assert response["bytes_after"] == len("<p>Replaced</p>")
        files = submitted_files(mock_store)
        assert files[1].content == "<p>Replaced</p>"
        assert files[0].content.startswith("// >>>BEGIN_greet<<<")

    @pytest.mark.asyncio
    async def test_update_with_invalid_content_is_rejected(self, patch_service, mock_store):
        with pytest.raises(SyntaxValidationError) as exc_info:
            await patch_service.update_file(SCRIPT_ID, "Code", "function x( {")

        assert exc_info.value.details["is_valid"] is False
        mock_store.replace_project_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_validate_file(self, patch_service):
        response = await patch_service.validate_file(SCRIPT_ID, "appsscript")

        assert response["file"] == "appsscript.json"
        assert response["is_valid"] is True


class TestDiagnose:

    @pytest.mark.asyncio
    async def test_file_found_by_keyword(self, patch_service):
        diagnosis = await patch_service.diagnose(
            SCRIPT_ID, "TypeError: Cannot read properties of null (reading 'getRange')"
        )

        assert diagnosis["file"] == "Code.gs"
        assert diagnosis["problem_line"] == 9
        assert diagnosis["keywords"] == ["getRange"]

    @pytest.mark.asyncio
    async def test_file_from_message(self, patch_service):
        diagnosis = await patch_service.diagnose(SCRIPT_ID, "Exception: Range not found (Code.gs:3)")

        assert diagnosis["file"] == "Code.gs"
        assert diagnosis["problem_line"] == 3

    @pytest.mark.asyncio
    async def test_suspected_file_wins(self, patch_service):
        diagnosis = await patch_service.diagnose(SCRIPT_ID, "Exception: boom", suspected_file="Index")

        assert diagnosis["file"] == "Index.html"

    @pytest.mark.asyncio
    async def test_undeterminable_file(self, patch_service):
        with pytest.raises(UserInputError) as exc_info:
            await patch_service.diagnose(SCRIPT_ID, "Exception: boom")

        assert exc_info.value.field == "suspected_file"
