"""
Tests for the Apps Script API file store.
"""

import pytest
from unittest.mock import Mock

from googleapiclient.errors import HttpError

from src.core.script_store import AppsScriptFileStore, find_file, replace_file_content
from src.patching.models import ScriptFileType, SourceFile
from src.utils.exceptions import RemoteStoreError, UserInputError

API_FILES = [
    {
        "name": "Code",
        "type": "SERVER_JS",
        "source": "function a() {}",
        "functionSet": {"values": [{"name": "a"}]},
    },
    {"name": "appsscript", "type": "JSON", "source": "{}"},
]


@pytest.fixture
def mock_service():
    """Create a mock ``script`` v1 service."""
    return Mock()


@pytest.fixture
def store(mock_service):
    return AppsScriptFileStore(lambda: mock_service)


def http_error(status, reason, message):
    resp = Mock(status=status, reason=reason)
    return HttpError(resp, f'{{"error": {{"code": {status}, "message": "{message}"}}}}'.encode())


@pytest.mark.asyncio
async def test_fetch_project_files(store, mock_service):
    mock_service.projects.return_value.getContent.return_value.execute.return_value = {"files": API_FILES}

    files = await store.fetch_project_files("script-1")

    mock_service.projects.return_value.getContent.assert_called_once_with(scriptId="script-1")
    assert [f.editor_name for f in files] == ["Code.gs", "appsscript.json"]
    assert files[0].content == "function a() {}"
    assert files[0].extra == {"functionSet": {"values": [{"name": "a"}]}}


@pytest.mark.asyncio
async def test_fetch_error_is_wrapped(store, mock_service):
    mock_service.projects.return_value.getContent.return_value.execute.side_effect = http_error(
        404, "Not Found", "Requested entity was not found."
    )

    with pytest.raises(RemoteStoreError) as exc_info:
        await store.fetch_project_files("missing")

    assert exc_info.value.status == 404
    assert exc_info.value.script_id == "missing"
    assert "Requested entity was not found." in str(exc_info.value)


@pytest.mark.asyncio
async def test_replace_sends_every_file(store, mock_service):
    files = [SourceFile.from_api(data) for data in API_FILES]

    await store.replace_project_files("script-1", files)

    mock_service.projects.return_value.updateContent.assert_called_once_with(
        scriptId="script-1",
        body={"files": [
            {
                "name": "Code",
                "type": "SERVER_JS",
                "source": "function a() {}",
                "functionSet": {"values": [{"name": "a"}]},
            },
            {"name": "appsscript", "type": "JSON", "source": "{}"},
        ]},
    )


@pytest.mark.asyncio
async def test_replace_error_is_wrapped(store, mock_service):
    mock_service.projects.return_value.updateContent.return_value.execute.side_effect = http_error(
        403, "Forbidden", "The caller does not have permission"
    )

    with pytest.raises(RemoteStoreError) as exc_info:
        await store.replace_project_files("script-1", [])

    assert exc_info.value.status == 403


def test_service_is_built_once():
    factory = Mock(return_value=Mock())
    store = AppsScriptFileStore(factory)

    assert store._get_service() is store._get_service()
    factory.assert_called_once()


def test_find_file_by_either_name():
    files = [SourceFile(name="Code", type=ScriptFileType.SERVER_JS, content="")]

    assert find_file(files, "Code") is files[0]
    assert find_file(files, "Code.gs") is files[0]
    assert find_file(files, "Code.html") is None


def test_replace_file_content_keeps_siblings():
    code = SourceFile(name="Code", type=ScriptFileType.SERVER_JS, content="old")
    page = SourceFile(name="Code", type=ScriptFileType.HTML, content="<p></p>")

    updated = replace_file_content([code, page], "Code.html", "<div></div>")

    assert updated[0] is code
    assert updated[1].content == "<div></div>"
    assert page.content == "<p></p>"


def test_replace_unknown_file():
    with pytest.raises(UserInputError):
        replace_file_content([], "Code", "x")
