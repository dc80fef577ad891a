"""
Pytest configuration and fixtures for testing.
"""

import pytest
from unittest.mock import Mock, AsyncMock

from src.core.patch_service import ScriptPatchService
from src.core.script_store import AppsScriptFileStore
from src.patching.anchor_generator import AnchorGenerator
from src.patching.fuzzy_matcher import FuzzyMatcher
from src.patching.models import ScriptFileType, SourceFile
from src.patching.orchestrator import PatchOrchestrator
from src.patching.validator import SyntaxValidator
from src.utils.audit import AuditLogger


CODE_GS = """// >>>BEGIN_greet<<<
function greet(name) {
  return 'Hello, ' + name;
}
// >>>END_greet<<<

function fetchData() {
  var sheet = SpreadsheetApp.getActiveSheet();
  return sheet.getRange('A1').getValue();
}"""

INDEX_HTML = """<!DOCTYPE html>
<html>
  <body>
    <div id="app">
      <button class="btn primary">Go</button>
    </div>
  </body>
</html>"""

MANIFEST_JSON = '{\n  "timeZone": "UTC",\n  "runtimeVersion": "V8"\n}'


@pytest.fixture
def validator():
    """Create a syntax validator with default thresholds."""
    return SyntaxValidator()


@pytest.fixture
def fuzzy_matcher():
    """Create a fuzzy matcher with default thresholds."""
    return FuzzyMatcher()


@pytest.fixture
def orchestrator(validator, fuzzy_matcher):
    """Create a patch orchestrator."""
    return PatchOrchestrator(validator, fuzzy_matcher)


@pytest.fixture
def anchor_generator():
    return AnchorGenerator()


@pytest.fixture
def project_files():
    """Files of a small Apps Script project."""
    return [
        SourceFile(
            name="Code",
            type=ScriptFileType.SERVER_JS,
            content=CODE_GS,
            extra={"functionSet": {"values": [{"name": "greet"}, {"name": "fetchData"}]}},
        ),
        SourceFile(name="Index", type=ScriptFileType.HTML, content=INDEX_HTML),
        SourceFile(name="appsscript", type=ScriptFileType.JSON, content=MANIFEST_JSON),
    ]


@pytest.fixture
def mock_store(project_files):
    """Create a mock remote file store holding ``project_files``."""
    store = Mock(spec=AppsScriptFileStore)
    store.fetch_project_files = AsyncMock(return_value=project_files)
    store.replace_project_files = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def patch_service(mock_store, orchestrator, anchor_generator, validator, mock_audit):
    """Create a patch service backed by the mock store."""
    return ScriptPatchService(
        store=mock_store,
        orchestrator=orchestrator,
        anchor_generator=anchor_generator,
        validator=validator,
        audit=mock_audit,
    )
