"""
Remote file store backed by the Apps Script API.

The API only supports whole-project reads and writes, so every change fetches
the full file list, swaps one entry and resubmits the list.
"""

import asyncio
import json
import logging
from typing import Callable, List, Optional

from googleapiclient.errors import HttpError

from src.patching.models import SourceFile
from src.utils.exceptions import RemoteStoreError, UserInputError

logger = logging.getLogger(__name__)


def find_file(files: List[SourceFile], file_name: str) -> Optional[SourceFile]:
    """Look a file up by its bare name (Code) or editor name (Code.gs)."""
    for source_file in files:
        if source_file.matches(file_name):
            return source_file
    return None


def require_file(files: List[SourceFile], file_name: str) -> SourceFile:
    source_file = find_file(files, file_name)
    if source_file is None:
        available = ", ".join(f.editor_name for f in files) or "none"
        raise UserInputError(
            f"File '{file_name}' not found in project (available: {available})",
            field="file_name"
        )
    return source_file


def replace_file_content(files: List[SourceFile], file_name: str, content: str) -> List[SourceFile]:
    """
    Return a new file list where only ``file_name`` carries ``content``.

    Raises:
        UserInputError: If no file matches ``file_name``
    """
    target = require_file(files, file_name)
    return [f.with_content(content) if f is target else f for f in files]


def _http_error_message(error: HttpError) -> str:
    try:
        return json.loads(error.content.decode()).get("error", {}).get("message", str(error))
    except (ValueError, AttributeError):
        return str(error)


class AppsScriptFileStore:
    """
    Read and replace the files of an Apps Script project.

    Args:
        service_factory: Zero-argument callable returning a built ``script`` v1 service
    """

    def __init__(self, service_factory: Callable[[], object]):
        self.service_factory = service_factory
        self._service = None

    def _get_service(self):
        """Get or create the Apps Script API service."""
        if self._service is None:
            self._service = self.service_factory()
        return self._service

    async def fetch_project_files(self, script_id: str) -> List[SourceFile]:
        """Fetch every file of the project."""
        def _fetch():
            return self._get_service().projects().getContent(scriptId=script_id).execute()

        try:
            response = await asyncio.to_thread(_fetch)
        except HttpError as e:
            raise RemoteStoreError(
                f"Failed to read project {script_id}: {_http_error_message(e)}",
                script_id=script_id,
                status=getattr(e.resp, "status", None),
            ) from e

        files = [SourceFile.from_api(data) for data in response.get("files", [])]
        logger.debug("Fetched %d files from project %s", len(files), script_id)
        return files

    async def replace_project_files(self, script_id: str, files: List[SourceFile]) -> None:
        """Replace the project's file list with ``files``."""
        body = {"files": [f.to_api() for f in files]}

        def _update():
            return self._get_service().projects().updateContent(scriptId=script_id, body=body).execute()

        try:
            await asyncio.to_thread(_update)
        except HttpError as e:
            raise RemoteStoreError(
                f"Failed to update project {script_id}: {_http_error_message(e)}",
                script_id=script_id,
                status=getattr(e.resp, "status", None),
            ) from e

        logger.info("Updated project %s (%d files)", script_id, len(files))
