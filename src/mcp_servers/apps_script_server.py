"""
Apps Script Patch MCP Server.
Provides MCP tools for anchor/fuzzy/diff patching of Google Apps Script files.
"""

import json
import logging
from typing import Any, Dict, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from src.core.patch_service import ScriptPatchService
from src.core.script_store import AppsScriptFileStore
from src.patching import diagnostics
from src.patching.anchor_generator import AnchorGenerator
from src.patching.models import PatchRequest
from src.patching.orchestrator import PatchOrchestrator
from src.patching.validator import SyntaxValidator
from src.utils.config_loader import AppConfig
from src.utils.exceptions import (
    AppsScriptMCPError,
    RemoteStoreError,
    SyntaxValidationError,
    UserInputError,
)
from src.utils.google_auth import AppsScriptAuth

logger = logging.getLogger(__name__)

SCRIPT_ID_PROPERTY = {"type": "string", "description": "Apps Script project ID"}
FILE_NAME_PROPERTY = {
    "type": "string",
    "description": "File name, with or without extension (e.g. 'Code' or 'Code.gs')"
}


class AppsScriptMCPServer:
    """MCP Server for patching Google Apps Script projects."""

    def __init__(self, service: ScriptPatchService):
        """
        Initialize Apps Script MCP Server.

        Args:
            service: Patch service wired to a remote file store
        """
        self.service = service
        self.server = Server("apps-script-patch-mcp")
        self._setup_tools()

    @classmethod
    def from_config(cls, config: AppConfig) -> "AppsScriptMCPServer":
        """Build the server and its engine components from application config."""
        auth = AppsScriptAuth(config.token_path, auth_config=config.google_auth)
        validator = SyntaxValidator.from_config(config.patch)
        service = ScriptPatchService(
            store=AppsScriptFileStore(auth.build_script_service),
            orchestrator=PatchOrchestrator.from_config(config.patch),
            anchor_generator=AnchorGenerator(),
            validator=validator,
        )
        return cls(service)

    def _setup_tools(self):
        """Register MCP tools."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            return self.tool_definitions()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Any) -> List[TextContent]:
            result = await self.handle_tool(name, arguments or {})
            return [TextContent(
                type="text",
                text=json.dumps(result, indent=2, ensure_ascii=False)
            )]

    @staticmethod
    def tool_definitions() -> List[Tool]:
        return [
            Tool(
                name="apply_enhanced_patch",
                description=(
                    "Patch one file with anchors, fuzzy find/replace or a unified diff "
                    "(tried in that order). The result is syntax-checked and rolled back on failure."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY,
                        "patch_request": {
                            "type": "object",
                            "description": "Patch strategies; at least one of anchors, find or unified_diff",
                            "properties": {
                                "anchorStart": {
                                    "type": "string",
                                    "description": 'Start anchor (e.g. "// >>>BEGIN_functionName<<<")'
                                },
                                "anchorEnd": {
                                    "type": "string",
                                    "description": 'End anchor (e.g. "// >>>END_functionName<<<")'
                                },
                                "replace": {
                                    "type": "string",
                                    "description": "Replacement text (required for anchor and find patches)"
                                },
                                "find": {
                                    "type": "string",
                                    "description": "Text to locate approximately (fuzzy match)"
                                },
                                "unified_diff": {
                                    "type": "string",
                                    "description": "Unified diff used as the last resort"
                                },
                                "min_accuracy": {
                                    "type": "number",
                                    "description": "Minimum fuzzy accuracy percentage (default from config)"
                                }
                            }
                        }
                    },
                    "required": ["script_id", "file_name", "patch_request"]
                }
            ),
            Tool(
                name="apply_code_patch",
                description="Apply a unified diff to one file, with automatic syntax check and rollback.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY,
                        "patch_content": {
                            "type": "string",
                            "description": "Unified diff patch content"
                        }
                    },
                    "required": ["script_id", "file_name", "patch_content"]
                }
            ),
            Tool(
                name="add_anchors_to_file",
                description="Insert BEGIN/END anchor markers around functions, classes and HTML blocks.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY,
                        "preview_only": {
                            "type": "boolean",
                            "description": "Only list the anchors that would be added (default: false)",
                            "default": False
                        },
                        "anchor_types": {
                            "type": "array",
                            "items": {
                                "type": "string",
                                "enum": ["function", "class", "div", "form", "input_element"]
                            },
                            "description": "Kinds of regions to anchor (default: all)"
                        }
                    },
                    "required": ["script_id", "file_name"]
                }
            ),
            Tool(
                name="get_script_file_contents",
                description="Read one file of an Apps Script project with basic statistics.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY,
                        "include_line_numbers": {
                            "type": "boolean",
                            "description": "Prefix each line with its number (default: false)",
                            "default": False
                        }
                    },
                    "required": ["script_id", "file_name"]
                }
            ),
            Tool(
                name="add_script_file",
                description="Add a new file to an Apps Script project. Other files are preserved.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY,
                        "content": {
                            "type": "string",
                            "description": "File content"
                        },
                        "file_type": {
                            "type": "string",
                            "enum": ["server_js", "html", "json"],
                            "description": "File type (default: server_js)",
                            "default": "server_js"
                        }
                    },
                    "required": ["script_id", "file_name", "content"]
                }
            ),
            Tool(
                name="update_script_file",
                description="Replace the content of one file. Other files are preserved.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY,
                        "content": {
                            "type": "string",
                            "description": "New file content"
                        }
                    },
                    "required": ["script_id", "file_name", "content"]
                }
            ),
            Tool(
                name="validate_script_file",
                description="Run the syntax validator on one file without changing it.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "file_name": FILE_NAME_PROPERTY
                    },
                    "required": ["script_id", "file_name"]
                }
            ),
            Tool(
                name="diagnose_script_issues",
                description="Locate the code an Apps Script error refers to and return a short snippet around it.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "error_message": {
                            "type": "string",
                            "description": "Error message from Apps Script"
                        },
                        "suspected_file": {
                            "type": "string",
                            "description": "Suspected problem file name (optional)"
                        }
                    },
                    "required": ["script_id", "error_message"]
                }
            ),
            Tool(
                name="smart_fix_script",
                description="Diagnose an error and return instructions for fixing it with a unified diff.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "script_id": SCRIPT_ID_PROPERTY,
                        "error_message": {
                            "type": "string",
                            "description": "Error message from Apps Script"
                        },
                        "suspected_file": {
                            "type": "string",
                            "description": "Suspected problem file name (optional)"
                        }
                    },
                    "required": ["script_id", "error_message"]
                }
            ),
        ]

    @staticmethod
    def _require(arguments: Dict[str, Any], *fields: str) -> List[Any]:
        values = []
        for field in fields:
            value = arguments.get(field)
            if value is None or (isinstance(value, str) and not value.strip() and field != "content"):
                raise UserInputError(f"Missing required argument: {field}", field=field)
            values.append(value)
        return values

    async def handle_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute one tool call.

        Errors are returned as ``{"error": ...}`` payloads, never raised.
        """
        try:
            if name == "apply_enhanced_patch":
                script_id, file_name, patch_request = self._require(
                    arguments, "script_id", "file_name", "patch_request"
                )
                request = PatchRequest.from_arguments(patch_request)
                result = await self.service.apply_patch(script_id, file_name, request)
                return result.to_dict()

            elif name == "apply_code_patch":
                script_id, file_name, patch_content = self._require(
                    arguments, "script_id", "file_name", "patch_content"
                )
                request = PatchRequest(unified_diff=patch_content)
                result = await self.service.apply_patch(script_id, file_name, request)
                return result.to_dict()

            elif name == "add_anchors_to_file":
                script_id, file_name = self._require(arguments, "script_id", "file_name")
                return await self.service.add_anchors(
                    script_id,
                    file_name,
                    preview_only=bool(arguments.get("preview_only", False)),
                    anchor_types=arguments.get("anchor_types"),
                )

            elif name == "get_script_file_contents":
                script_id, file_name = self._require(arguments, "script_id", "file_name")
                return await self.service.get_file(
                    script_id, file_name, include_line_numbers=bool(arguments.get("include_line_numbers", False))
                )

            elif name == "add_script_file":
                script_id, file_name, content = self._require(arguments, "script_id", "file_name", "content")
                return await self.service.add_file(
                    script_id, file_name, content, file_type=arguments.get("file_type") or "server_js"
                )

            elif name == "update_script_file":
                script_id, file_name, content = self._require(arguments, "script_id", "file_name", "content")
                return await self.service.update_file(script_id, file_name, content)

            elif name == "validate_script_file":
                script_id, file_name = self._require(arguments, "script_id", "file_name")
                return await self.service.validate_file(script_id, file_name)

            elif name == "diagnose_script_issues":
                script_id, error_message = self._require(arguments, "script_id", "error_message")
                return await self.service.diagnose(script_id, error_message, arguments.get("suspected_file"))

            elif name == "smart_fix_script":
                script_id, error_message = self._require(arguments, "script_id", "error_message")
                diagnosis = await self.service.diagnose(script_id, error_message, arguments.get("suspected_file"))
                return {
                    "diagnosis": diagnosis,
                    "instructions": diagnostics.fix_instructions(diagnosis["file"]),
                    "next_tool": "apply_code_patch",
                }

            else:
                return {"error": f"Unknown tool: {name}"}

        except SyntaxValidationError as e:
            return {"error": e.message, "error_code": e.error_code, "validation": e.details}
        except UserInputError as e:
            return {"error": e.message, "error_code": e.error_code, "field": e.field}
        except RemoteStoreError as e:
            logger.error(f"Apps Script API error in {name}: {e.message}")
            return {"error": f"API error: {e.message}", "error_code": e.error_code, "status": e.status}
        except AppsScriptMCPError as e:
            return {"error": e.message, "error_code": e.error_code}
        except Exception as e:
            logger.exception(f"Error executing tool {name}: {e}")
            return {"error": str(e)}

    async def run(self):
        """Run the MCP server."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )
