"""
MCP servers for Google Apps Script.

Available servers:
- apps_script_server: anchor/fuzzy/diff patching of Apps Script project files
"""

from .apps_script_server import AppsScriptMCPServer

__all__ = [
    "AppsScriptMCPServer",
]
