"""
Custom exception classes for the Apps Script patch server.
Provides specific error types for better error handling and caller feedback.
"""

from typing import Optional, Dict, Any


class AppsScriptMCPError(Exception):
    """Base exception for all Apps Script MCP server errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class UserInputError(AppsScriptMCPError):
    """Raised when a tool call or patch request is malformed or incomplete."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize user input error.

        Args:
            message: Error message
            field: Name of the missing or invalid field
            **kwargs: Additional arguments for AppsScriptMCPError
        """
        super().__init__(message, error_code="USER_INPUT_ERROR", **kwargs)
        self.field = field


class PatchError(AppsScriptMCPError):
    """Base exception for patch strategy failures."""
    pass


class AnchorNotFoundError(PatchError):
    """Start or end marker missing, or the end marker precedes the start marker."""

    START_NOT_FOUND = "start_not_found"
    END_NOT_FOUND = "end_not_found"
    END_BEFORE_START = "end_before_start"

    def __init__(self, message: str, marker: str, reason: str, **kwargs):
        """
        Initialize anchor error.

        Args:
            message: Error message
            marker: Literal marker text that was searched for
            reason: One of START_NOT_FOUND, END_NOT_FOUND, END_BEFORE_START
            **kwargs: Additional arguments for AppsScriptMCPError
        """
        super().__init__(message, error_code="ANCHOR_NOT_FOUND", **kwargs)
        self.marker = marker
        self.reason = reason


class FuzzyNoMatchError(PatchError):
    """Raised when fuzzy matching applies too few sub-patches."""

    def __init__(
        self,
        message: str,
        applied: int = 0,
        total: int = 0,
        accuracy: float = 0.0,
        **kwargs
    ):
        super().__init__(message, error_code="FUZZY_NO_MATCH", **kwargs)
        self.applied = applied
        self.total = total
        self.accuracy = accuracy


class UnifiedDiffError(PatchError):
    """Raised when unified diff text cannot be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None, **kwargs):
        super().__init__(message, error_code="UNIFIED_DIFF_ERROR", **kwargs)
        self.line_number = line_number


class SyntaxValidationError(PatchError):
    """Post-patch content failed a language-specific check."""

    def __init__(self, message: str, validation: Any = None, **kwargs):
        super().__init__(message, error_code="SYNTAX_VALIDATION_ERROR", **kwargs)
        self.validation = validation


class RemoteStoreError(AppsScriptMCPError):
    """Raised when reading or writing the Apps Script project fails."""

    def __init__(
        self,
        message: str,
        script_id: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize remote store error.

        Args:
            message: Error message
            script_id: Apps Script project ID involved in the call
            status: HTTP status returned by the Google API, if any
            **kwargs: Additional arguments for AppsScriptMCPError
        """
        super().__init__(message, error_code="REMOTE_STORE_ERROR", **kwargs)
        self.script_id = script_id
        self.status = status


class AuthenticationError(AppsScriptMCPError):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str,
        auth_method: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize authentication error.

        Args:
            message: Error message
            auth_method: Authentication method that failed (token_file, refresh_token)
            **kwargs: Additional arguments for AppsScriptMCPError
        """
        super().__init__(message, error_code="AUTH_ERROR", **kwargs)
        self.auth_method = auth_method


class ConfigurationError(AppsScriptMCPError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)
        self.config_key = config_key
