"""
Audit trail for writes to Apps Script projects.
Every committed change to a remote project is logged with its size delta.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from src.utils.logging_config import get_audit_logger


class AuditLogger:
    """
    Audit logger for committed project writes.
    Entries go to the ``audit`` logger as structured ``extra_data``.
    """

    def __init__(self):
        """Initialize audit logger."""
        self.logger = get_audit_logger()

    def log_commit(
        self,
        operation: str,
        script_id: str,
        file_name: str,
        bytes_before: int,
        bytes_after: int,
        method: Optional[str] = None,
        patch_id: Optional[str] = None
    ) -> str:
        """
        Log a write to a remote project.

        Args:
            operation: Operation type (patch, add_anchors, add_file, update_file)
            script_id: Apps Script project ID
            file_name: File that changed
            bytes_before: Size before the write (0 for new files)
            bytes_after: Size after the write
            method: Patch strategy that produced the content, if any
            patch_id: Patch report identifier, if any

        Returns:
            Audit log entry ID
        """
        log_id = str(uuid4())

        log_entry = {
            "audit_id": log_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "operation": operation,
            "script_id": script_id,
            "file": file_name,
            "method": method,
            "patch_id": patch_id,
            "bytes_before": bytes_before,
            "bytes_after": bytes_after,
            "byte_delta": bytes_after - bytes_before,
        }

        self.logger.info("Project write committed", extra={"extra_data": log_entry})
        return log_id


# Global audit logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_trail() -> AuditLogger:
    """
    Get global audit logger instance.

    Returns:
        AuditLogger instance
    """
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger
