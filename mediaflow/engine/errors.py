"""
MediaFlow Error Hierarchy — Structured exceptions for access and workflow failures.

Expected negative outcomes (denied access, missing destination) are returned as
booleans, ``None``, ``GateDecision`` or ``BulkResult`` values. These exceptions are
for callers that opt into raising (``enforce_*``), invalid input, and the
protected-folder invariant.

Hierarchy:
    MediaFlowError
    ├── AccessDeniedError       — Principal lacks the action on a folder
    ├── ProtectedFolderError    — Delete/rename of a protected system folder
    ├── NotFoundError           — Folder or item id does not resolve
    ├── ValidationError         — Invalid settings payload or argument
    └── ConfigError             — Invalid mediaflow.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class MediaFlowError(Exception):
    """
    Base error for all MediaFlow failures.
    All context is serializable to JSON for log records.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.principal_id: Optional[int] = context.get("principal_id")
        self.folder_id: Optional[int] = context.get("folder_id")
        self.request_id: Optional[str] = context.get("request_id")
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "principal_id": self.principal_id,
            "folder_id": self.folder_id,
            "request_id": self.request_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("principal_id", "folder_id", "request_id")
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.folder_id is not None:
            parts.append(f"folder_id={self.folder_id}")
        if self.principal_id is not None:
            parts.append(f"principal_id={self.principal_id}")
        return " | ".join(parts)


class AccessDeniedError(MediaFlowError):
    """
    Principal lacks the required action on a folder.
    Includes the roles that were evaluated and the action that was denied.
    """

    def __init__(self, message: str, **context: Any):
        self.roles: Optional[list] = context.get("roles")
        self.action: Optional[str] = context.get("action")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["roles"] = self.roles
        d["action"] = self.action
        return d


class ProtectedFolderError(MediaFlowError):
    """
    Delete or rename attempted on a protected folder.
    Reported separately from AccessDeniedError so callers can show a different message.
    """

    def __init__(self, message: str, **context: Any):
        self.operation: Optional[str] = context.get("operation")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["operation"] = self.operation
        return d


class NotFoundError(MediaFlowError):
    """Folder or item id does not resolve."""

    def __init__(self, message: str, **context: Any):
        self.item_id: Optional[int] = context.get("item_id")
        super().__init__(message, **context)


class ValidationError(MediaFlowError):
    """Invalid settings payload or argument. Includes field-level error details."""

    def __init__(self, message: str, **context: Any):
        self.validation_errors: Optional[list] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class ConfigError(MediaFlowError):
    """Configuration error — invalid mediaflow.yaml."""
    pass
