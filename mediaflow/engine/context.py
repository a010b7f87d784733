"""
MediaFlow Request Context — Per-request state carried in a contextvar.

The context identifies the acting principal and the request id for log records.
Permission decisions are never read from here; services receive the principal
explicitly.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from mediaflow.access.models import Principal

current_request_context: ContextVar[Optional["RequestContext"]] = ContextVar(
    "request_context", default=None
)


@dataclass
class RequestContext:
    """Per-request context. Set by MediaFlowRuntime.request()."""

    principal: Principal
    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")

    @property
    def principal_id(self) -> int:
        return self.principal.id

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging."""
        return {
            "request_id": self.request_id,
            "principal_id": self.principal.id,
            "roles": list(self.principal.roles),
            "is_superuser": self.principal.is_superuser,
        }


def set_request_context(ctx: RequestContext) -> Token:
    """Set the request context for the current thread/task. Returns a reset token."""
    return current_request_context.set(ctx)


def get_request_context() -> Optional[RequestContext]:
    """Get the current request context. Returns None if not set."""
    return current_request_context.get()


def reset_request_context(token: Token) -> None:
    """Restore the context that was active before set_request_context()."""
    current_request_context.reset(token)
