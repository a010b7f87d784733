"""
MediaFlow Access Models — Pydantic definitions shared by the resolver, enforcer and workflow.

Principal: The acting user (roles + superuser flag).
RoleConfig: Static role configuration carrying the role's DefaultPolicy.
Folder / Item: Snapshots handed over by the external storage collaborators.
ItemQuery: Caller-supplied item query that the enforcer scopes.
GateDecision / BulkResult: Non-exception outcomes of enforcement and batch operations.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sentinel folder id for items that are in no folder
UNCATEGORIZED = 0

_ROLE_SLUG = re.compile(r"[^a-z0-9_\-]")


def normalize_role(role: str) -> str:
    """Lower-case slug form of a role id ("Contributor " → "contributor")."""
    return _ROLE_SLUG.sub("", str(role).strip().lower())


class ActionKind(str, Enum):
    """Closed set of folder actions."""

    VIEW = "view"
    MOVE_TO = "move"
    UPLOAD_TO = "upload"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: "str | ActionKind") -> "ActionKind":
        """Parse an action from its wire value. Raises ValueError on unknown actions."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown action '{value}', expected one of {[a.value for a in cls]}"
            ) from None

    @classmethod
    def parse_set(cls, values: Iterable["str | ActionKind"]) -> FrozenSet["ActionKind"]:
        return frozenset(cls.parse(v) for v in values)


ALL_ACTIONS: FrozenSet[ActionKind] = frozenset(ActionKind)


class DefaultPolicy(str, Enum):
    """Role-level fallback when a folder has no explicit entry for the role."""

    NO_ACCESS = "no_access"
    FULL_ACCESS_BY_DEFAULT = "full_access_by_default"


class RoleConfig(BaseModel):
    """A role and its DefaultPolicy. Set once at configuration time."""

    name: str = Field(description="Role id (normalized slug)")
    default_policy: DefaultPolicy = DefaultPolicy.NO_ACCESS
    label: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        slug = normalize_role(v)
        if not slug:
            raise ValueError(f"Invalid role name '{v}'")
        return slug


class Principal(BaseModel):
    """
    The acting user. Permission is the union across roles.

    ``roles`` keeps the declared order; inbox routing walks roles in this order.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    roles: Tuple[str, ...] = ()
    is_superuser: bool = False
    username: str = ""

    @field_validator("roles", mode="before")
    @classmethod
    def validate_roles(cls, v) -> Tuple[str, ...]:
        if isinstance(v, str):
            v = [v]
        seen: List[str] = []
        for role in v or ():
            slug = normalize_role(role)
            if slug and slug not in seen:
                seen.append(slug)
        return tuple(seen)


class Folder(BaseModel):
    """Folder node supplied by the hierarchy provider."""

    id: int
    parent_id: Optional[int] = Field(default=None, description="None = root")
    name: str
    key: Optional[str] = Field(default=None, description="Stable lookup key for system folders")
    is_protected: bool = False


class Item(BaseModel):
    """A media item. Its only lifecycle state is which folder, if any, holds it."""

    id: int
    author_id: int
    folder_id: Optional[int] = None

    @property
    def is_uncategorized(self) -> bool:
        return not self.folder_id


class ItemQuery(BaseModel):
    """Item query. ``folder_ids=None`` means no folder filter was supplied."""

    folder_ids: Optional[List[int]] = None
    author_id: Optional[int] = None
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @property
    def has_folder_filter(self) -> bool:
        return self.folder_ids is not None


class GateDecision(str, Enum):
    """Outcome of a mutation gate. PROTECTED is reported apart from DENIED."""

    ALLOWED = "allowed"
    DENIED = "denied"
    PROTECTED = "protected"

    @property
    def allowed(self) -> bool:
        return self is GateDecision.ALLOWED


class BulkResult(BaseModel):
    """
    Result of a batch transition.
    ``rejected`` is a reason code when the whole batch was refused before any mutation.
    """

    succeeded: int = 0
    failed: int = 0
    rejected: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.rejected is None

    @classmethod
    def reject(cls, reason: str) -> "BulkResult":
        return cls(rejected=reason)
